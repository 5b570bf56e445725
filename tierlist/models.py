"""
Record types exchanged between the scoring core and storage.
"""

from dataclasses import dataclass

from tierlist.scoring.taxonomy import Gamemode, Tier


@dataclass
class PlayerMetadata:
    """Optional player details; None means 'not supplied'."""
    region: str | None = None
    device: str | None = None
    java_username: str | None = None

    def supplied(self) -> dict:
        """Fields that were actually provided."""
        return {k: v for k, v in vars(self).items() if v is not None}


@dataclass
class PlayerRecord:
    player_id: str
    ign: str
    created_seq: int  # insertion order, used as the rank tie-break
    region: str | None = None
    device: str | None = None
    java_username: str | None = None
    global_score: int = 0
    global_rank: int | None = None
    banned: bool = False


@dataclass
class GamemodeScoreRecord:
    player_id: str
    gamemode: Gamemode
    tier: Tier
    points: int
    raw_score: int | None = None  # display-only override, never summed
