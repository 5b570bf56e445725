"""
Storage Backends

The scoring core never talks to a database directly. It goes through the
TierStore contract below, which a hosted backend adapter implements.
Two implementations ship with the package:

- InMemoryTierStore: process-local store, used by tests and dry tooling
- CsvTierStore: persists players and gamemode scores as two CSV files,
  rewritten atomically after every mutation

Every read returns copies, so callers always work from the store's
current state rather than a shared mutable view.
"""

import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path

import pandas as pd

from tierlist.config import OUTPUT_FOLDER, PLAYERS_CSV, SCORES_CSV
from tierlist.models import GamemodeScoreRecord, PlayerMetadata, PlayerRecord
from tierlist.scoring.taxonomy import Gamemode, Tier
from tierlist.utils import setup_logging, atomic_write_csv

# --- Module Logger ---
logger = setup_logging(__name__)

PLAYER_COLUMNS = [
    'player_id', 'ign', 'created_seq', 'region', 'device', 'java_username',
    'global_score', 'global_rank', 'banned',
]
SCORE_COLUMNS = ['player_id', 'gamemode', 'tier', 'points', 'raw_score']


class TierStore(ABC):
    """Contract the scoring core needs from persistent storage."""

    @abstractmethod
    def find_player_by_ign(self, ign: str) -> PlayerRecord | None:
        """Exact, case-sensitive IGN lookup."""

    @abstractmethod
    def get_player(self, player_id: str) -> PlayerRecord | None:
        ...

    @abstractmethod
    def create_player(self, ign: str, metadata: PlayerMetadata | None = None) -> PlayerRecord:
        """Create a player; returns the existing record if the IGN is taken."""

    @abstractmethod
    def update_player_metadata(self, player_id: str, metadata: PlayerMetadata) -> None:
        """Overwrite only the metadata fields that were supplied."""

    @abstractmethod
    def upsert_gamemode_score(self, player_id: str, gamemode: Gamemode, tier: Tier,
                              points: int, raw_score: int | None = None) -> None:
        ...

    @abstractmethod
    def delete_gamemode_score(self, player_id: str, gamemode: Gamemode) -> None:
        ...

    @abstractmethod
    def list_gamemode_scores(self, player_id: str) -> list[GamemodeScoreRecord]:
        ...

    @abstractmethod
    def list_all_gamemode_scores(self) -> list[GamemodeScoreRecord]:
        ...

    @abstractmethod
    def update_global_score(self, player_id: str, new_score: int) -> None:
        ...

    @abstractmethod
    def set_banned(self, player_id: str, banned: bool) -> None:
        ...

    @abstractmethod
    def list_all_players(self) -> list[PlayerRecord]:
        ...

    @abstractmethod
    def persist_ranks(self, ranks: list[tuple[str, int]]) -> None:
        """Store (player_id, position) pairs; players not listed lose their rank."""

    def list_all_active_players(self) -> list[PlayerRecord]:
        """All players that are not banned."""
        return [p for p in self.list_all_players() if not p.banned]

    @abstractmethod
    def player_lock(self, player_id: str):
        """Context manager guarding one player's read-modify-write."""


class InMemoryTierStore(TierStore):
    """Dictionary-backed store. Thread-safe."""

    def __init__(self):
        self._lock = threading.RLock()
        self._player_locks: dict[str, threading.RLock] = {}
        self._players: dict[str, PlayerRecord] = {}
        self._ign_index: dict[str, str] = {}
        self._scores: dict[tuple[str, Gamemode], GamemodeScoreRecord] = {}
        self._next_seq = 1

    # --- Players ---
    def find_player_by_ign(self, ign: str) -> PlayerRecord | None:
        with self._lock:
            player_id = self._ign_index.get(ign)
            if player_id is None:
                return None
            return replace(self._players[player_id])

    def get_player(self, player_id: str) -> PlayerRecord | None:
        with self._lock:
            player = self._players.get(player_id)
            return replace(player) if player else None

    def create_player(self, ign: str, metadata: PlayerMetadata | None = None) -> PlayerRecord:
        with self._lock:
            existing = self._ign_index.get(ign)
            if existing is not None:
                return replace(self._players[existing])

            metadata = metadata or PlayerMetadata()
            player = PlayerRecord(
                player_id=uuid.uuid4().hex,
                ign=ign,
                created_seq=self._next_seq,
                **metadata.supplied(),
            )
            self._next_seq += 1
            self._players[player.player_id] = player
            self._ign_index[ign] = player.player_id
            self._on_change()
            logger.debug(f"Created player {ign} ({player.player_id})")
            return replace(player)

    def update_player_metadata(self, player_id: str, metadata: PlayerMetadata) -> None:
        fields = metadata.supplied()
        if not fields:
            return
        with self._lock:
            player = self._require_player(player_id)
            for key, value in fields.items():
                setattr(player, key, value)
            self._on_change()

    def update_global_score(self, player_id: str, new_score: int) -> None:
        with self._lock:
            self._require_player(player_id).global_score = int(new_score)
            self._on_change()

    def set_banned(self, player_id: str, banned: bool) -> None:
        with self._lock:
            player = self._require_player(player_id)
            player.banned = bool(banned)
            if banned:
                player.global_rank = None
            self._on_change()

    def list_all_players(self) -> list[PlayerRecord]:
        with self._lock:
            return [replace(p) for p in self._players.values()]

    def persist_ranks(self, ranks: list[tuple[str, int]]) -> None:
        with self._lock:
            positions = dict(ranks)
            for player_id, player in self._players.items():
                player.global_rank = positions.get(player_id)
            self._on_change()

    # --- Gamemode scores ---
    def upsert_gamemode_score(self, player_id: str, gamemode: Gamemode, tier: Tier,
                              points: int, raw_score: int | None = None) -> None:
        with self._lock:
            self._require_player(player_id)
            self._scores[(player_id, gamemode)] = GamemodeScoreRecord(
                player_id=player_id,
                gamemode=gamemode,
                tier=tier,
                points=int(points),
                raw_score=raw_score,
            )
            self._on_change()

    def delete_gamemode_score(self, player_id: str, gamemode: Gamemode) -> None:
        with self._lock:
            if self._scores.pop((player_id, gamemode), None) is not None:
                self._on_change()

    def list_gamemode_scores(self, player_id: str) -> list[GamemodeScoreRecord]:
        with self._lock:
            return [replace(r) for (pid, _), r in self._scores.items() if pid == player_id]

    def list_all_gamemode_scores(self) -> list[GamemodeScoreRecord]:
        with self._lock:
            return [replace(r) for r in self._scores.values()]

    # --- Locking ---
    @contextmanager
    def player_lock(self, player_id: str):
        with self._lock:
            lock = self._player_locks.setdefault(player_id, threading.RLock())
        with lock:
            yield

    def _require_player(self, player_id: str) -> PlayerRecord:
        player = self._players.get(player_id)
        if player is None:
            raise KeyError(f"Unknown player id: {player_id}")
        return player

    def _on_change(self) -> None:
        """Hook for subclasses that persist after each mutation."""
        pass


class CsvTierStore(InMemoryTierStore):
    """
    In-memory store mirrored to two CSV files in `folder`.

    Files are loaded once on construction and rewritten atomically after
    every mutation.
    """

    def __init__(self, folder: Path | None = None):
        super().__init__()
        self.folder = Path(folder) if folder else OUTPUT_FOLDER
        self.players_path = self.folder / PLAYERS_CSV
        self.scores_path = self.folder / SCORES_CSV
        self._load()

    def _load(self) -> None:
        if self.players_path.exists():
            df = pd.read_csv(self.players_path, dtype=str, keep_default_na=False)
            for row in df.to_dict('records'):
                player = PlayerRecord(
                    player_id=row['player_id'],
                    ign=row['ign'],
                    created_seq=int(row['created_seq']),
                    region=row['region'] or None,
                    device=row['device'] or None,
                    java_username=row['java_username'] or None,
                    global_score=int(row['global_score'] or 0),
                    global_rank=int(row['global_rank']) if row['global_rank'] else None,
                    banned=row['banned'].strip().lower() == 'true',
                )
                self._players[player.player_id] = player
                self._ign_index[player.ign] = player.player_id
                self._next_seq = max(self._next_seq, player.created_seq + 1)

        if self.scores_path.exists():
            df = pd.read_csv(self.scores_path, dtype=str, keep_default_na=False)
            for row in df.to_dict('records'):
                record = GamemodeScoreRecord(
                    player_id=row['player_id'],
                    gamemode=Gamemode.parse(row['gamemode']),
                    tier=Tier.parse(row['tier']),
                    points=int(row['points'] or 0),
                    raw_score=int(row['raw_score']) if row['raw_score'] else None,
                )
                self._scores[(record.player_id, record.gamemode)] = record

        logger.info(
            f"Loaded {len(self._players)} players and {len(self._scores)} gamemode scores "
            f"from {self.folder}"
        )

    def _on_change(self) -> None:
        players_df = pd.DataFrame(
            [vars(p) for p in sorted(self._players.values(), key=lambda p: p.created_seq)],
            columns=PLAYER_COLUMNS,
        )
        scores_df = pd.DataFrame(
            [
                {
                    'player_id': r.player_id,
                    'gamemode': r.gamemode.value,
                    'tier': r.tier.value,
                    'points': r.points,
                    'raw_score': r.raw_score,
                }
                for r in self._scores.values()
            ],
            columns=SCORE_COLUMNS,
        )
        players_df['global_rank'] = pd.to_numeric(players_df['global_rank']).astype('Int64')
        scores_df['raw_score'] = pd.to_numeric(scores_df['raw_score']).astype('Int64')
        atomic_write_csv(players_df, self.players_path, index=False)
        atomic_write_csv(scores_df, self.scores_path, index=False)
