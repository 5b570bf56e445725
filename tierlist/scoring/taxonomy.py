"""
Tier Taxonomy and Score Calculator

Closed enumerations for tier symbols and gamemodes, plus the pure mapping
from a tier symbol to its point value.

Tier symbols come from hand-authored batches and older stored rows, so
parsing is total: anything that is not a known symbol becomes
Tier.UNRECOGNIZED (0 points) instead of raising.

Usage:
    from tierlist.scoring.taxonomy import Tier, Gamemode, points_for
    points_for("HT1")  # 50
"""

import re
from enum import Enum

from tierlist.config import (
    TIER_POINTS,
    TIER_BRACKETS,
    SUB_LEVELS,
    LEGACY_TIER_PREFIX,
    RETIRED_ALIASES,
    NOT_RANKED_ALIASES,
    GAMEMODES,
    GAMEMODE_ALIASES,
)
from tierlist.exceptions import ValidationError
from tierlist.utils import strip_markdown

# HT1..LT5, any case
BRACKET_TIER_RE = re.compile(r"^([HL])T([1-5])$", re.IGNORECASE)

# Crystal1..Crystal9, any case
LEGACY_TIER_RE = re.compile(rf"^{LEGACY_TIER_PREFIX}([1-9])$", re.IGNORECASE)


class Tier(Enum):
    HT1 = "HT1"
    LT1 = "LT1"
    HT2 = "HT2"
    LT2 = "LT2"
    HT3 = "HT3"
    LT3 = "LT3"
    HT4 = "HT4"
    LT4 = "LT4"
    HT5 = "HT5"
    LT5 = "LT5"
    RETIRED = "Retired"
    NOT_RANKED = "Not Ranked"
    # Legacy numbered tiers: readable, never scored, flagged for migration
    CRYSTAL1 = "Crystal1"
    CRYSTAL2 = "Crystal2"
    CRYSTAL3 = "Crystal3"
    CRYSTAL4 = "Crystal4"
    CRYSTAL5 = "Crystal5"
    CRYSTAL6 = "Crystal6"
    CRYSTAL7 = "Crystal7"
    CRYSTAL8 = "Crystal8"
    CRYSTAL9 = "Crystal9"
    UNRECOGNIZED = "Unrecognized"

    @classmethod
    def parse(cls, value) -> "Tier":
        """
        Convert any raw value into a Tier. Never raises.

        Args:
            value: A Tier, a tier string ("HT1", "lt3", "Not Ranked",
                "Crystal4"...) or anything else

        Returns:
            The matching Tier, or Tier.UNRECOGNIZED
        """
        if isinstance(value, Tier):
            return value
        if value is None:
            return cls.UNRECOGNIZED

        text = strip_markdown(str(value))

        m = BRACKET_TIER_RE.match(text)
        if m:
            sub_level, bracket = m.groups()
            return cls(f"{sub_level.upper()}T{bracket}")

        m = LEGACY_TIER_RE.match(text)
        if m:
            return cls(f"{LEGACY_TIER_PREFIX}{m.group(1)}")

        lowered = text.lower()
        if lowered in RETIRED_ALIASES:
            return cls.RETIRED
        if lowered in NOT_RANKED_ALIASES:
            return cls.NOT_RANKED

        return cls.UNRECOGNIZED

    @property
    def bracket(self) -> int | None:
        """Skill band 1-5, or None for Retired, Not Ranked and legacy values."""
        if self.value in TIER_POINTS:
            return int(self.value[2])
        return None

    @property
    def sub_level(self) -> str | None:
        """'H' or 'L' for bracket tiers."""
        if self.value in TIER_POINTS:
            return self.value[0]
        return None

    @property
    def points(self) -> int:
        return TIER_POINTS.get(self.value, 0)

    @property
    def is_scoring(self) -> bool:
        return self.value in TIER_POINTS

    @property
    def is_legacy(self) -> bool:
        return self.value.startswith(LEGACY_TIER_PREFIX)

    @property
    def needs_migration(self) -> bool:
        """Legacy values have no point mapping and must be re-tiered by an operator."""
        return self.is_legacy

    @property
    def display_tier(self) -> str:
        """Public tier name shared by both sub-levels, e.g. 'TIER 2'."""
        if self.bracket is None:
            return self.value
        return f"TIER {self.bracket}"

    @property
    def label(self) -> str:
        """Human label, e.g. 'High Tier 1'."""
        if self.bracket is None:
            return self.value
        return f"{SUB_LEVELS[self.sub_level]} Tier {self.bracket}"


class Gamemode(Enum):
    CRYSTAL = "Crystal"
    SWORD = "Sword"
    SMP = "SMP"
    UHC = "UHC"
    AXE = "Axe"
    NETHPOT = "NethPot"
    BEDWARS = "Bedwars"
    MACE = "Mace"

    @classmethod
    def parse(cls, value) -> "Gamemode":
        """
        Resolve a gamemode name case-insensitively ("crystal", "Pot", ...).

        Raises:
            ValidationError: If the name is not one of the 8 gamemodes
        """
        if isinstance(value, Gamemode):
            return value

        text = strip_markdown(str(value or ""))
        key = text.lower()
        mode = _GAMEMODE_LOOKUP.get(key) or GAMEMODE_ALIASES.get(key)
        if mode is None:
            raise ValidationError(
                f"Unknown gamemode '{text}'. Allowed values: {', '.join(GAMEMODES)}"
            )
        return cls(mode)


_GAMEMODE_LOOKUP = {name.lower(): name for name in GAMEMODES}


def points_for(tier) -> int:
    """
    Point value of a tier symbol.

    Total: Retired, Not Ranked, legacy and unrecognized values all score 0.
    """
    return Tier.parse(tier).points


def tier_for(bracket: int, sub_level: str) -> Tier:
    """Build a bracket tier from its parts, e.g. tier_for(2, 'L') -> Tier.LT2."""
    if bracket not in TIER_BRACKETS or sub_level not in SUB_LEVELS:
        raise ValueError(f"Invalid bracket/sub-level: {bracket}{sub_level}")
    return Tier(f"{sub_level}T{bracket}")


def scoring_tiers() -> list[Tier]:
    """All point-bearing tiers, best first."""
    return sorted((t for t in Tier if t.is_scoring), key=lambda t: -t.points)
