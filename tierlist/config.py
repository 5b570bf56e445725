"""
Central configuration for the Tier List scoring system.

All shared constants and configuration values should be defined here
to avoid duplication and ensure consistency across modules.
"""

import re
from pathlib import Path

# --- Project Paths ---
PROJECT_ROOT = Path(__file__).parent.parent
DATA_FOLDER = PROJECT_ROOT / "data"
OUTPUT_FOLDER = DATA_FOLDER / "processed"
PLAYERS_CSV = "players.csv"
SCORES_CSV = "gamemode_scores.csv"

# --- Tier Definitions ---
# Format: internal tier -> points
# Brackets run 1 (highest) to 5 (lowest); High beats Low inside a bracket.
TIER_POINTS = {
    "HT1": 50,
    "LT1": 45,
    "HT2": 40,
    "LT2": 35,
    "HT3": 30,
    "LT3": 25,
    "HT4": 20,
    "LT4": 15,
    "HT5": 10,
    "LT5": 5,
}
TIER_BRACKETS = range(1, 6)
SUB_LEVELS = {"H": "High", "L": "Low"}

# Legacy numbered tiers (Crystal1..Crystal9) are still readable but carry no points
LEGACY_TIER_PREFIX = "Crystal"

# Spellings accepted for the two non-bracket tiers
RETIRED_ALIASES = frozenset({"retired"})
NOT_RANKED_ALIASES = frozenset({"not ranked", "notranked", "not_ranked", "unranked"})

# --- Gamemodes ---
GAMEMODES = ("Crystal", "Sword", "SMP", "UHC", "Axe", "NethPot", "Bedwars", "Mace")
GAMEMODE_ALIASES = {
    "pot": "NethPot",
    "neth pot": "NethPot",
    "neth_pot": "NethPot",
}

# --- Player Metadata ---
ALLOWED_REGIONS = frozenset({"NA", "EU", "AS", "OCE", "SA", "AF"})
ALLOWED_DEVICES = frozenset({"PC", "Mobile", "Console", "Controller"})

# --- IGN Constraints ---
IGN_MAX_LENGTH = 16
IGN_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

# --- Bulk Submission ---
MAX_INPUT_SIZE = 200_000  # Maximum batch text size in bytes (~200KB)
MAX_REPORTED_ERRORS = 50  # Per-row error messages kept in a batch report
PERSIST_TIMEOUT_SECONDS = 10.0  # Upper bound on one row's storage round-trips
RECOMPUTE_RANKS_AFTER_BATCH = True

# --- Rank Titles ---
# Format: (title, min_points, max_points or None for open-ended)
RANK_TITLES = [
    ("Rookie", 0, 9),
    ("Combat Novice", 10, 19),
    ("Combat Cadet", 20, 49),
    ("Combat Specialist", 50, 99),
    ("Combat Ace", 100, 249),
    ("Combat Master", 250, 399),
    ("Combat Grandmaster", 400, None),
]
