"""
Rank Assigner

Produces the overall leaderboard order from a snapshot of players:
global score descending, ties broken by creation order and then by player
ID, so a recompute over the same state always yields the same positions.
Positions are strict (1, 2, 3, ...), never shared.

Usage:
    from tierlist.scoring.ranking import assign_ranks, recompute_ranks
    ranks = assign_ranks(store.list_all_active_players())
"""

import pandas as pd

from tierlist.config import RANK_TITLES
from tierlist.scoring.taxonomy import Gamemode
from tierlist.utils import setup_logging

# --- Module Logger ---
logger = setup_logging(__name__)

SORT_COLUMNS = ['score', 'created_seq', 'player_id']
SORT_ASCENDING = [False, True, True]


def _sorted_order(scores, created_seqs, player_ids) -> list[int]:
    """Indices of the inputs in leaderboard order."""
    df = pd.DataFrame({
        'score': scores,
        'created_seq': created_seqs,
        'player_id': player_ids,
    })
    df = df.sort_values(SORT_COLUMNS, ascending=SORT_ASCENDING, kind='mergesort')
    return df.index.tolist()


def assign_ranks(players) -> list[tuple]:
    """
    Order players by global score and number them from 1.

    Args:
        players: Snapshot of PlayerRecord objects. Banned players are skipped.

    Returns:
        List of (PlayerRecord, position) in leaderboard order
    """
    active = [p for p in players if not p.banned]
    if not active:
        return []

    order = _sorted_order(
        [p.global_score for p in active],
        [p.created_seq for p in active],
        [p.player_id for p in active],
    )
    return [(active[i], position) for position, i in enumerate(order, start=1)]


def recompute_ranks(store) -> list[tuple[str, int]]:
    """
    Full rank recompute over every active player, persisted to storage.

    Returns:
        List of (player_id, position)
    """
    players = store.list_all_active_players()
    ranks = [(player.player_id, position) for player, position in assign_ranks(players)]
    store.persist_ranks(ranks)
    logger.info(f"Recomputed ranks for {len(ranks)} active players")
    return ranks


def rank_gamemode(players, gamemode_scores, gamemode) -> list[tuple]:
    """
    Leaderboard for a single gamemode.

    Only players holding a scoring tier in that gamemode are listed;
    Retired and legacy records are visible elsewhere but not ranked here.

    Args:
        players: Snapshot of PlayerRecord objects
        gamemode_scores: Snapshot of GamemodeScoreRecord objects (any gamemode)
        gamemode: Gamemode or gamemode name

    Returns:
        List of (PlayerRecord, GamemodeScoreRecord, position)
    """
    gamemode = Gamemode.parse(gamemode)
    by_id = {p.player_id: p for p in players if not p.banned}
    entries = [
        (by_id[r.player_id], r)
        for r in gamemode_scores
        if r.gamemode == gamemode and r.tier.is_scoring and r.player_id in by_id
    ]
    if not entries:
        return []

    order = _sorted_order(
        [r.points for _, r in entries],
        [p.created_seq for p, _ in entries],
        [p.player_id for p, _ in entries],
    )
    return [(*entries[i], position) for position, i in enumerate(order, start=1)]


def rank_title(points: int) -> str:
    """Title for a global score, e.g. 95 -> 'Combat Specialist'."""
    for title, min_points, max_points in RANK_TITLES:
        if points >= min_points and (max_points is None or points <= max_points):
            return title
    return RANK_TITLES[0][0]


def next_rank_title(points: int) -> str | None:
    """Title the player is working towards, or None at the top title."""
    titles = [t for t, _, _ in RANK_TITLES]
    current = titles.index(rank_title(points))
    if current == len(titles) - 1:
        return None
    return titles[current + 1]


def ranking_table(players) -> pd.DataFrame:
    """
    Overall leaderboard as a DataFrame.

    Columns: position, ign, global_score, title, region, device
    """
    rows = [
        {
            'position': position,
            'ign': player.ign,
            'global_score': player.global_score,
            'title': rank_title(player.global_score),
            'region': player.region,
            'device': player.device,
        }
        for player, position in assign_ranks(players)
    ]
    return pd.DataFrame(rows, columns=['position', 'ign', 'global_score', 'title', 'region', 'device'])
