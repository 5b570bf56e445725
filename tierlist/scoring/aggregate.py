"""
Player Aggregate Updater

A player's global score is never edited directly. It is always the sum of
the points of that player's current gamemode score records, recomputed
from the full set held by storage.
"""

from tierlist.exceptions import AggregationInconsistency
from tierlist.scoring.taxonomy import points_for
from tierlist.utils import setup_logging

# --- Module Logger ---
logger = setup_logging(__name__)


def recompute_global_score(gamemode_scores) -> int:
    """
    Sum the points of a player's gamemode score records.

    Retired records stay in the set but score 0, as do legacy and
    unrecognized tiers. An empty set scores 0.

    Args:
        gamemode_scores: Iterable of GamemodeScoreRecord for one player

    Returns:
        Global score
    """
    return sum(points_for(record.tier) for record in gamemode_scores)


def update_player_global_score(store, player_id: str) -> int:
    """
    Recompute and persist one player's global score from storage.

    Runs under the player's lock so a concurrent submission for the same
    player cannot interleave between the read and the write.

    Returns:
        The new global score

    Raises:
        AggregationInconsistency: If the stored score does not match after the write
    """
    with store.player_lock(player_id):
        scores = store.list_gamemode_scores(player_id)
        new_score = recompute_global_score(scores)
        store.update_global_score(player_id, new_score)
        verify_global_score(store, player_id)
    return new_score


def verify_global_score(store, player_id: str) -> int:
    """
    Check the stored global score against a fresh sum of the player's records.

    On mismatch the score is force-recomputed and the inconsistency is
    raised, so the caller reports the player instead of accepting it.
    """
    player = store.get_player(player_id)
    expected = recompute_global_score(store.list_gamemode_scores(player_id))
    stored = player.global_score if player else 0

    if stored != expected:
        logger.error(
            f"Global score mismatch for player {player_id}: stored {stored}, expected {expected}. "
            f"Forcing recompute."
        )
        store.update_global_score(player_id, expected)
        raise AggregationInconsistency(
            f"Global score for player {player_id} was {stored}, expected {expected}",
            player_id=player_id,
            stored=stored,
            expected=expected,
        )

    return expected


def recalculate_all_global_scores(store) -> list[str]:
    """
    Repair pass over every player: rewrite any global score that drifted.

    Returns:
        IDs of the players whose score was corrected
    """
    corrected = []
    for player in store.list_all_players():
        with store.player_lock(player.player_id):
            current = store.get_player(player.player_id)
            expected = recompute_global_score(store.list_gamemode_scores(player.player_id))
            if current.global_score != expected:
                store.update_global_score(player.player_id, expected)
                corrected.append(player.player_id)

    if corrected:
        logger.warning(f"Corrected global score for {len(corrected)} players")
    else:
        logger.info("All global scores consistent")
    return corrected


def find_legacy_records(store) -> list[dict]:
    """
    List gamemode records still holding a legacy numbered tier.

    Returns:
        List of dicts: ign, player_id, gamemode, tier, sorted by ign
    """
    igns = {p.player_id: p.ign for p in store.list_all_players()}
    legacy = [
        {
            'ign': igns.get(record.player_id, ''),
            'player_id': record.player_id,
            'gamemode': record.gamemode.value,
            'tier': record.tier.value,
        }
        for record in store.list_all_gamemode_scores()
        if record.tier.needs_migration
    ]

    if legacy:
        logger.warning(f"{len(legacy)} gamemode records need migration from legacy tiers")
    return sorted(legacy, key=lambda r: (r['ign'], r['gamemode']))
