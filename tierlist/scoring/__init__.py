"""
Tier Scoring

Modules:
- taxonomy: Tier and gamemode enumerations, tier -> points
- aggregate: Global score recomputation and verification
- ranking: Overall and per-gamemode leaderboard positions
"""


def __getattr__(name):
    """Lazy imports to keep package import cheap."""
    if name == "points_for":
        from tierlist.scoring.taxonomy import points_for
        return points_for
    if name == "recompute_global_score":
        from tierlist.scoring.aggregate import recompute_global_score
        return recompute_global_score
    if name == "assign_ranks":
        from tierlist.scoring.ranking import assign_ranks
        return assign_ranks
    if name == "recompute_ranks":
        from tierlist.scoring.ranking import recompute_ranks
        return recompute_ranks
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
