"""
Tier Submission

Modules:
- submission: Validate and apply one player's tier assignments
- bulk: Batch parsing and sequential bulk submission
"""


def __getattr__(name):
    """Lazy imports to keep package import cheap."""
    if name == "submit":
        from tierlist.ingestion.submission import submit
        return submit
    if name == "run_bulk_submission":
        from tierlist.ingestion.bulk import run_bulk_submission
        return run_bulk_submission
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
