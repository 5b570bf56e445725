"""
Single-Record Submission Handler

Validates one (IGN, gamemode, tier) submission and applies it: resolve or
create the player, upsert the gamemode record, recompute the player's
global score. Ranks are not recomputed here; callers do that once after a
batch (see tierlist.scoring.ranking.recompute_ranks).

Usage:
    from tierlist.ingestion.submission import submit
    result = submit(store, "PlayerA", "Crystal", "HT1")
    result['global_score']  # 50
"""

from tierlist.config import ALLOWED_REGIONS, ALLOWED_DEVICES, IGN_MAX_LENGTH
from tierlist.exceptions import TierlistError, ValidationError, PersistenceError
from tierlist.models import PlayerMetadata
from tierlist.scoring.aggregate import update_player_global_score
from tierlist.scoring.taxonomy import Gamemode, Tier
from tierlist.utils import setup_logging, is_valid_ign, strip_markdown

# --- Module Logger ---
logger = setup_logging(__name__)

REGION_ALIASES = {"ASIA": "AS"}
_DEVICE_LOOKUP = {d.lower(): d for d in ALLOWED_DEVICES}


# --- Validation ---
def validate_ign(ign) -> str:
    """
    Check an IGN: 1-16 characters of letters, digits and underscores.

    Returns:
        The IGN with surrounding whitespace removed

    Raises:
        ValidationError: If the IGN is empty, too long or has other characters
    """
    ign = str(ign or "").strip()
    if not ign:
        raise ValidationError("IGN is required")
    if len(ign) > IGN_MAX_LENGTH:
        raise ValidationError(f"IGN '{ign}' is too long (max {IGN_MAX_LENGTH} characters)", ign=ign)
    if not is_valid_ign(ign):
        raise ValidationError(f"IGN '{ign}' contains invalid characters", ign=ign)
    return ign


def validate_tier(tier, ign: str | None = None) -> Tier:
    """
    Resolve a tier for new data.

    Raises:
        ValidationError: For unrecognized values, and for legacy numbered
            tiers, which have no point mapping and are not accepted as new data
    """
    parsed = Tier.parse(tier)
    if parsed is Tier.UNRECOGNIZED:
        raise ValidationError(f"Unknown tier '{tier}'", ign=ign)
    if parsed.needs_migration:
        raise ValidationError(
            f"Legacy tier '{parsed.value}' cannot be submitted; re-tier as HT1-LT5, Retired or Not Ranked",
            ign=ign,
        )
    return parsed


def validate_raw_score(raw_score, ign: str | None = None) -> int | None:
    """Optional non-negative integer score override; blank means none."""
    if raw_score is None:
        return None
    if isinstance(raw_score, str):
        raw_score = strip_markdown(raw_score)
        if not raw_score:
            return None
    try:
        value = int(raw_score)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid score '{raw_score}'", ign=ign)
    if value < 0:
        raise ValidationError(f"Score must be non-negative, got {value}", ign=ign)
    return value


def validate_metadata(metadata, ign: str | None = None) -> PlayerMetadata:
    """
    Normalize optional player metadata. Blank fields count as not supplied.

    Args:
        metadata: PlayerMetadata, dict with region/device/java_username, or None

    Raises:
        ValidationError: For an unknown region or device, or a malformed Java username
    """
    if metadata is None:
        return PlayerMetadata()
    if isinstance(metadata, PlayerMetadata):
        metadata = metadata.supplied()

    region = strip_markdown(str(metadata.get('region') or "")).upper() or None
    device = strip_markdown(str(metadata.get('device') or "")) or None
    java_username = str(metadata.get('java_username') or "").strip() or None

    if region is not None:
        region = REGION_ALIASES.get(region, region)
        if region not in ALLOWED_REGIONS:
            raise ValidationError(
                f"Unknown region '{region}'. Allowed values: {', '.join(sorted(ALLOWED_REGIONS))}",
                ign=ign,
            )

    if device is not None:
        canonical = _DEVICE_LOOKUP.get(device.lower())
        if canonical is None:
            raise ValidationError(
                f"Unknown device '{device}'. Allowed values: {', '.join(sorted(ALLOWED_DEVICES))}",
                ign=ign,
            )
        device = canonical

    if java_username is not None and not is_valid_ign(java_username):
        raise ValidationError(f"Invalid Java username '{java_username}'", ign=ign)

    return PlayerMetadata(region=region, device=device, java_username=java_username)


def validate_results(results, ign: str | None = None) -> list[tuple]:
    """
    Validate (gamemode, tier[, raw_score]) entries for one player.

    Returns:
        List of (Gamemode, Tier, raw_score or None)

    Raises:
        ValidationError: On the first bad entry, an empty list, or a gamemode given twice
    """
    validated = []
    seen = set()
    for entry in results:
        try:
            gamemode, tier, *rest = entry
        except (TypeError, ValueError):
            raise ValidationError(f"Expected (gamemode, tier) entry, got {entry!r}", ign=ign)
        raw_score = rest[0] if rest else None
        try:
            mode = Gamemode.parse(gamemode)
        except ValidationError as e:
            raise ValidationError(str(e), ign=ign) from e
        if mode in seen:
            raise ValidationError(f"Gamemode '{mode.value}' listed more than once", ign=ign)
        seen.add(mode)
        validated.append((mode, validate_tier(tier, ign), validate_raw_score(raw_score, ign)))

    if not validated:
        raise ValidationError("No gamemode results supplied", ign=ign)
    return validated


# --- Submission ---
def submit(store, ign, gamemode, tier, metadata=None, raw_score=None) -> dict:
    """
    Validate and apply a single tier assignment.

    Args:
        store: TierStore implementation
        ign: Player in-game name (exact, case-sensitive match)
        gamemode: Gamemode or gamemode name
        tier: Tier or tier string. 'Not Ranked' removes the player's
            record for that gamemode; 'Retired' keeps a 0-point record.
        metadata: Optional PlayerMetadata or dict
        raw_score: Optional display score stored with the record

    Returns:
        Dictionary with player_id, ign, global_score, created

    Raises:
        ValidationError: Before any mutation, if an input is invalid
        PersistenceError: If storage fails
        AggregationInconsistency: If the global score does not verify after the write
    """
    return submit_results(store, ign, [(gamemode, tier, raw_score)], metadata)


def submit_results(store, ign, results, metadata=None) -> dict:
    """
    Validate every (gamemode, tier[, raw_score]) entry, then apply them all
    for one player and recompute the global score once.

    Returns and raises as submit().
    """
    ign = validate_ign(ign)
    validated = validate_results(results, ign)
    metadata = validate_metadata(metadata, ign)

    try:
        player, created = _resolve_player(store, ign, metadata)
        with store.player_lock(player.player_id):
            for gamemode, tier, raw_score in validated:
                if tier is Tier.NOT_RANKED:
                    store.delete_gamemode_score(player.player_id, gamemode)
                else:
                    store.upsert_gamemode_score(player.player_id, gamemode, tier, tier.points, raw_score)
            global_score = update_player_global_score(store, player.player_id)
    except TierlistError:
        raise
    except Exception as e:
        raise PersistenceError(f"Storage failure while submitting {ign}: {e}") from e

    summary = ", ".join(f"{mode.value}={tier.value}" for mode, tier, _ in validated)
    logger.info(f"Submitted {ign} ({summary}); global score {global_score}")

    return {
        'player_id': player.player_id,
        'ign': ign,
        'global_score': global_score,
        'created': created,
    }


def _resolve_player(store, ign: str, metadata: PlayerMetadata):
    """Find the player by exact IGN or create it. Returns (player, created)."""
    player = store.find_player_by_ign(ign)
    if player is None:
        player = store.create_player(ign, metadata)
        logger.info(f"Created new player {ign}")
        return player, True

    if metadata.supplied():
        store.update_player_metadata(player.player_id, metadata)
    return player, False


def set_banned(store, ign, banned: bool = True) -> dict:
    """
    Ban or unban a player. Banned players keep their records but drop out
    of rank recomputation.

    Raises:
        ValidationError: If the IGN is invalid or unknown
        PersistenceError: If storage fails
    """
    ign = validate_ign(ign)
    try:
        player = store.find_player_by_ign(ign)
        if player is None:
            raise ValidationError(f"Unknown player '{ign}'", ign=ign)
        store.set_banned(player.player_id, banned)
    except TierlistError:
        raise
    except Exception as e:
        raise PersistenceError(f"Storage failure while updating ban for {ign}: {e}") from e

    logger.info(f"{'Banned' if banned else 'Unbanned'} player {ign}")
    return {'player_id': player.player_id, 'ign': ign, 'banned': bool(banned)}
