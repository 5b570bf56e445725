"""
Bulk Tier Submission

Applies a batch of tier submissions pasted or uploaded by an operator.
Each row is validated and applied on its own: a bad or failing row is
reported and the rest of the batch carries on. Rows are applied one at a
time, in input order, and progress is reported after every row.

Two input formats are accepted.

Line format, one player per line, gamemode/tier pairs repeating:

    PlayerA,Crystal,HT1
    PlayerA,Sword,LT1
    PlayerB,Mace,HT3,Axe,LT2

Tabular format, recognized by a header row starting with IGN. Columns
named <Gamemode>_Tier and <Gamemode>_Points are read, other unrecognized
columns are ignored, and an empty tier cell leaves that gamemode alone:

    IGN,Region,Device,Java_Username,Crystal_Tier,Crystal_Points,Sword_Tier,Sword_Points
    PlayerOne,NA,PC,JavaUser1,HT1,50,LT2,35
    PlayerTwo,EU,Mobile,,HT2,40,Not Ranked,0

Re-running the same batch gives the same final state: every row is an
upsert, not an increment.

Usage:
    from tierlist.ingestion.bulk import run_bulk_submission
    result = run_bulk_submission(store, text)
    result['successful'], result['failed'], result['errors']
"""

import csv
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from enum import Enum

from tierlist.config import (
    MAX_INPUT_SIZE,
    MAX_REPORTED_ERRORS,
    PERSIST_TIMEOUT_SECONDS,
    RECOMPUTE_RANKS_AFTER_BATCH,
)
from tierlist.exceptions import TierlistError, ValidationError, BatchFormatError, PersistenceError
from tierlist.ingestion.submission import (
    submit_results,
    validate_ign,
    validate_metadata,
    validate_results,
)
from tierlist.scoring.ranking import recompute_ranks
from tierlist.scoring.taxonomy import Gamemode
from tierlist.utils import (
    setup_logging,
    validate_input_size,
    strip_markdown,
    COMMENT_RE,
    MODE_COLUMN_RE,
)

# --- Module Logger ---
logger = setup_logging(__name__)

SAMPLE_BATCH = """PlayerA,Crystal,HT1
PlayerA,Sword,LT1
PlayerB,Mace,HT3,Axe,LT2"""

SAMPLE_TABULAR_BATCH = """IGN,Region,Device,Java_Username,Crystal_Tier,Crystal_Points,Sword_Tier,Sword_Points,Mace_Tier,Mace_Points
PlayerOne,NA,PC,JavaUser1,HT1,50,LT2,35,Not Ranked,0
PlayerTwo,EU,Mobile,,HT2,40,HT3,30,LT1,45"""

METADATA_COLUMNS = {
    'region': 'region',
    'device': 'device',
    'java_username': 'java_username',
    'java username': 'java_username',
    'java': 'java_username',
}


class BatchState(Enum):
    PARSED = "parsed"
    VALIDATING = "validating"
    APPLYING = "applying"
    COMPLETED = "completed"


@dataclass
class BatchRow:
    """One candidate row. `error` is set when the row could not be parsed."""
    line_number: int
    raw: str
    ign: str = ""
    results: list = field(default_factory=list)  # (gamemode, tier, raw_score) strings
    metadata: dict = field(default_factory=dict)
    error: str | None = None

    def describe(self) -> str:
        where = f"Line {self.line_number}" if self.raw else f"Record {self.line_number}"
        if self.ign:
            return f"{where} ({self.ign})"
        return where


@dataclass
class ParsedBatch:
    format: str  # "line" or "tabular"
    rows: list
    header: str | None = None


# --- Parsing ---
def _split_cells(line: str) -> list[str]:
    cells = next(csv.reader([line], skipinitialspace=True), [])
    cells = [strip_markdown(c) for c in cells]
    while cells and not cells[-1]:
        cells.pop()
    return cells


def _parse_line_row(line_number: int, line: str) -> BatchRow:
    cells = _split_cells(line)
    row = BatchRow(line_number=line_number, raw=line, ign=cells[0] if cells else "")
    pairs = cells[1:]

    if not row.ign or not pairs or len(pairs) % 2 or not all(pairs):
        row.error = "Expected IGN followed by one or more Gamemode,Tier pairs"
        return row

    row.results = [(pairs[i], pairs[i + 1], None) for i in range(0, len(pairs), 2)]
    return row


def _map_header(header_cells: list[str]) -> dict:
    """
    Locate the IGN, metadata and per-gamemode columns of a tabular header.

    Returns:
        Dict with 'ign' index, 'metadata' {field: index} and
        'modes' {Gamemode: {'tier': index, 'points': index}}
    """
    columns = {'ign': None, 'metadata': {}, 'modes': {}}

    for index, cell in enumerate(header_cells):
        name = cell.strip().lower()
        if name == 'ign':
            columns['ign'] = index
            continue
        if name in METADATA_COLUMNS:
            columns['metadata'][METADATA_COLUMNS[name]] = index
            continue

        m = MODE_COLUMN_RE.match(cell.strip())
        if not m:
            logger.debug(f"Ignoring column '{cell}'")
            continue
        mode_name, kind = m.groups()
        try:
            mode = Gamemode.parse(mode_name)
        except ValidationError:
            logger.debug(f"Ignoring column '{cell}' (unknown gamemode)")
            continue
        columns['modes'].setdefault(mode, {})[kind.lower()] = index

    return columns


def _parse_tabular_row(line_number: int, line: str, columns: dict) -> BatchRow:
    cells = _split_cells(line)

    def cell(index):
        if index is None or index >= len(cells):
            return ""
        return cells[index]

    row = BatchRow(line_number=line_number, raw=line, ign=cell(columns['ign']))
    for key, index in columns['metadata'].items():
        if cell(index):
            row.metadata[key] = cell(index)

    for mode, indexes in columns['modes'].items():
        tier = cell(indexes.get('tier'))
        if tier:
            row.results.append((mode.value, tier, cell(indexes.get('points')) or None))

    if not row.ign or not row.results:
        row.error = "Expected an IGN and at least one gamemode tier"
    return row


def parse_batch(text: str) -> ParsedBatch:
    """
    Split batch text into candidate rows.

    Rows missing an IGN or any gamemode/tier pair are kept with `error`
    set so they are counted as failures rather than dropped silently.

    Args:
        text: Raw batch text (line or tabular format)

    Returns:
        ParsedBatch

    Raises:
        BatchFormatError: If the text is too large, empty, or a tabular
            header has no IGN column or no data rows
    """
    try:
        validate_input_size(text, MAX_INPUT_SIZE)
    except ValueError as e:
        raise BatchFormatError(str(e)) from e

    lines = [
        (number, line.strip())
        for number, line in enumerate(text.splitlines(), start=1)
        if line.strip() and not COMMENT_RE.match(line)
    ]
    if not lines:
        raise BatchFormatError("No rows found in batch")

    first_number, first_line = lines[0]
    first_cells = _split_cells(first_line)

    if first_cells and first_cells[0].lower() == 'ign':
        columns = _map_header(first_cells)
        if not columns['modes']:
            raise BatchFormatError("Header has no <Gamemode>_Tier columns")
        if len(lines) == 1:
            raise BatchFormatError("Header found but no data rows")
        rows = [_parse_tabular_row(number, line, columns) for number, line in lines[1:]]
        return ParsedBatch(format="tabular", rows=rows, header=first_line)

    rows = [_parse_line_row(number, line) for number, line in lines]
    return ParsedBatch(format="line", rows=rows)


def rows_from_records(records) -> ParsedBatch:
    """
    Build a batch from already-structured records.

    Each record is a dict with 'ign' and either 'results' (list of
    (gamemode, tier[, raw_score])) or single 'gamemode'/'tier' keys, plus
    optional 'raw_score', 'region', 'device' and 'java_username'. A record
    that cannot be read this way becomes a failed row.
    """
    rows = []
    for number, record in enumerate(records, start=1):
        row = BatchRow(line_number=number, raw="")
        try:
            row.ign = str(record.get('ign') or "").strip()
            if 'results' in record:
                row.results = [tuple(r) for r in record['results']]
            elif record.get('gamemode') is not None or record.get('tier') is not None:
                row.results = [(record.get('gamemode'), record.get('tier'), record.get('raw_score'))]
            row.metadata = {k: record[k] for k in ('region', 'device', 'java_username') if record.get(k)}
        except (AttributeError, TypeError, ValueError) as e:
            row.results = []
            row.error = f"Malformed record: {e}"
            rows.append(row)
            continue
        if not row.ign or not row.results:
            row.error = "Expected an IGN and at least one gamemode tier"
        rows.append(row)
    return ParsedBatch(format="records", rows=rows)


# --- Pipeline ---
class BulkSubmission:
    """
    One batch moving through PARSED -> VALIDATING -> APPLYING -> COMPLETED.

    Args:
        store: TierStore implementation
        batch: ParsedBatch from parse_batch() or rows_from_records()
        on_progress: Optional callback(processed, total), called with 0 before the
            first row and then after every row
        cancel_event: Optional threading.Event; checked before each row is applied
        timeout: Seconds to wait for one row's storage work
        dry_run: Validate only, never touch storage
    """

    def __init__(self, store, batch: ParsedBatch, on_progress=None, cancel_event=None,
                 timeout: float = PERSIST_TIMEOUT_SECONDS, dry_run: bool = False):
        self.store = store
        self.batch = batch
        self.on_progress = on_progress
        self.cancel_event = cancel_event or threading.Event()
        self.timeout = timeout
        self.dry_run = dry_run
        self.state = BatchState.PARSED
        self.total = len(batch.rows)
        self.processed = 0
        self.successful = 0
        self.failed = 0
        self.errors: list[str] = []
        self.failed_rows: list[BatchRow] = []
        self._late_row = None

    def validate(self) -> list[tuple]:
        """
        Validate every row independently.

        Returns:
            List of (row, prepared, error): prepared is (ign, results, metadata)
            when the row is valid, else error holds the ValidationError
        """
        self.state = BatchState.VALIDATING
        logger.info(f"Validating {self.total} rows...")

        checked = []
        for row in self.batch.rows:
            try:
                if row.error:
                    raise ValidationError(row.error, ign=row.ign or None)
                ign = validate_ign(row.ign)
                results = validate_results(row.results, ign)
                metadata = validate_metadata(row.metadata, ign)
                checked.append((row, (ign, results, metadata), None))
            except ValidationError as e:
                checked.append((row, None, e))

        invalid = sum(1 for _, _, error in checked if error is not None)
        logger.info(f"  {self.total - invalid} valid, {invalid} invalid")
        return checked

    def run(self) -> dict:
        checked = self.validate()

        self.state = BatchState.APPLYING
        logger.info(f"{'[DRY RUN] ' if self.dry_run else ''}Applying {self.total} rows...")

        if self.on_progress is not None:
            self.on_progress(0, self.total)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bulk-submission")
        cancelled = False
        try:
            for row, prepared, error in checked:
                if self.cancel_event.is_set():
                    cancelled = True
                    logger.warning(
                        f"Batch cancelled after {self.processed}/{self.total} rows"
                    )
                    break

                if error is None and not self.dry_run:
                    error = self._apply_row(executor, prepared)

                if error is None:
                    self.successful += 1
                else:
                    self._record_failure(row, error)

                self.processed += 1
                logger.debug(f"  Processed row {self.processed}/{self.total}")
                if self.on_progress is not None:
                    self.on_progress(self.processed, self.total)
        finally:
            self._drain_late_row()
            executor.shutdown(wait=True)

        self.state = BatchState.COMPLETED
        logger.info(
            f"Bulk submission complete: {self.successful} succeeded, {self.failed} failed"
            + (f", {self.total - self.processed} skipped" if cancelled else "")
        )
        return self._result(cancelled)

    def _apply_row(self, executor, prepared) -> TierlistError | None:
        """Apply one valid row, waiting at most `timeout` seconds once it starts."""
        self._drain_late_row()
        ign, results, metadata = prepared
        future = executor.submit(submit_results, self.store, ign, results, metadata)
        try:
            future.result(timeout=self.timeout)
        except FuturesTimeoutError:
            # The row keeps running to completion; it is never interrupted mid-write
            self._late_row = (ign, future)
            return PersistenceError(f"Timed out after {self.timeout:g}s waiting for storage")
        except TierlistError as e:
            return e
        return None

    def _drain_late_row(self) -> None:
        """Wait for a timed-out row to finish before anything else touches storage."""
        if self._late_row is None:
            return
        ign, future = self._late_row
        self._late_row = None
        error = future.exception()
        if error is None:
            logger.warning(f"  Timed-out row for {ign} completed late; resubmit to confirm")
        else:
            logger.warning(f"  Timed-out row for {ign} finished with error: {error}")

    def _record_failure(self, row: BatchRow, error: TierlistError) -> None:
        self.failed += 1
        self.failed_rows.append(row)
        message = f"{row.describe()}: {error}"
        logger.warning(f"  {message}")
        if len(self.errors) < MAX_REPORTED_ERRORS:
            self.errors.append(message)

    def failed_batch_text(self) -> str:
        """Failed rows as batch text (with header if tabular), ready to fix and resubmit."""
        lines = [row.raw for row in self.failed_rows if row.raw]
        if self.batch.header and lines:
            lines.insert(0, self.batch.header)
        return "\n".join(lines)

    def _result(self, cancelled: bool) -> dict:
        hidden = self.failed - len(self.errors)
        errors = list(self.errors)
        if hidden > 0:
            errors.append(f"... and {hidden} more errors")
        return {
            'state': self.state.value,
            'total': self.total,
            'processed': self.processed,
            'successful': self.successful,
            'failed': self.failed,
            'skipped': self.total - self.processed,
            'errors': errors,
            'failed_batch': self.failed_batch_text(),
            'cancelled': cancelled,
            'dry_run': self.dry_run,
            'ranks': None,
        }


def run_bulk_submission(
    store,
    batch,
    on_progress=None,
    cancel_event=None,
    dry_run: bool = False,
    recompute: bool = RECOMPUTE_RANKS_AFTER_BATCH,
    timeout: float = PERSIST_TIMEOUT_SECONDS,
) -> dict:
    """
    Main entry point for bulk tier submission.

    Args:
        store: TierStore implementation
        batch: Batch text (line or tabular format) or a list of record dicts
        on_progress: Optional callback(processed, total), starting at 0, then after every row
        cancel_event: Optional threading.Event for cooperative cancellation
        dry_run: If True, validate only without saving
        recompute: Recompute and persist overall ranks once after the batch
        timeout: Seconds to wait for one row's storage work

    Returns:
        Dictionary with:
            - successful / failed / skipped / total / processed: row counts
            - errors: per-row messages (bounded), each naming the row's IGN
            - failed_batch: failed rows as resubmittable text
            - cancelled, dry_run, state
            - ranks: list of (player_id, position) if ranks were recomputed

    Raises:
        BatchFormatError: If the batch cannot be parsed into any rows
    """
    logger.info("Parsing bulk submission...")
    if isinstance(batch, str):
        parsed = parse_batch(batch)
    else:
        parsed = rows_from_records(batch)
        if not parsed.rows:
            raise BatchFormatError("No rows found in batch")
    logger.info(f"  Parsed {len(parsed.rows)} rows ({parsed.format} format)")

    submission = BulkSubmission(
        store, parsed,
        on_progress=on_progress,
        cancel_event=cancel_event,
        timeout=timeout,
        dry_run=dry_run,
    )
    result = submission.run()

    if recompute and not dry_run and result['successful'] > 0:
        logger.info("Recomputing overall ranks...")
        try:
            result['ranks'] = recompute_ranks(store)
        except Exception as e:
            logger.error(f"Rank recompute failed after batch: {e}")
            result['rank_error'] = str(e)

    return result
