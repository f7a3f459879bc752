"""
Sequential, resumable batch enrichment
"""

import logging
import time
from datetime import datetime
from typing import Callable, Iterable, Optional

from scrapers.errors import FATAL_ERRORS

logger = logging.getLogger(__name__)


def now_iso() -> str:
    return datetime.now().isoformat()


def default_error_record(item, error: Exception) -> dict:
    record = dict(item) if isinstance(item, dict) else {"item": item}
    record["error"] = str(error)
    record["timestamp"] = now_iso()
    return record


def is_failure(record: dict) -> bool:
    return bool(record.get("error") or record.get("parsing_error"))


def resume_keys(records: Iterable[dict], key: Callable[[dict], str], include_failed: bool = True) -> set:
    """Keys already present in a saved output. Failed records count unless include_failed is False."""
    return {key(r) for r in records if include_failed or not is_failure(r)}


def enrich_batch(items: Iterable,
                 process: Callable,
                 key: Callable = lambda item: item,
                 delay: float = 1.0,
                 done: Optional[set] = None,
                 existing: Optional[list] = None,
                 save: Optional[Callable[[list], None]] = None,
                 save_every: int = 1,
                 on_error: Callable = default_error_record,
                 sleep: Callable[[float], None] = time.sleep) -> list:
    """
    Process items one at a time, skipping keys already in `done`.

    Args:
        items: Work items in order (SKUs, medicine dicts, ...)
        process: item -> result record; may raise
        key: item -> resume key
        delay: Seconds between consecutive items
        done: Resume set of keys already handled
        existing: Records from earlier runs; new records are appended to a copy
        save: Called with all records so far every `save_every` items and at the end
        on_error: (item, exception) -> failure record

    Returns:
        existing records followed by one record per processed item, in order

    TokenNotFound or TokenRefreshFailed from `process` stops the batch after saving
    what was collected. Repeated keys are processed once.
    """
    done = done or set()
    results = list(existing or [])
    seen = set(done)
    pending = []
    for item in items:
        if key(item) not in seen:
            seen.add(key(item))
            pending.append(item)
    total = len(pending)
    logger.info(f"Batch: {total} to process, {len(done)} already done")

    for i, item in enumerate(pending):
        if i > 0 and delay > 0:
            sleep(delay)

        try:
            record = process(item)
        except FATAL_ERRORS:
            if save:
                save(results)
            raise
        except Exception as e:
            logger.warning(f"[{i+1}/{total}] {key(item)} failed: {e}")
            record = on_error(item, e)
        else:
            logger.info(f"[{i+1}/{total}] {key(item)} done")
        results.append(record)

        if save and (i + 1) % save_every == 0:
            save(results)

    if save:
        save(results)
    return results
