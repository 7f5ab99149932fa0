"""Source-file import and export for the item pool.

Source files are newline-delimited, one value per line. Loading streams
the file through BulkMutator.ingest, so memory stays bounded by one batch.

Saving replaces the source file atomically:
1. Copy the current file to <file>.backup.<epoch-seconds>
2. Write <file>.tmp and fsync it
3. Rename <file>.tmp over <file>
4. Load the new file into the store
"""

import logging
import os
import shutil
from pathlib import Path
from typing import IO, Iterable, Iterator, List, Union

from leasepool.core.pool.bulk import BulkMutator
from leasepool.core.pool.errors import ValidationRejected
from leasepool.core.pool.validation import filter_valid

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def iter_source_lines(path: PathLike) -> Iterator[str]:
    """Yield stripped, non-empty lines of a source file"""
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            line = line.strip()
            if line:
                yield line


def load_file(bulk: BulkMutator, path: PathLike) -> int:
    """Ingest every valid line of a source file

    Returns:
        Rows newly created (0 when the file does not exist)

    Raises:
        PartialBatchFailure: A batch failed mid-load
    """
    path = Path(path)
    if not path.exists():
        logger.warning(f"Source file not found: {path}")
        return 0

    inserted = bulk.ingest(iter_source_lines(path))
    logger.info(f"Loaded {inserted} new items from {path}")
    return inserted


def save_file(bulk: BulkMutator, values: Iterable[object], path: PathLike, backup_suffix: str) -> int:
    """Replace the source file with the valid values, then load it

    Args:
        bulk: Mutator used to load the new file
        values: Candidate values; malformed ones are dropped
        path: Source file to replace
        backup_suffix: Suffix for the backup copy (typically epoch seconds)

    Returns:
        Number of valid values written

    Raises:
        ValidationRejected: None of the values is valid
    """
    path = Path(path)
    valid: List[str] = list(filter_valid(values))
    if not valid:
        raise ValidationRejected(None, "No valid values provided")

    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        backup = path.with_name(f"{path.name}.backup.{backup_suffix}")
        shutil.copy2(path, backup)
        logger.info(f"Backed up {path} to {backup}")

    tmp = path.with_name(f"{path.name}.tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        f.write("\n".join(valid))
        f.write("\n")
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)

    load_file(bulk, path)
    return len(valid)


def export_values(bulk: BulkMutator, stream: IO[str]) -> int:
    """Write every stored value, ordered by id, one per line

    Returns:
        Number of values written
    """
    count = 0
    for value in bulk.iter_values():
        stream.write(value)
        stream.write("\n")
        count += 1
    return count


def export_file(bulk: BulkMutator, path: PathLike) -> int:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        count = export_values(bulk, f)
    logger.info(f"Exported {count} items to {path}")
    return count
