# leasepool/core/storage/paths.py
from __future__ import annotations
from pathlib import Path
import os


def leasepool_home() -> Path:
    """Root directory for LeasePool state (~/.leasepool, or $LEASEPOOL_HOME)"""
    override = os.getenv("LEASEPOOL_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".leasepool"


def store_root() -> Path:
    """Directory holding the SQLite database"""
    return leasepool_home() / "store"


def data_root() -> Path:
    """Directory holding source files for bulk import"""
    return leasepool_home() / "data"


def default_db_path() -> Path:
    return store_root() / "pool.sqlite"


def default_source_file() -> Path:
    return data_root() / "items.txt"
