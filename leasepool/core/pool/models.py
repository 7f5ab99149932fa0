"""Data models for the lease pool"""

from dataclasses import dataclass, asdict
from enum import IntEnum
from typing import Any, Dict, List, Mapping

from leasepool.core.time import format_epoch_ms


class ItemState(IntEnum):
    """Stored as INTEGER in items.state"""
    AVAILABLE = 0
    LEASED = 1

    @property
    def label(self) -> str:
        return "Available" if self is ItemState.AVAILABLE else "Leased"


@dataclass(frozen=True)
class Item:
    """A unit of allocatable content held in the pool

    Attributes:
        id: Store-assigned identifier, never reused
        value: Payload string, unique across the pool
        state: Available or Leased
        leased_at: Epoch ms of the latest acquisition (0 while available)
        created_at: Epoch ms of insertion
    """
    id: int
    value: str
    state: ItemState
    leased_at: int
    created_at: int

    @property
    def is_leased(self) -> bool:
        return self.state is ItemState.LEASED

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Item":
        return cls(
            id=int(row["id"]),
            value=row["value"],
            state=ItemState(int(row["state"])),
            leased_at=int(row["leased_at"] or 0),
            created_at=int(row["created_at"] or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "value": self.value,
            "state": self.state.name.lower(),
            "status": self.state.label,
            "leased_at": self.leased_at,
            "created_at": self.created_at,
            "created_display": format_epoch_ms(self.created_at),
        }


@dataclass(frozen=True)
class PoolStats:
    """Aggregate counts; approximate=True when total is a store estimate"""
    total: int
    leased: int
    available: int
    approximate: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ItemPage:
    """One window of a listing.

    total is exact (or the stats estimate) on the cached-stats path and a
    lower bound when estimated=True.
    """
    items: List[Item]
    page: int
    page_size: int
    has_more: bool
    total: int
    estimated: bool

    @property
    def pages(self) -> int:
        return self.page + 1 if self.has_more else self.page

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "page": self.page,
            "page_size": self.page_size,
            "pages": self.pages,
            "has_more": self.has_more,
            "total": self.total,
            "estimated": self.estimated,
        }
