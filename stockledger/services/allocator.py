# stockledger/services/allocator.py
"""
Batch allocation for outgoing stock.

Strategies:
    FEFO  earliest expiry first; lots without an expiry date go last
    FIFO  oldest lot first (batch creation time)
    LIFO  newest lot first
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Sequence

STRATEGIES = ("FEFO", "FIFO", "LIFO")


@dataclass(frozen=True)
class Candidate:
    batch_id: int
    quantity: int
    created_at: datetime
    expiry_date: Optional[date] = None


@dataclass(frozen=True)
class Allocation:
    batch_id: int
    quantity: int


@dataclass
class AllocationResult:
    requested: int
    allocations: List[Allocation] = field(default_factory=list)

    @property
    def allocated(self) -> int:
        return sum(a.quantity for a in self.allocations)

    @property
    def missing(self) -> int:
        return self.requested - self.allocated


def order_candidates(candidates: Sequence[Candidate], strategy: str) -> List[Candidate]:
    if strategy == "FEFO":
        return sorted(
            candidates,
            key=lambda c: (c.expiry_date is None, c.expiry_date or date.max, c.created_at, c.batch_id),
        )
    if strategy == "LIFO":
        return sorted(candidates, key=lambda c: (c.created_at, c.batch_id), reverse=True)
    return sorted(candidates, key=lambda c: (c.created_at, c.batch_id))


def allocate(requested: int, candidates: Sequence[Candidate], strategy: str = "FEFO") -> AllocationResult:
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown allocation strategy: {strategy}")

    result = AllocationResult(requested=requested)
    remaining = requested
    for candidate in order_candidates(candidates, strategy):
        if remaining <= 0:
            break
        if candidate.quantity <= 0:
            continue
        take = min(remaining, candidate.quantity)
        result.allocations.append(Allocation(batch_id=candidate.batch_id, quantity=take))
        remaining -= take
    return result
