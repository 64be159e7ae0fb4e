"""
vesting.py - Per-user FIFO queue of vesting chunks

Every deposit appends one VestingChunk at the tail. Withdrawals consume from
the head (oldest first): a fully consumed chunk is removed, a partially
consumed chunk is replaced by a residual chunk with the same unlock_at.
Chunks are never merged, so every unlock timestamp stays exactly the one its
deposit produced.

Planning is separated from mutation: plan_consumption() is a pure function
over a sequence of chunks, used both by VestingQueue.consume() and by
withdrawal previews.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, Iterator, Optional, Tuple

from .core import VestingChunk, Timestamp, InsufficientStake
from .fixed_point import split_tax


@dataclass(frozen=True, slots=True)
class ChunkConsumption:
    """
    How much of one chunk a withdrawal takes and where it goes.

    Attributes:
        chunk: The chunk as it was before consumption.
        portion: Amount taken from the chunk.
        net: Part of portion paid to the user.
        tax: Part of portion paid to the treasury (0 once vested).
        vested: Whether the chunk had unlocked at consumption time.
    """
    chunk: VestingChunk
    portion: int
    net: int
    tax: int
    vested: bool

    @property
    def exhausts_chunk(self) -> bool:
        return self.portion == self.chunk.amount


def plan_consumption(
    chunks: Iterable[VestingChunk],
    amount: int,
    now: Timestamp,
    tax_rate: int,
) -> Tuple[ChunkConsumption, ...]:
    """
    Walk chunks oldest-first and take amount in total.

    Args:
        chunks: Chunks in queue order (oldest first)
        amount: Total principal to take
        now: Current time, compared against each chunk's unlock_at
        tax_rate: Percentage withheld from unvested portions

    Returns:
        One ChunkConsumption per touched chunk, in queue order

    Raises:
        InsufficientStake: If the chunks hold less than amount
    """
    remaining = amount
    plan = []
    for chunk in chunks:
        if remaining == 0:
            break
        portion = min(chunk.amount, remaining)
        if chunk.is_vested(now):
            net, tax = portion, 0
            vested = True
        else:
            net, tax = split_tax(portion, tax_rate)
            vested = False
        plan.append(ChunkConsumption(chunk=chunk, portion=portion, net=net, tax=tax, vested=vested))
        remaining -= portion
    if remaining > 0:
        raise InsufficientStake("User does not have enough tokens staked")
    return tuple(plan)


class VestingQueue:
    """
    Ordered chunks of one user's stake, oldest at the head.

    Not thread-safe; owned by a single UserAccount.
    """

    def __init__(self, chunks: Optional[Iterable[VestingChunk]] = None):
        self._chunks: Deque[VestingChunk] = deque(chunks or ())

    def __len__(self) -> int:
        return len(self._chunks)

    def __iter__(self) -> Iterator[VestingChunk]:
        return iter(self._chunks)

    def __repr__(self) -> str:
        return f"VestingQueue({list(self._chunks)!r})"

    def chunks(self) -> Tuple[VestingChunk, ...]:
        """Snapshot of the queue, oldest first."""
        return tuple(self._chunks)

    def total(self) -> int:
        return sum(c.amount for c in self._chunks)

    def vested_amount(self, now: Timestamp) -> int:
        """Sum of chunks already unlocked at now."""
        return sum(c.amount for c in self._chunks if c.is_vested(now))

    def append(self, amount: int, unlock_at: Timestamp) -> VestingChunk:
        """Add a new chunk at the tail and return it."""
        chunk = VestingChunk(amount=amount, unlock_at=unlock_at)
        self._chunks.append(chunk)
        return chunk

    def plan(self, amount: int, now: Timestamp, tax_rate: int) -> Tuple[ChunkConsumption, ...]:
        return plan_consumption(self._chunks, amount, now, tax_rate)

    def consume(self, amount: int, now: Timestamp, tax_rate: int) -> Tuple[ChunkConsumption, ...]:
        """
        Remove amount from the head of the queue.

        The plan is computed in full before the queue is touched, so an
        InsufficientStake leaves the queue unchanged.

        Returns:
            The consumptions applied, oldest chunk first
        """
        plan = self.plan(amount, now, tax_rate)
        for step in plan:
            head = self._chunks.popleft()
            if not step.exhausts_chunk:
                # Residual keeps the original unlock time
                self._chunks.appendleft(
                    VestingChunk(amount=head.amount - step.portion, unlock_at=head.unlock_at)
                )
        return plan

    def copy(self) -> VestingQueue:
        # Chunks are immutable, a shallow copy is independent
        return VestingQueue(self._chunks)
