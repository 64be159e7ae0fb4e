"""
Core types for the stake distributor.

This module provides the foundational data structures and protocols for the distributor:
1. Protocols: FungibleAssetLedger, AuthorizationGuard and Clock collaborators
2. Immutable data structures: VestingChunk, Transfer, events, OperationRecord
3. Exceptions: DistributorError and the operation error taxonomy
4. Constants and configuration defaults
5. Canonical serialization used for state fingerprints

Nothing in this module mutates distributor state.
"""

from __future__ import annotations
from dataclasses import dataclass
import hashlib
from typing import (
    Dict, List, Optional, Any, Protocol, Tuple, Union, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed-point scale of the reward-per-stake index.
SCALE = 10 ** 18

# Tax rates are whole percentages.
PERCENT_BASE = 100

# Reserved account for token issuance. Exempt from balance checks.
SYSTEM_WALLET = "system"

# Role identifiers.
DEFAULT_ADMIN_ROLE = "DEFAULT_ADMIN_ROLE"
DISTRIBUTOR_ROLE = "DISTRIBUTOR_ROLE"

# Token precision of the stake and reward tokens.
STAKE_TOKEN_DECIMALS = 9
REWARD_TOKEN_DECIMALS = 6

# Production defaults.
DEFAULT_MIN_STAKE = 250_000 * 10 ** STAKE_TOKEN_DECIMALS
DEFAULT_VESTING_PERIOD = 604_800  # 7 days
DEFAULT_TAX_RATE = 10
DEFAULT_MIN_DISTRIBUTE_AMOUNT = 1 * 10 ** REWARD_TOKEN_DECIMALS


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Account identifier (wallet address, user id).
Account = str

# Unix timestamp in whole seconds.
Timestamp = int

# JSON-compatible serialized state.
Json = Dict[str, Any]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class FungibleAssetLedger(Protocol):
    """
    Interface to a fungible token the distributor holds in custody.

    The distributor only ever calls these four operations. Implementations
    raise InsufficientBalance / InsufficientAllowance when a transfer cannot
    be honoured and must not partially apply a failed transfer.
    """

    symbol: str

    def balance_of(self, account: Account) -> int:
        """Return the token balance of an account (0 if unknown)."""
        ...

    def allowance(self, owner: Account, spender: Account) -> int:
        """Return how much spender may pull from owner."""
        ...

    def transfer(self, sender: Account, to: Account, amount: int) -> None:
        """Move amount from sender to to."""
        ...

    def transfer_from(self, spender: Account, owner: Account, to: Account, amount: int) -> None:
        """Move amount from owner to to, consuming spender's allowance."""
        ...


@runtime_checkable
class AuthorizationGuard(Protocol):
    """Capability check guarding Distribute."""

    def is_authorized_distributor(self, caller: Account) -> bool:
        ...


@runtime_checkable
class Clock(Protocol):
    """Source of the current time in Unix seconds."""

    def now(self) -> Timestamp:
        ...


# ============================================================================
# EXCEPTIONS
# ============================================================================

class DistributorError(Exception):
    """Base exception for all distributor-related errors."""
    pass


class InvalidAmount(DistributorError):
    """Raised when an operation amount is zero, negative or not an integer."""
    pass


class BelowMinimumDistribution(InvalidAmount):
    """Raised when a distribution is smaller than the configured floor."""
    pass


class InsufficientBalance(DistributorError):
    """Raised when an account holds fewer tokens than an operation needs."""
    pass


class InsufficientAllowance(DistributorError):
    """Raised when an account has not approved the distributor for enough tokens."""
    pass


class BelowMinimumStake(DistributorError):
    """Raised when a deposit would leave the user below the minimum stake."""
    pass


class BelowMinimumStakeRemainder(DistributorError):
    """Raised when a partial withdrawal would leave a non-zero stake below the minimum."""
    pass


class InsufficientStake(DistributorError):
    """Raised when a withdrawal exceeds the user's stake."""
    pass


class Unauthorized(DistributorError):
    """Raised when the caller lacks the capability an operation requires."""
    pass


class NothingStaked(DistributorError):
    """Raised when an operation needs stake and there is none."""
    pass


class NoRewardsToClaim(DistributorError):
    """Raised when a claim finds nothing accrued."""
    pass


class AlreadyInitialized(DistributorError):
    """Raised on a second call to initialize()."""
    pass


class NotInitialized(DistributorError):
    """Raised when the distributor is used before initialize()."""
    pass


class StateMigrationError(DistributorError):
    """Raised when a persisted state payload cannot be upgraded."""
    pass


class ReentrantCall(DistributorError):
    """Raised when a collaborator calls back into an operation in progress."""
    pass


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def is_token_amount(value: Any) -> bool:
    """True for non-negative Python ints (bool excluded)."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def require_positive_amount(value: Any, message: str) -> int:
    """
    Return value if it is a positive integer token amount.

    Raises:
        InvalidAmount: If value is zero, negative, a bool or not an int.
    """
    if not is_token_amount(value) or value == 0:
        raise InvalidAmount(message)
    return value


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class VestingChunk:
    """
    One deposit's worth of stake and the time it stops being taxed.

    Attributes:
        amount: Stake still locked in this chunk (always > 0).
        unlock_at: Deposit time plus the vesting period.
    """
    amount: int
    unlock_at: Timestamp

    def __post_init__(self):
        if not is_token_amount(self.amount) or self.amount == 0:
            raise ValueError(f"VestingChunk amount must be a positive int, got {self.amount!r}")
        if not isinstance(self.unlock_at, int) or isinstance(self.unlock_at, bool):
            raise ValueError(f"VestingChunk unlock_at must be an int timestamp, got {self.unlock_at!r}")

    def is_vested(self, now: Timestamp) -> bool:
        return now >= self.unlock_at

    def __repr__(self) -> str:
        return f"VestingChunk({self.amount} @ {self.unlock_at})"


@dataclass(frozen=True, slots=True)
class Transfer:
    """
    A single token movement requested from a FungibleAssetLedger.

    Attributes:
        amount: Base units to move (must be positive).
        token: Symbol of the token being moved.
        source: Account debited.
        dest: Account credited.
        spender: Account consuming allowance for pull transfers, None for push transfers.
    """
    amount: int
    token: str
    source: Account
    dest: Account
    spender: Optional[Account] = None

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Transfer source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Transfer dest cannot be empty")
        if not self.token or not self.token.strip():
            raise ValueError("Transfer token cannot be empty")
        if not is_token_amount(self.amount) or self.amount == 0:
            raise ValueError(f"Transfer amount must be a positive int, got {self.amount!r}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        via = f" via {self.spender}" if self.spender else ""
        return f"Transfer({self.amount} {self.token}: {self.source}→{self.dest}{via})"


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Deposited:
    user: Account
    amount: int


@dataclass(frozen=True, slots=True)
class Distributed:
    amount: int
    total_stake: int


@dataclass(frozen=True, slots=True)
class Claimed:
    user: Account
    amount: int


@dataclass(frozen=True, slots=True)
class Withdrawn:
    user: Account
    net_principal: int
    rewards_paid: int


Event = Union[Deposited, Distributed, Claimed, Withdrawn]


@dataclass(frozen=True, slots=True)
class WithdrawalQuote:
    """
    What a withdrawal pays out, computed without mutating anything.

    Attributes:
        amount: Principal requested.
        net_principal: Stake tokens the user receives.
        tax: Stake tokens routed to the treasury.
        rewards: Reward tokens auto-claimed alongside the withdrawal.
        vested_portion: Part of amount drawn from unlocked chunks.
    """
    amount: int
    net_principal: int
    tax: int
    rewards: int
    vested_portion: int

    @property
    def unvested_portion(self) -> int:
        return self.amount - self.vested_portion


@dataclass(frozen=True, slots=True)
class OperationRecord:
    """
    Immutable audit record of one successful distributor operation.

    Attributes:
        sequence_number: Monotonic position in the engine's operation log.
        operation: "deposit", "distribute", "claim" or "withdraw".
        caller: Account that invoked the operation.
        timestamp: Clock reading when the operation executed.
        transfers: Token movements performed, in order.
        events: Events emitted.
    """
    sequence_number: int
    operation: str
    caller: Account
    timestamp: Timestamp
    transfers: Tuple[Transfer, ...]
    events: Tuple[Event, ...]

    def __repr__(self) -> str:
        return (f"OperationRecord(#{self.sequence_number} {self.operation} by {self.caller} "
                f"@ {self.timestamp}, {len(self.transfers)} transfers)")


# ============================================================================
# CANONICAL SERIALIZATION
# ============================================================================

def _canonicalize(value: Any) -> str:
    """
    Encode an exported distributor payload as a canonical string.

    Exported state holds account names as mapping keys, int amounts that may
    exceed 2**64 (reward_per_stake is scaled by 1e18), [amount, unlock_at]
    chunk pairs and config strings. Every scalar carries a type tag so
    "1000" and 1000 (or True and 1) encode differently. Mappings are sorted
    by encoded key, so account insertion order does not affect the result.

    Raises:
        TypeError: For None, floats or any other type an export never contains
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, dict):
        items = sorted((_canonicalize(k), _canonicalize(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(item) for item in value) + "]"
    raise TypeError(f"Cannot fingerprint {type(value).__name__}: {value!r}")


def fingerprint(payload: Any) -> str:
    """Return a short content hash of a JSON-like payload."""
    return hashlib.sha256(_canonicalize(payload).encode()).hexdigest()[:16]


def chunks_to_list(chunks: List[VestingChunk]) -> List[List[int]]:
    """Serialize chunks as [amount, unlock_at] pairs."""
    return [[c.amount, c.unlock_at] for c in chunks]
