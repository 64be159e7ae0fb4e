"""
state.py - The distributor's single-owner state aggregate

LedgerState bundles the immutable configuration, the StakeLedger and the
RewardAccumulator. The engine holds exactly one LedgerState and restores it
from a Savepoint when an operation has to be rolled back. There is no ambient
global state anywhere in the package.

Also provides:
    - DistributorConfig: validated, frozen configuration
    - clone(): fully independent deep copy
    - savepoint() / rollback(): per-operation undo
    - to_dict() / from_dict(): versioned serialization (see migrations.py)
    - fingerprint(): content hash for determinism checks
    - check_invariants(): stake-sum and chunk-sum verification
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from .core import (
    Account, Json, PERCENT_BASE, StateMigrationError,
    fingerprint, is_token_amount,
)
from .stake_ledger import StakeLedger, UserAccount
from .rewards import RewardAccumulator
from .migrations import CURRENT_STATE_VERSION, migrate_state_dict


@dataclass(frozen=True, slots=True)
class DistributorConfig:
    """
    Configuration fixed at initialization.

    Attributes:
        stake_token: Symbol of the token users lock.
        reward_token: Symbol of the token distributed as rewards.
        treasury: Account receiving early-withdrawal tax.
        min_stake: Smallest non-zero stake a user may hold.
        vesting_period: Seconds a chunk stays taxable after its deposit.
        tax_rate: Whole percentage withheld from unvested withdrawals (0-100).
        min_distribute_amount: Smallest accepted Distribute amount (0 disables the floor).
    """
    stake_token: str
    reward_token: str
    treasury: Account
    min_stake: int
    vesting_period: int
    tax_rate: int
    min_distribute_amount: int = 0

    def __post_init__(self):
        if not self.stake_token or not self.stake_token.strip():
            raise ValueError("stake_token cannot be empty")
        if not self.reward_token or not self.reward_token.strip():
            raise ValueError("reward_token cannot be empty")
        if not self.treasury or not self.treasury.strip():
            raise ValueError("treasury cannot be empty")
        for name in ('min_stake', 'vesting_period', 'min_distribute_amount'):
            value = getattr(self, name)
            if not is_token_amount(value):
                raise ValueError(f"{name} must be a non-negative int, got {value!r}")
        if not is_token_amount(self.tax_rate) or self.tax_rate > PERCENT_BASE:
            raise ValueError(f"tax_rate must be an int in 0..{PERCENT_BASE}, got {self.tax_rate!r}")

    def to_dict(self) -> Json:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Json) -> DistributorConfig:
        return cls(**data)


@dataclass(frozen=True, slots=True)
class Savepoint:
    """
    Pre-operation copy of the parts of LedgerState one operation may touch.

    Attributes:
        total_stake: Global stake before the operation.
        rewards: Copy of the reward accumulator.
        user: Account the operation acts on, None for Distribute.
        account: Copy of that user's account, None if it did not exist yet.
    """
    total_stake: int
    rewards: RewardAccumulator
    user: Optional[Account]
    account: Optional[UserAccount]


class LedgerState:
    """
    All mutable distributor state.

    Not thread-safe. The engine is its only writer.
    """

    def __init__(self, config: DistributorConfig):
        self.config = config
        self.stakes = StakeLedger(config.min_stake)
        self.rewards = RewardAccumulator()

    @property
    def total_stake(self) -> int:
        return self.stakes.total_stake

    def clone(self) -> LedgerState:
        """
        Create a deep copy of this state.

        Modifications to the clone never affect the original, and vice versa.
        """
        cloned = LedgerState.__new__(LedgerState)
        cloned.config = self.config
        cloned.stakes = self.stakes.copy()
        cloned.rewards = self.rewards.copy()
        return cloned

    def savepoint(self, user: Optional[Account] = None) -> Savepoint:
        """
        Capture what one operation can change: the global totals and,
        if given, a single user's account.
        """
        account = self.stakes.get(user) if user is not None else None
        return Savepoint(
            total_stake=self.stakes.total_stake,
            rewards=self.rewards.copy(),
            user=user,
            account=account.copy() if account is not None else None,
        )

    def rollback(self, savepoint: Savepoint) -> None:
        """Restore the state captured by savepoint()."""
        self.stakes.total_stake = savepoint.total_stake
        self.rewards = savepoint.rewards
        if savepoint.user is not None:
            if savepoint.account is None:
                # Account was opened by the failed operation
                self.stakes.accounts.pop(savepoint.user, None)
            else:
                self.stakes.accounts[savepoint.user] = savepoint.account

    # ========================================================================
    # SERIALIZATION
    # ========================================================================

    def to_dict(self) -> Json:
        """Serialize at the current schema version."""
        return {
            'state_version': CURRENT_STATE_VERSION,
            'config': self.config.to_dict(),
            'total_stake': self.stakes.total_stake,
            'rewards': self.rewards.to_dict(),
            'accounts': {u: self.stakes.accounts[u].to_dict() for u in self.stakes.users()},
        }

    @classmethod
    def from_dict(cls, payload: Any) -> LedgerState:
        """
        Rebuild state from a serialized payload of any supported version.

        Raises:
            StateMigrationError: If the payload cannot be migrated or violates
                the stake invariants after loading
        """
        data = migrate_state_dict(payload)
        try:
            state = cls(DistributorConfig.from_dict(data['config']))
            state.rewards = RewardAccumulator.from_dict(data['rewards'])
            for user, raw in data['accounts'].items():
                state.stakes.accounts[user] = UserAccount.from_dict(user, raw)
            state.stakes.total_stake = data['total_stake']
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StateMigrationError(f"Malformed distributor state: {e}") from e

        problems = state.check_invariants()
        if problems:
            raise StateMigrationError(f"Loaded state violates invariants: {problems}")
        return state

    def fingerprint(self) -> str:
        """Deterministic content hash of the full state."""
        return fingerprint(self.to_dict())

    # ========================================================================
    # INVARIANTS
    # ========================================================================

    def check_invariants(self) -> List[Dict[str, Any]]:
        """
        Verify the stake invariants.

        Returns:
            List of discrepancies; empty when every invariant holds. Each entry
            has an 'invariant' key plus the values that disagree.
        """
        discrepancies: List[Dict[str, Any]] = []

        summed = self.stakes.sum_of_stakes()
        if summed != self.stakes.total_stake:
            discrepancies.append({
                'invariant': 'total_stake',
                'expected': summed,
                'actual': self.stakes.total_stake,
            })

        for user in self.stakes.users():
            account = self.stakes.accounts[user]
            chunk_total = account.vesting.total()
            if chunk_total != account.stake_amount:
                discrepancies.append({
                    'invariant': 'chunk_sum',
                    'user': user,
                    'expected': chunk_total,
                    'actual': account.stake_amount,
                })
            if account.reward_checkpoint > self.rewards.reward_per_stake:
                discrepancies.append({
                    'invariant': 'checkpoint',
                    'user': user,
                    'expected': self.rewards.reward_per_stake,
                    'actual': account.reward_checkpoint,
                })

        if self.rewards.total_rewards_claimed > self.rewards.total_rewards_distributed:
            discrepancies.append({
                'invariant': 'rewards_claimed',
                'expected': self.rewards.total_rewards_distributed,
                'actual': self.rewards.total_rewards_claimed,
            })

        return discrepancies
