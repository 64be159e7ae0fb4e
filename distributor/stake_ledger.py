"""
stake_ledger.py - Per-user and global stake totals

StakeLedger owns every UserAccount and the global total_stake. It enforces
the minimum-stake rules and keeps two invariants between operations:

    total_stake == sum(account.stake_amount for every account)
    account.stake_amount == account.vesting.total()   for every account

Checks (check_deposit / check_withdraw) never mutate; credit / debit assume
the matching check already passed.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .core import (
    Account, Json, Timestamp, VestingChunk,
    BelowMinimumStake, BelowMinimumStakeRemainder, InsufficientStake, NothingStaked,
    chunks_to_list,
)
from .vesting import VestingQueue, ChunkConsumption


@dataclass(slots=True)
class UserAccount:
    """
    Staking position of one user.

    Created on the first successful deposit and kept (possibly at zero) forever.

    Attributes:
        user: Account identifier.
        stake_amount: Stake currently locked.
        reward_checkpoint: reward_per_stake value last settled for this user.
        accrued_unclaimed: Rewards settled but not yet paid.
        total_claimed: Lifetime rewards paid out.
        vesting: Deposit chunks backing stake_amount.
    """
    user: Account
    stake_amount: int = 0
    reward_checkpoint: int = 0
    accrued_unclaimed: int = 0
    total_claimed: int = 0
    vesting: VestingQueue = field(default_factory=VestingQueue)

    @property
    def is_staked(self) -> bool:
        return self.stake_amount > 0

    def copy(self) -> UserAccount:
        return UserAccount(
            user=self.user,
            stake_amount=self.stake_amount,
            reward_checkpoint=self.reward_checkpoint,
            accrued_unclaimed=self.accrued_unclaimed,
            total_claimed=self.total_claimed,
            vesting=self.vesting.copy(),
        )

    def to_dict(self) -> Json:
        return {
            'stake_amount': self.stake_amount,
            'reward_checkpoint': self.reward_checkpoint,
            'accrued_unclaimed': self.accrued_unclaimed,
            'total_claimed': self.total_claimed,
            'vesting': chunks_to_list(list(self.vesting)),
        }

    @classmethod
    def from_dict(cls, user: Account, data: Json) -> UserAccount:
        return cls(
            user=user,
            stake_amount=data['stake_amount'],
            reward_checkpoint=data['reward_checkpoint'],
            accrued_unclaimed=data['accrued_unclaimed'],
            total_claimed=data['total_claimed'],
            vesting=VestingQueue(
                VestingChunk(amount=amount, unlock_at=unlock_at)
                for amount, unlock_at in data['vesting']
            ),
        )


class StakeLedger:
    """
    Stake bookkeeping for all users.

    Not thread-safe. Mutated only by DistributionEngine operations.
    """

    def __init__(self, min_stake: int):
        self.min_stake = min_stake
        self.accounts: Dict[Account, UserAccount] = {}
        self.total_stake: int = 0

    # ========================================================================
    # READ
    # ========================================================================

    def get(self, user: Account) -> Optional[UserAccount]:
        return self.accounts.get(user)

    def stake_of(self, user: Account) -> int:
        account = self.accounts.get(user)
        return account.stake_amount if account else 0

    def users(self) -> List[Account]:
        """All accounts ever opened, sorted for deterministic iteration."""
        return sorted(self.accounts)

    def stakers(self) -> List[Account]:
        """Accounts with a non-zero stake, sorted."""
        return [u for u in self.users() if self.accounts[u].is_staked]

    def sum_of_stakes(self) -> int:
        return sum(self.accounts[u].stake_amount for u in self.users())

    # ========================================================================
    # VALIDATION (non-mutating)
    # ========================================================================

    def check_deposit(self, user: Account, amount: int) -> int:
        """
        Validate a deposit against the minimum stake.

        Returns:
            The user's stake after the deposit

        Raises:
            BelowMinimumStake: If the resulting stake is below min_stake
        """
        new_stake = self.stake_of(user) + amount
        if new_stake < self.min_stake:
            raise BelowMinimumStake("User must deposit at least the minimum stake")
        return new_stake

    def check_withdraw(self, user: Account, amount: int) -> int:
        """
        Validate a withdrawal.

        Full exit is always allowed; otherwise the remainder must stay at or
        above min_stake.

        Returns:
            The user's stake after the withdrawal

        Raises:
            NothingStaked: If the user has no stake
            InsufficientStake: If amount exceeds the stake
            BelowMinimumStakeRemainder: If 0 < remainder < min_stake
        """
        stake = self.stake_of(user)
        if stake == 0:
            raise NothingStaked("User has no tokens staked")
        if amount > stake:
            raise InsufficientStake("User does not have enough tokens staked")
        remainder = stake - amount
        if 0 < remainder < self.min_stake:
            raise BelowMinimumStakeRemainder(
                "User must withdraw all tokens if their stake will be less than the minimum stake"
            )
        return remainder

    # ========================================================================
    # MUTATION
    # ========================================================================

    def open_account(self, user: Account) -> UserAccount:
        """Return the user's account, creating an empty one on first use."""
        account = self.accounts.get(user)
        if account is None:
            account = UserAccount(user=user)
            self.accounts[user] = account
        return account

    def credit(self, account: UserAccount, amount: int, unlock_at: Timestamp) -> VestingChunk:
        """Lock amount for account as a new chunk at the tail of its queue."""
        chunk = account.vesting.append(amount, unlock_at)
        account.stake_amount += amount
        self.total_stake += amount
        return chunk

    def debit(
        self,
        account: UserAccount,
        amount: int,
        now: Timestamp,
        tax_rate: int,
    ) -> Tuple[ChunkConsumption, ...]:
        """Release amount from account, oldest chunks first."""
        consumed = account.vesting.consume(amount, now, tax_rate)
        account.stake_amount -= amount
        self.total_stake -= amount
        return consumed

    def copy(self) -> StakeLedger:
        cloned = StakeLedger(self.min_stake)
        cloned.accounts = {u: a.copy() for u, a in self.accounts.items()}
        cloned.total_stake = self.total_stake
        return cloned
