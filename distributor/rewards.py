"""
rewards.py - Global reward-per-stake index

Proportional distribution in O(1) per Distribute, independent of the number
of stakers. Each distribution raises a global index by amount / total_stake
(scaled by SCALE). A user's reward since their checkpoint is

    stake * (reward_per_stake - reward_checkpoint) / SCALE

so a user's stake must be settled (checkpoint advanced, reward folded into
accrued_unclaimed) before the stake changes. Otherwise a new deposit would
earn rewards distributed before it existed, and a withdrawal would forfeit
rewards earned by the old balance.
"""

from __future__ import annotations

from .core import Json, NothingStaked
from .fixed_point import accrued_reward, reward_per_stake_delta
from .stake_ledger import UserAccount


class RewardAccumulator:
    """
    Reward index and lifetime reward totals.

    reward_per_stake, total_rewards_distributed and total_rewards_claimed
    only ever increase.
    """

    def __init__(self):
        self.reward_per_stake: int = 0
        self.total_rewards_distributed: int = 0
        self.total_rewards_claimed: int = 0

    def pending(self, account: UserAccount) -> int:
        """Reward earned since the account's checkpoint, not yet settled."""
        return accrued_reward(account.stake_amount, self.reward_per_stake, account.reward_checkpoint)

    def claimable(self, account: UserAccount) -> int:
        """Everything the account could claim right now."""
        return account.accrued_unclaimed + self.pending(account)

    def settle(self, account: UserAccount) -> int:
        """
        Fold pending reward into accrued_unclaimed and advance the checkpoint.

        Returns:
            The newly settled amount
        """
        earned = self.pending(account)
        account.accrued_unclaimed += earned
        account.reward_checkpoint = self.reward_per_stake
        return earned

    def distribute(self, amount: int, total_stake: int) -> int:
        """
        Spread amount over total_stake.

        Args:
            amount: Reward tokens entering custody
            total_stake: Stake sharing the reward

        Returns:
            The index increment (floored; may be 0 for dust-sized amounts)

        Raises:
            NothingStaked: If total_stake is 0
        """
        if total_stake == 0:
            raise NothingStaked("Nothing is staked yet, so no users to distribute to")
        delta = reward_per_stake_delta(amount, total_stake)
        self.reward_per_stake += delta
        self.total_rewards_distributed += amount
        return delta

    def pay_out(self, account: UserAccount) -> int:
        """
        Zero the account's accrued reward and book it as claimed.

        Call settle() first. Returns the amount to pay (may be 0).
        """
        amount = account.accrued_unclaimed
        account.accrued_unclaimed = 0
        account.total_claimed += amount
        self.total_rewards_claimed += amount
        return amount

    @property
    def outstanding(self) -> int:
        """Reward tokens distributed and not yet claimed (includes dust)."""
        return self.total_rewards_distributed - self.total_rewards_claimed

    def copy(self) -> RewardAccumulator:
        cloned = RewardAccumulator()
        cloned.reward_per_stake = self.reward_per_stake
        cloned.total_rewards_distributed = self.total_rewards_distributed
        cloned.total_rewards_claimed = self.total_rewards_claimed
        return cloned

    def to_dict(self) -> Json:
        return {
            'reward_per_stake': self.reward_per_stake,
            'total_rewards_distributed': self.total_rewards_distributed,
            'total_rewards_claimed': self.total_rewards_claimed,
        }

    @classmethod
    def from_dict(cls, data: Json) -> RewardAccumulator:
        acc = cls()
        acc.reward_per_stake = data['reward_per_stake']
        acc.total_rewards_distributed = data['total_rewards_distributed']
        acc.total_rewards_claimed = data['total_rewards_claimed']
        return acc
