"""
test_rewards.py - Unit tests for the RewardAccumulator

Tests:
- Distribution over the current stake
- Settlement before stake changes
- Pay-out bookkeeping
"""

import pytest

from distributor import SCALE, RewardAccumulator, StakeLedger, NothingStaked


@pytest.fixture
def stakes():
    return StakeLedger(min_stake=1)


@pytest.fixture
def rewards():
    return RewardAccumulator()


class TestDistribute:

    def test_nothing_staked(self, rewards):
        with pytest.raises(NothingStaked, match="no users to distribute to"):
            rewards.distribute(100, 0)
        assert rewards.total_rewards_distributed == 0

    def test_index_and_total(self, rewards):
        delta = rewards.distribute(1_000_000, 1000)
        assert delta == 10 ** 21
        assert rewards.reward_per_stake == 10 ** 21
        assert rewards.total_rewards_distributed == 1_000_000

    def test_dust_distribution_still_counted(self, rewards):
        assert rewards.distribute(1, 10 ** 19) == 0
        assert rewards.total_rewards_distributed == 1
        assert rewards.outstanding == 1


class TestSettlement:

    def test_pending_and_claimable(self, stakes, rewards):
        account = stakes.open_account("alice")
        stakes.credit(account, 1000, 0)
        rewards.distribute(500, stakes.total_stake)

        assert rewards.pending(account) == 500
        assert rewards.claimable(account) == 500
        assert account.accrued_unclaimed == 0

    def test_settle_moves_pending_into_accrued(self, stakes, rewards):
        account = stakes.open_account("alice")
        stakes.credit(account, 1000, 0)
        rewards.distribute(500, stakes.total_stake)

        assert rewards.settle(account) == 500
        assert account.accrued_unclaimed == 500
        assert account.reward_checkpoint == rewards.reward_per_stake
        assert rewards.pending(account) == 0

    def test_late_joiner_earns_nothing_retroactively(self, stakes, rewards):
        alice = stakes.open_account("alice")
        stakes.credit(alice, 1000, 0)
        rewards.distribute(1000, stakes.total_stake)

        bob = stakes.open_account("bob")
        rewards.settle(bob)
        stakes.credit(bob, 1000, 0)

        assert rewards.claimable(bob) == 0
        rewards.distribute(1000, stakes.total_stake)
        assert rewards.claimable(bob) == 500
        assert rewards.claimable(alice) == 1500


class TestPayOut:

    def test_pay_out_books_claim(self, stakes, rewards):
        account = stakes.open_account("alice")
        stakes.credit(account, 1000, 0)
        rewards.distribute(300, stakes.total_stake)
        rewards.settle(account)

        assert rewards.pay_out(account) == 300
        assert account.accrued_unclaimed == 0
        assert account.total_claimed == 300
        assert rewards.total_rewards_claimed == 300
        assert rewards.outstanding == 0

    def test_pay_out_of_nothing(self, stakes, rewards):
        account = stakes.open_account("alice")
        assert rewards.pay_out(account) == 0
        assert rewards.total_rewards_claimed == 0

    def test_serialization(self, rewards):
        rewards.distribute(3, 7)
        restored = RewardAccumulator.from_dict(rewards.to_dict())
        assert restored.reward_per_stake == 3 * SCALE // 7
        assert restored.total_rewards_distributed == 3
