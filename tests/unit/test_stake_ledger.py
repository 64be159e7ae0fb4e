"""
test_stake_ledger.py - Unit tests for StakeLedger and UserAccount

Tests:
- Minimum-stake validation on deposit
- Withdrawal validation (nothing staked, overdraw, dust remainder, full exit)
- credit / debit bookkeeping
- Account serialization
"""

import pytest

from distributor import (
    StakeLedger, UserAccount, VestingChunk,
    BelowMinimumStake, BelowMinimumStakeRemainder, InsufficientStake, NothingStaked,
)


@pytest.fixture
def stakes():
    return StakeLedger(min_stake=1000)


def _stake(stakes, user, amount, unlock_at=100):
    account = stakes.open_account(user)
    stakes.credit(account, amount, unlock_at)
    return account


class TestCheckDeposit:
    """Tests for deposit validation."""

    def test_first_deposit_below_minimum(self, stakes):
        with pytest.raises(BelowMinimumStake, match="minimum stake"):
            stakes.check_deposit("alice", 999)

    def test_first_deposit_at_minimum(self, stakes):
        assert stakes.check_deposit("alice", 1000) == 1000

    def test_top_up_counts_existing_stake(self, stakes):
        _stake(stakes, "alice", 1000)
        assert stakes.check_deposit("alice", 1) == 1001

    def test_check_does_not_open_account(self, stakes):
        stakes.check_deposit("alice", 1000)
        assert stakes.get("alice") is None


class TestCheckWithdraw:
    """Tests for withdrawal validation."""

    def test_unknown_user(self, stakes):
        with pytest.raises(NothingStaked):
            stakes.check_withdraw("ghost", 1)

    def test_more_than_staked(self, stakes):
        _stake(stakes, "alice", 1500)
        with pytest.raises(InsufficientStake):
            stakes.check_withdraw("alice", 1501)

    def test_remainder_below_minimum(self, stakes):
        _stake(stakes, "alice", 1500)
        with pytest.raises(BelowMinimumStakeRemainder, match="withdraw all tokens"):
            stakes.check_withdraw("alice", 501)

    def test_remainder_at_minimum(self, stakes):
        _stake(stakes, "alice", 1500)
        assert stakes.check_withdraw("alice", 500) == 1000

    def test_full_exit_always_allowed(self, stakes):
        _stake(stakes, "alice", 1500)
        assert stakes.check_withdraw("alice", 1500) == 0


class TestMutation:
    """Tests for credit and debit."""

    def test_credit_updates_totals(self, stakes):
        _stake(stakes, "alice", 1000)
        _stake(stakes, "bob", 2000)
        assert stakes.total_stake == 3000
        assert stakes.sum_of_stakes() == 3000
        assert stakes.stake_of("bob") == 2000

    def test_debit_updates_totals_and_chunks(self, stakes):
        account = _stake(stakes, "alice", 1000, unlock_at=100)
        stakes.credit(account, 500, 200)

        consumed = stakes.debit(account, 1200, now=150, tax_rate=10)

        assert account.stake_amount == 300
        assert stakes.total_stake == 300
        assert account.vesting.chunks() == (VestingChunk(300, 200),)
        assert [c.portion for c in consumed] == [1000, 200]

    def test_stakers_excludes_exited_accounts(self, stakes):
        alice = _stake(stakes, "alice", 1000)
        _stake(stakes, "bob", 1000)
        stakes.debit(alice, 1000, now=0, tax_rate=10)
        assert stakes.users() == ["alice", "bob"]
        assert stakes.stakers() == ["bob"]

    def test_copy_is_independent(self, stakes):
        _stake(stakes, "alice", 1000)
        clone = stakes.copy()
        _stake(clone, "alice", 1000)
        assert stakes.stake_of("alice") == 1000
        assert clone.stake_of("alice") == 2000


class TestUserAccount:
    """Tests for the UserAccount record."""

    def test_defaults(self):
        account = UserAccount(user="alice")
        assert not account.is_staked
        assert account.vesting.chunks() == ()

    def test_serialization_preserves_chunk_order(self, stakes):
        account = _stake(stakes, "alice", 1000, unlock_at=100)
        stakes.credit(account, 7, 50)
        account.accrued_unclaimed = 42

        restored = UserAccount.from_dict("alice", account.to_dict())

        assert restored.vesting.chunks() == (VestingChunk(1000, 100), VestingChunk(7, 50))
        assert restored.accrued_unclaimed == 42
        assert restored.stake_amount == 1007
