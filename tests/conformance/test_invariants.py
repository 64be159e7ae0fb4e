"""
Stake Invariant Conformance Tests

INVARIANTS: For every state reachable through engine operations:

    total_stake = Σ_{u ∈ users} stake_amount(u)
    stake_amount(u) = Σ_{c ∈ vesting(u)} c.amount
    reward_checkpoint(u) <= reward_per_stake

and the following never decrease:

    reward_per_stake, total_rewards_distributed, total_rewards_claimed,
    total_claimed(u)

These tests drive random operation sequences (including ones the engine
must reject) and check the invariants after every step.
"""

import pytest
from hypothesis import given, settings, note

from distributor import DEFAULT_MIN_STAKE, NoRewardsToClaim
from conftest import Market, USERS, operation_sequences, prepare, execute


def _totals(market):
    engine = market.engine
    return (
        engine.reward_per_stake,
        engine.total_rewards_distributed,
        engine.total_rewards_claimed,
        tuple(engine.total_user_rewards_claimed(u) for u in USERS),
    )


class TestStakeInvariants:
    """Property-based invariant checks."""

    @given(operation_sequences)
    @settings(max_examples=150, deadline=None)
    def test_invariants_hold_after_every_operation(self, ops):
        """
        PROPERTY: verify_invariants() is valid after each operation.
        """
        market = Market()
        for op in ops:
            prepare(market, op)
            execute(market, op)
            note(f"after {op}")
            result = market.engine.verify_invariants()
            assert result['valid'], result['discrepancies']

    @given(operation_sequences)
    @settings(max_examples=150, deadline=None)
    def test_totals_are_monotonic(self, ops):
        """
        PROPERTY: reward index and reward totals never decrease.
        """
        market = Market()
        previous = _totals(market)
        for op in ops:
            prepare(market, op)
            execute(market, op)
            current = _totals(market)
            assert current[0] >= previous[0]
            assert current[1] >= previous[1]
            assert current[2] >= previous[2]
            assert all(c >= p for c, p in zip(current[3], previous[3]))
            previous = current

    @given(operation_sequences)
    @settings(max_examples=100, deadline=None)
    def test_nonzero_stakes_respect_minimum(self, ops):
        """
        PROPERTY: every user holds 0 or at least min_stake.
        """
        market = Market()
        for op in ops:
            prepare(market, op)
            execute(market, op)
        for user in USERS:
            stake = market.engine.user_stake(user)
            assert stake == 0 or stake >= market.engine.min_stake

    @given(operation_sequences)
    @settings(max_examples=100, deadline=None)
    def test_claim_after_claim_has_nothing(self, ops):
        """
        PROPERTY: a second claim with no distribution in between is rejected.
        """
        market = Market()
        for op in ops:
            prepare(market, op)
            execute(market, op)
        for user in USERS:
            if market.engine.claimable_amount(user) > 0 and market.engine.user_stake(user) > 0:
                market.engine.claim(user)
                with pytest.raises(NoRewardsToClaim):
                    market.engine.claim(user)


class TestProductionParameters:
    """Invariants under the production minimum stake."""

    def test_min_stake_boundary(self):
        market = Market(min_stake=DEFAULT_MIN_STAKE)
        market.deposit("alice", DEFAULT_MIN_STAKE)
        market.deposit("alice", 1)
        assert market.engine.verify_invariants()['valid']
        assert market.engine.user_stake("alice") == DEFAULT_MIN_STAKE + 1
