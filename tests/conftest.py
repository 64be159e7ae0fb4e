"""
conftest.py - Shared pytest fixtures for distributor tests

Provides common fixtures used across unit and functional tests:
- Market: an initialized engine wired to in-memory tokens, roles and a clock
- Small-number market (min stake 1000, vesting 1000s, tax 10%)
- Production-parameter market (min stake 250000 * 10**9)
- State snapshot helper for "nothing changed" assertions
- Hypothesis strategy for random operation sequences
"""

import pytest
from hypothesis import strategies as st
from typing import Any, Dict, Optional, Tuple

from distributor import (
    DistributionEngine, RoleRegistry, ManualClock, Token,
    DistributorError, STAKE_TOKEN_DECIMALS, REWARD_TOKEN_DECIMALS, DEFAULT_MIN_STAKE,
)


OWNER = "owner"
TREASURY = "treasury"
START_TIME = 1_700_000_000


# =============================================================================
# HELPER CLASSES
# =============================================================================

class Market:
    """
    An initialized engine plus its collaborators.

    deposit() and distribute() approve the engine before calling it, the way a
    wallet would send approve + call.
    """

    def __init__(
        self,
        min_stake: int = 1000,
        vesting_period: int = 1000,
        tax_rate: int = 10,
        min_distribute_amount: int = 0,
        stake: Token = None,
        reward: Token = None,
    ):
        self.clock = ManualClock(START_TIME)
        self.roles = RoleRegistry(admin=OWNER)
        self.stake = stake or Token("STK", "Stake Token", decimals=STAKE_TOKEN_DECIMALS, verbose=False)
        self.reward = reward or Token("RWD", "Reward Token", decimals=REWARD_TOKEN_DECIMALS, verbose=False)
        self.engine = DistributionEngine(self.roles, clock=self.clock, verbose=False)
        self.engine.initialize(
            self.stake, self.reward, TREASURY,
            min_stake=min_stake,
            vesting_period=vesting_period,
            tax_rate=tax_rate,
            min_distribute_amount=min_distribute_amount,
        )

    @property
    def address(self) -> str:
        return self.engine.address

    def fund(self, user: str, stake: int = 0, reward: int = 0) -> None:
        if stake:
            self.stake.mint(user, stake)
        if reward:
            self.reward.mint(user, reward)

    def deposit(self, user: str, amount: int, fund: bool = True):
        if fund:
            self.fund(user, stake=amount)
        self.stake.approve(user, self.address, amount)
        return self.engine.deposit(user, amount)

    def distribute(self, amount: int, caller: str = OWNER, fund: bool = True):
        if fund:
            self.fund(caller, reward=amount)
        self.reward.approve(caller, self.address, amount)
        return self.engine.distribute(caller, amount)

    def snapshot(self) -> Tuple[Any, ...]:
        """Everything an operation could change."""
        return (
            self.engine.state.fingerprint(),
            _balances(self.stake),
            _balances(self.reward),
            dict(self.stake.allowances),
            dict(self.reward.allowances),
            len(self.engine.events),
            len(self.engine.operation_log),
        )


def _balances(token: Token) -> Dict[str, int]:
    return {a: b for a, b in token.balances.items() if b != 0}


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def market():
    """Engine with min stake 1000, vesting period 1000s and a 10% tax."""
    return Market()


@pytest.fixture
def production_market():
    """Engine with the production minimum stake of 250000 whole stake tokens."""
    return Market(min_stake=DEFAULT_MIN_STAKE)


@pytest.fixture
def engine(market):
    return market.engine


@pytest.fixture
def uninitialized_engine():
    return DistributionEngine(RoleRegistry(admin=OWNER), clock=ManualClock(START_TIME), verbose=False)


# =============================================================================
# OPERATION SEQUENCES (property-based tests)
# =============================================================================

USERS = ["alice", "bob", "carol"]
CALLERS = [OWNER, "mallory"]


@st.composite
def operation(draw):
    """One engine call, or a clock advance. Some draws are meant to be rejected."""
    kind = draw(st.sampled_from(["deposit", "distribute", "claim", "withdraw", "advance"]))
    if kind == "deposit":
        return (kind, draw(st.sampled_from(USERS)), draw(st.integers(min_value=1, max_value=5_000)))
    if kind == "distribute":
        return (kind, draw(st.sampled_from(CALLERS)), draw(st.integers(min_value=1, max_value=10 ** 7)))
    if kind == "claim":
        return (kind, draw(st.sampled_from(USERS)))
    if kind == "withdraw":
        return (kind, draw(st.sampled_from(USERS)), draw(st.integers(min_value=1, max_value=6_000)))
    return (kind, draw(st.integers(min_value=0, max_value=1_500)))


operation_sequences = st.lists(operation(), min_size=1, max_size=40)


def prepare(market: Market, op: Tuple[Any, ...]) -> None:
    """Fund and approve whatever op will pull, so token checks pass."""
    kind = op[0]
    if kind == "deposit":
        market.fund(op[1], stake=op[2])
        market.stake.approve(op[1], market.address, op[2])
    elif kind == "distribute":
        market.fund(op[1], reward=op[2])
        market.reward.approve(op[1], market.address, op[2])


def execute(market: Market, op: Tuple[Any, ...]) -> Optional[Any]:
    """Run a prepared op. Returns the event, or None if the engine rejected it."""
    kind = op[0]
    engine = market.engine
    try:
        if kind == "deposit":
            return engine.deposit(op[1], op[2])
        if kind == "distribute":
            return engine.distribute(op[1], op[2])
        if kind == "claim":
            return engine.claim(op[1])
        if kind == "withdraw":
            return engine.withdraw(op[1], op[2])
    except DistributorError:
        return None
    market.clock.advance(op[1])
    return None


def run(market: Market, ops) -> None:
    for op in ops:
        prepare(market, op)
        execute(market, op)
