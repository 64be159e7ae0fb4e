"""
Atomicity Conformance Tests

INVARIANT: Operations are all-or-nothing.

    ∀ operation O:
        O succeeds ⟹ state, balances, one event and one log record change together
        O fails    ⟹ nothing changes

A rejected check (DistributorError) leaves no trace at all. An exception
from a token collaborator restores the distributor state, events and log;
token movements already completed by another collaborator in the same
operation are outside the engine's control.
"""

import pytest
from hypothesis import given, settings, note
from hypothesis import strategies as st

from distributor import Token
from conftest import Market, USERS, operation_sequences, prepare, execute, run, operation


class FlakyToken(Token):
    """Token that raises on the next engine-initiated transfer when armed."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.armed = False

    def _trip(self):
        if self.armed:
            raise ConnectionError("token backend unavailable")

    def transfer(self, sender, to, amount):
        self._trip()
        super().transfer(sender, to, amount)

    def transfer_from(self, spender, owner, to, amount):
        self._trip()
        super().transfer_from(spender, owner, to, amount)


def _flaky_market():
    return Market(
        stake=FlakyToken("STK", "Stake Token", decimals=9, verbose=False),
        reward=FlakyToken("RWD", "Reward Token", decimals=6, verbose=False),
    )


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(operation_sequences)
    @settings(max_examples=150, deadline=None)
    def test_rejected_operations_leave_no_trace(self, ops):
        """
        PROPERTY: a rejected operation changes nothing.
        """
        market = Market()
        for op in ops:
            prepare(market, op)
            before = market.snapshot()
            events_before = len(market.engine.events)
            event = execute(market, op)
            if event is None and op[0] != "advance":
                note(f"rejected {op}")
                assert market.snapshot() == before
            elif event is not None:
                assert len(market.engine.events) == events_before + 1
                assert market.engine.events[-1] == event
                assert market.engine.operation_log[-1].events == (event,)

    @given(
        history=operation_sequences,
        final=operation(),
        token=st.sampled_from(["stake", "reward"]),
    )
    @settings(max_examples=150, deadline=None)
    def test_collaborator_failure_rolls_back(self, history, final, token):
        """
        PROPERTY: if a token call raises mid-operation, state is restored
        and the error propagates.
        """
        market = _flaky_market()
        run(market, history)
        prepare(market, final)
        fingerprint = market.engine.state.fingerprint()
        events = list(market.engine.events)
        log_length = len(market.engine.operation_log)

        getattr(market, token).armed = True
        try:
            execute(market, final)
        except ConnectionError:
            note(f"rolled back {final}")
            assert market.engine.state.fingerprint() == fingerprint
            assert market.engine.events == events
            assert len(market.engine.operation_log) == log_length
        else:
            assert market.engine.state.check_invariants() == []
        finally:
            getattr(market, token).armed = False

    @given(history=operation_sequences, user=st.sampled_from(USERS))
    @settings(max_examples=100, deadline=None)
    def test_failed_first_transfer_moves_no_tokens(self, history, user):
        """
        PROPERTY: when the first token call of an operation fails, balances
        and allowances are untouched as well.
        """
        market = _flaky_market()
        run(market, history)
        if market.engine.claimable_amount(user) == 0 or market.engine.user_stake(user) == 0:
            return
        before = market.snapshot()

        market.reward.armed = True
        with pytest.raises(ConnectionError):
            market.engine.claim(user)
        market.reward.armed = False

        assert market.snapshot() == before

    @given(operation_sequences)
    @settings(max_examples=50, deadline=None)
    def test_engine_usable_after_rollback(self, ops):
        """
        PROPERTY: after a rolled-back operation the engine keeps working and
        ends in the same state as an engine that never saw the failure.
        """
        flaky = _flaky_market()
        clean = Market()
        for op in ops:
            prepare(flaky, op)
            prepare(clean, op)
            if op[0] in ("deposit", "withdraw", "claim", "distribute"):
                flaky.stake.armed = flaky.reward.armed = True
                try:
                    execute(flaky, op)
                except ConnectionError:
                    pass
                flaky.stake.armed = flaky.reward.armed = False
            execute(flaky, op)
            execute(clean, op)

        assert flaky.engine.state.fingerprint() == clean.engine.state.fingerprint()
        assert flaky.engine.events == clean.engine.events
