"""
engine.py - DistributionEngine: the four staking operations

The engine is the only component that mutates distributor state. Each public
operation runs as one atomic transaction:

    1. Checks     - every failure condition is tested before anything changes
    2. Effects    - LedgerState is updated (settlement, stake, index, totals)
    3. Interactions - token transfers are requested from the collaborators

Effects are committed before any collaborator is called, so a reentrant
call always observes final total_stake / stake_amount values. Reads are
allowed from inside a collaborator; a mutating call raises ReentrantCall.
If a collaborator raises, the state is rolled back to a savepoint taken
before the effects and the error propagates; no event or operation record
is written.

Operations:
    deposit(user, amount)       - lock stake, start a vesting chunk
    distribute(caller, amount)  - spread rewards over current stake
    claim(user)                 - pay out accrued rewards
    withdraw(user, amount)      - release stake FIFO, taxing unvested chunks,
                                  and auto-claim rewards
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .core import (
    Account, Event, Json, OperationRecord, Timestamp, Transfer, VestingChunk, WithdrawalQuote,
    Deposited, Distributed, Claimed, Withdrawn,
    FungibleAssetLedger, AuthorizationGuard, Clock,
    DistributorError, InsufficientBalance, InsufficientAllowance, BelowMinimumDistribution,
    Unauthorized, NothingStaked, NoRewardsToClaim, AlreadyInitialized, NotInitialized,
    StateMigrationError, ReentrantCall,
    require_positive_amount,
)
from .clock import SystemClock
from .state import DistributorConfig, LedgerState
from .stake_ledger import UserAccount

# Effects return the transfers to perform and the event to emit.
Effects = Callable[[LedgerState], Tuple[List[Transfer], Event]]


class DistributionEngine:
    """
    Staking and reward distribution over two fungible tokens.

    Design Principles:
        - Checks, then effects, then interactions. No partial operations.
        - Every successful operation is logged (operation_log) and emits
          exactly one event.
        - All arithmetic is integer; every division floors.

    Thread Safety:
        Not thread-safe. Callers serialize operations.

    Example:
        roles = RoleRegistry(admin="owner")
        engine = DistributionEngine(roles, clock=ManualClock(0), verbose=False)
        engine.initialize(stake, reward, "treasury",
                          min_stake=1000, vesting_period=1000, tax_rate=10)
        stake.approve("alice", engine.address, 1000)
        engine.deposit("alice", 1000)
    """

    def __init__(
        self,
        guard: AuthorizationGuard,
        clock: Optional[Clock] = None,
        address: Account = "distributor",
        verbose: bool = True,
    ):
        """
        Create an uninitialized engine.

        Args:
            guard: Decides who may call distribute()
            clock: Time source (default: SystemClock)
            address: Account the engine holds custody under
            verbose: Print operation results (default: True)
        """
        if not address or not address.strip():
            raise ValueError("address cannot be empty")
        self.guard = guard
        self.clock: Clock = clock or SystemClock()
        self.address = address
        self.verbose = verbose
        self.events: List[Event] = []
        self.operation_log: List[OperationRecord] = []
        self._state: Optional[LedgerState] = None
        self._stake_token: Optional[FungibleAssetLedger] = None
        self._reward_token: Optional[FungibleAssetLedger] = None
        self._next_sequence: int = 0
        self._in_operation = False

    def __repr__(self) -> str:
        if self._state is None:
            return f"DistributionEngine({self.address}, uninitialized)"
        return (f"DistributionEngine({self.address}, total_stake={self._state.total_stake}, "
                f"stakers={len(self._state.stakes.stakers())})")

    # ========================================================================
    # INITIALIZATION
    # ========================================================================

    def initialize(
        self,
        stake_token: FungibleAssetLedger,
        reward_token: FungibleAssetLedger,
        treasury: Account,
        min_stake: int,
        vesting_period: int,
        tax_rate: int,
        min_distribute_amount: int = 0,
    ) -> DistributorConfig:
        """
        Configure the engine. May be called exactly once.

        Args:
            stake_token: Token users lock
            reward_token: Token distributed as rewards
            treasury: Account receiving early-withdrawal tax
            min_stake: Smallest non-zero stake a user may hold
            vesting_period: Seconds each deposit stays taxable
            tax_rate: Whole percentage withheld from unvested withdrawals
            min_distribute_amount: Smallest accepted distribution (0 = none)

        Returns:
            The frozen configuration

        Raises:
            AlreadyInitialized: On a second call
            ValueError: If the configuration is invalid
        """
        if self._state is not None:
            raise AlreadyInitialized("Initializable: contract is already initialized")
        self._check_tokens(stake_token, reward_token)
        if treasury == self.address:
            raise ValueError("treasury cannot be the distributor itself")
        config = DistributorConfig(
            stake_token=stake_token.symbol,
            reward_token=reward_token.symbol,
            treasury=treasury,
            min_stake=min_stake,
            vesting_period=vesting_period,
            tax_rate=tax_rate,
            min_distribute_amount=min_distribute_amount,
        )
        self._state = LedgerState(config)
        self._stake_token = stake_token
        self._reward_token = reward_token
        if self.verbose:
            print(f"📝 Initialized: {self.address} stake={config.stake_token} "
                  f"reward={config.reward_token} min_stake={min_stake} "
                  f"vesting={vesting_period}s tax={tax_rate}%")
        return config

    def load_state(
        self,
        payload: Json,
        stake_token: FungibleAssetLedger,
        reward_token: FungibleAssetLedger,
    ) -> None:
        """
        Initialize from a serialized state of any supported schema version.

        Raises:
            AlreadyInitialized: If the engine already has state
            StateMigrationError: If the payload cannot be loaded or names
                different tokens
        """
        self._require_idle()
        if self._state is not None:
            raise AlreadyInitialized("Initializable: contract is already initialized")
        self._check_tokens(stake_token, reward_token)
        state = LedgerState.from_dict(payload)
        if (state.config.stake_token, state.config.reward_token) != (stake_token.symbol, reward_token.symbol):
            raise StateMigrationError(
                f"State was saved for {state.config.stake_token}/{state.config.reward_token}, "
                f"got {stake_token.symbol}/{reward_token.symbol}"
            )
        self._state = state
        self._stake_token = stake_token
        self._reward_token = reward_token

    def export_state(self) -> Json:
        """Serialize the current state (see LedgerState.to_dict)."""
        return self._require_state().to_dict()

    @staticmethod
    def _check_tokens(stake_token: Any, reward_token: Any) -> None:
        for token in (stake_token, reward_token):
            if not isinstance(token, FungibleAssetLedger):
                raise TypeError(f"{token!r} does not implement FungibleAssetLedger")
        if stake_token.symbol == reward_token.symbol:
            raise ValueError("stake and reward tokens must be different")

    # ========================================================================
    # OPERATIONS (Mutating)
    # ========================================================================

    def deposit(self, user: Account, amount: int) -> Deposited:
        """
        Lock amount of the stake token for user.

        Settles the user's pending rewards at the old stake, then adds a new
        vesting chunk unlocking at now + vesting_period.

        Raises:
            InvalidAmount: If amount is not a positive int
            InsufficientBalance: If user holds less than amount
            InsufficientAllowance: If user has not approved the engine for amount
            BelowMinimumStake: If the resulting stake is below min_stake
        """
        state = self._require_state()
        with self._checks("deposit", user):
            self._require_idle()
            require_positive_amount(amount, "Deposit amount must be greater than 0")
            if self._stake_token.balance_of(user) < amount:
                raise InsufficientBalance("User does not have enough tokens to deposit")
            if self._stake_token.allowance(user, self.address) < amount:
                raise InsufficientAllowance(
                    "User has not approved the contract to spend tokens on their behalf"
                )
            state.stakes.check_deposit(user, amount)

        now = self.clock.now()

        def effects(st: LedgerState) -> Tuple[List[Transfer], Event]:
            account = st.stakes.open_account(user)
            st.rewards.settle(account)
            st.stakes.credit(account, amount, now + st.config.vesting_period)
            pull = Transfer(amount, st.config.stake_token, user, self.address, spender=self.address)
            return [pull], Deposited(user=user, amount=amount)

        return self._transact("deposit", user, user, now, effects)

    def distribute(self, caller: Account, amount: int) -> Distributed:
        """
        Spread amount of the reward token over all current stake.

        reward_per_stake grows by floor(amount * SCALE / total_stake); the
        flooring remainder stays in custody, unclaimable.

        Raises:
            Unauthorized: If caller is not an authorized distributor
            InvalidAmount: If amount is not a positive int
            BelowMinimumDistribution: If amount is below min_distribute_amount
            NothingStaked: If total_stake is 0
            InsufficientBalance: If caller holds less than amount
            InsufficientAllowance: If caller has not approved the engine for amount
        """
        state = self._require_state()
        with self._checks("distribute", caller):
            self._require_idle()
            if not self.guard.is_authorized_distributor(caller):
                raise Unauthorized("Caller is not an approved distributor")
            require_positive_amount(amount, "Reward amount must be greater than 0")
            if amount < state.config.min_distribute_amount:
                raise BelowMinimumDistribution(
                    f"Reward amount must be at least {state.config.min_distribute_amount}"
                )
            if state.total_stake == 0:
                raise NothingStaked("Nothing is staked yet, so no users to distribute to")
            if self._reward_token.balance_of(caller) < amount:
                raise InsufficientBalance("Distributor does not have enough tokens to distribute")
            if self._reward_token.allowance(caller, self.address) < amount:
                raise InsufficientAllowance(
                    "Distributor has not approved the contract to spend tokens on their behalf"
                )

        now = self.clock.now()

        def effects(st: LedgerState) -> Tuple[List[Transfer], Event]:
            total = st.total_stake
            st.rewards.distribute(amount, total)
            pull = Transfer(amount, st.config.reward_token, caller, self.address, spender=self.address)
            return [pull], Distributed(amount=amount, total_stake=total)

        return self._transact("distribute", caller, None, now, effects)

    def claim(self, user: Account) -> Claimed:
        """
        Pay out everything user has accrued.

        Raises:
            NothingStaked: If user has no stake
            NoRewardsToClaim: If nothing has accrued since the last payout
        """
        state = self._require_state()
        with self._checks("claim", user):
            self._require_idle()
            account = self._staked_account(state, user)
            if state.rewards.claimable(account) == 0:
                raise NoRewardsToClaim("User has no rewards to claim")

        now = self.clock.now()

        def effects(st: LedgerState) -> Tuple[List[Transfer], Event]:
            acct = st.stakes.get(user)
            st.rewards.settle(acct)
            paid = st.rewards.pay_out(acct)
            push = Transfer(paid, st.config.reward_token, self.address, user)
            return [push], Claimed(user=user, amount=paid)

        return self._transact("claim", user, user, now, effects)

    def withdraw(self, user: Account, amount: int) -> Withdrawn:
        """
        Release amount of user's stake, oldest chunks first.

        Accrued rewards are paid out in the same transaction. Unvested
        portions lose tax_rate percent to the treasury.

        Raises:
            InvalidAmount: If amount is not a positive int
            NothingStaked: If user has no stake
            InsufficientStake: If amount exceeds the stake
            BelowMinimumStakeRemainder: If 0 < remaining stake < min_stake
        """
        state = self._require_state()
        with self._checks("withdraw", user):
            self._require_idle()
            require_positive_amount(amount, "Withdraw amount must be greater than 0")
            state.stakes.check_withdraw(user, amount)

        now = self.clock.now()

        def effects(st: LedgerState) -> Tuple[List[Transfer], Event]:
            cfg = st.config
            acct = st.stakes.get(user)
            st.rewards.settle(acct)
            rewards = st.rewards.pay_out(acct)
            consumed = st.stakes.debit(acct, amount, now, cfg.tax_rate)
            net = sum(c.net for c in consumed)
            tax = sum(c.tax for c in consumed)

            transfers: List[Transfer] = []
            if net:
                transfers.append(Transfer(net, cfg.stake_token, self.address, user))
            if tax:
                transfers.append(Transfer(tax, cfg.stake_token, self.address, cfg.treasury))
            if rewards:
                transfers.append(Transfer(rewards, cfg.reward_token, self.address, user))
            return transfers, Withdrawn(user=user, net_principal=net, rewards_paid=rewards)

        return self._transact("withdraw", user, user, now, effects)

    # ========================================================================
    # TRANSACTION MACHINERY
    # ========================================================================

    @contextmanager
    def _checks(self, operation: str, caller: Account) -> Iterator[None]:
        """Report failed checks when verbose; errors always propagate."""
        try:
            yield
        except DistributorError as e:
            if self.verbose:
                print(f"✗ REJECTED {operation} by {caller}: {e}")
            raise

    def _transact(
        self,
        operation: str,
        caller: Account,
        user: Optional[Account],
        now: Timestamp,
        effects: Effects,
    ) -> Event:
        state = self._state
        savepoint = state.savepoint(user)
        self._in_operation = True
        try:
            transfers, event = effects(state)
            for transfer in transfers:
                self._perform(transfer)
        except Exception as e:
            state.rollback(savepoint)
            if self.verbose:
                print(f"✗ ROLLED BACK {operation} by {caller}: {e}")
            raise
        finally:
            self._in_operation = False

        record = OperationRecord(
            sequence_number=self._next_sequence,
            operation=operation,
            caller=caller,
            timestamp=now,
            transfers=tuple(transfers),
            events=(event,),
        )
        self._next_sequence += 1
        self.operation_log.append(record)
        self.events.append(event)
        if self.verbose:
            print(f"✓ {event!r}")
        return event

    def _perform(self, transfer: Transfer) -> None:
        token = self._token(transfer.token)
        if transfer.spender is not None:
            token.transfer_from(transfer.spender, transfer.source, transfer.dest, transfer.amount)
        else:
            token.transfer(transfer.source, transfer.dest, transfer.amount)

    def _token(self, symbol: str) -> FungibleAssetLedger:
        if symbol == self._stake_token.symbol:
            return self._stake_token
        if symbol == self._reward_token.symbol:
            return self._reward_token
        raise ValueError(f"Unknown token {symbol}")

    def _require_idle(self) -> None:
        # The savepoint covers one account, so nested mutations cannot be undone
        if self._in_operation:
            raise ReentrantCall("ReentrancyGuard: reentrant call")

    def _require_state(self) -> LedgerState:
        if self._state is None:
            raise NotInitialized("Distributor has not been initialized")
        return self._state

    @staticmethod
    def _staked_account(state: LedgerState, user: Account) -> UserAccount:
        account = state.stakes.get(user)
        if account is None or not account.is_staked:
            raise NothingStaked("User has no tokens staked")
        return account

    # ========================================================================
    # READ ACCESSORS
    # ========================================================================

    @property
    def is_initialized(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> LedgerState:
        """The live state aggregate. Treat as read-only."""
        return self._require_state()

    @property
    def config(self) -> DistributorConfig:
        return self._require_state().config

    @property
    def stake_token(self) -> FungibleAssetLedger:
        self._require_state()
        return self._stake_token

    @property
    def reward_token(self) -> FungibleAssetLedger:
        self._require_state()
        return self._reward_token

    @property
    def min_stake(self) -> int:
        return self.config.min_stake

    @property
    def vesting_period(self) -> int:
        return self.config.vesting_period

    @property
    def tax_rate(self) -> int:
        return self.config.tax_rate

    @property
    def treasury(self) -> Account:
        return self.config.treasury

    @property
    def min_distribute_amount(self) -> int:
        return self.config.min_distribute_amount

    @property
    def total_stake(self) -> int:
        return self._require_state().total_stake

    @property
    def reward_per_stake(self) -> int:
        return self._require_state().rewards.reward_per_stake

    @property
    def total_rewards_distributed(self) -> int:
        return self._require_state().rewards.total_rewards_distributed

    @property
    def total_rewards_claimed(self) -> int:
        return self._require_state().rewards.total_rewards_claimed

    def user_stake(self, user: Account) -> int:
        return self._require_state().stakes.stake_of(user)

    def claimable_amount(self, user: Account) -> int:
        """Rewards user could claim now (settled plus pending). Never mutates."""
        state = self._require_state()
        account = state.stakes.get(user)
        return state.rewards.claimable(account) if account else 0

    def user_vestings(self, user: Account) -> Tuple[VestingChunk, ...]:
        """User's chunks, oldest first."""
        account = self._require_state().stakes.get(user)
        return account.vesting.chunks() if account else ()

    def total_user_rewards_claimed(self, user: Account) -> int:
        account = self._require_state().stakes.get(user)
        return account.total_claimed if account else 0

    def vested_amount(self, user: Account) -> int:
        """Part of user's stake that can be withdrawn tax-free right now."""
        account = self._require_state().stakes.get(user)
        return account.vesting.vested_amount(self.clock.now()) if account else 0

    def preview_withdraw(self, user: Account, amount: int) -> WithdrawalQuote:
        """
        Quote what withdraw(user, amount) would pay at the current time.

        Uses the same checks and chunk planner as withdraw() and changes nothing.

        Raises:
            The same errors as withdraw()
        """
        state = self._require_state()
        require_positive_amount(amount, "Withdraw amount must be greater than 0")
        state.stakes.check_withdraw(user, amount)
        account = state.stakes.get(user)
        plan = account.vesting.plan(amount, self.clock.now(), state.config.tax_rate)
        return WithdrawalQuote(
            amount=amount,
            net_principal=sum(c.net for c in plan),
            tax=sum(c.tax for c in plan),
            rewards=state.rewards.claimable(account),
            vested_portion=sum(c.portion for c in plan if c.vested),
        )

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Verify ledger invariants and token custody.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every invariant holds
            - 'total_stake': int - Recorded global stake
            - 'sum_of_stakes': int - Sum of user stakes
            - 'discrepancies': List[Dict] - One entry per violated invariant

        Example:
            result = engine.verify_invariants()
            assert result['valid'], result['discrepancies']
        """
        state = self._require_state()
        discrepancies = state.check_invariants()

        stake_held = self._stake_token.balance_of(self.address)
        if stake_held < state.total_stake:
            discrepancies.append({
                'invariant': 'stake_custody',
                'expected': state.total_stake,
                'actual': stake_held,
            })
        reward_held = self._reward_token.balance_of(self.address)
        if reward_held < state.rewards.outstanding:
            discrepancies.append({
                'invariant': 'reward_custody',
                'expected': state.rewards.outstanding,
                'actual': reward_held,
            })

        return {
            'valid': len(discrepancies) == 0,
            'total_stake': state.total_stake,
            'sum_of_stakes': state.stakes.sum_of_stakes(),
            'discrepancies': discrepancies,
        }
