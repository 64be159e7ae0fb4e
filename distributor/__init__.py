"""
distributor - Staking and Reward Distribution Engine

Users lock a stake token, authorized distributors push reward tokens that are
shared pro rata over current stake, and withdrawals release stake oldest
deposit first with a tax on deposits that have not finished vesting.

Usage:
    from distributor import (
        DistributionEngine, RoleRegistry, ManualClock, stake_token, reward_token,
    )

    stake = stake_token(1_000_000, holder="alice", verbose=False)
    reward = reward_token(1_000_000, holder="owner", verbose=False)
    clock = ManualClock(0)

    engine = DistributionEngine(RoleRegistry(admin="owner"), clock=clock, verbose=False)
    engine.initialize(stake, reward, "treasury",
                      min_stake=1000, vesting_period=1000, tax_rate=10)

    # Stake
    stake.approve("alice", engine.address, 1000)
    engine.deposit("alice", 1000)

    # Distribute rewards
    reward.approve("owner", engine.address, 1_000_000)
    engine.distribute("owner", 1_000_000)

    engine.claimable_amount("alice")   # 1_000_000
    engine.withdraw("alice", 1000)     # 900 back, 100 to treasury, rewards paid
"""

# Core types
from .core import (
    FungibleAssetLedger,
    AuthorizationGuard,
    Clock,
    VestingChunk,
    Transfer,
    Deposited,
    Distributed,
    Claimed,
    Withdrawn,
    Event,
    WithdrawalQuote,
    OperationRecord,
    DistributorError,
    InvalidAmount,
    BelowMinimumDistribution,
    InsufficientBalance,
    InsufficientAllowance,
    BelowMinimumStake,
    BelowMinimumStakeRemainder,
    InsufficientStake,
    Unauthorized,
    NothingStaked,
    NoRewardsToClaim,
    AlreadyInitialized,
    NotInitialized,
    StateMigrationError,
    ReentrantCall,
    fingerprint,
    SCALE,
    PERCENT_BASE,
    SYSTEM_WALLET,
    DEFAULT_ADMIN_ROLE,
    DISTRIBUTOR_ROLE,
    STAKE_TOKEN_DECIMALS,
    REWARD_TOKEN_DECIMALS,
    DEFAULT_MIN_STAKE,
    DEFAULT_VESTING_PERIOD,
    DEFAULT_TAX_RATE,
    DEFAULT_MIN_DISTRIBUTE_AMOUNT,
)

# Fixed-point arithmetic
from .fixed_point import (
    mul_div,
    reward_per_stake_delta,
    accrued_reward,
    undistributed_dust,
    split_tax,
)

# Ledger components
from .vesting import VestingQueue, ChunkConsumption, plan_consumption
from .stake_ledger import StakeLedger, UserAccount
from .rewards import RewardAccumulator
from .state import DistributorConfig, LedgerState, Savepoint
from .migrations import CURRENT_STATE_VERSION, migrate_state_dict

# Engine
from .engine import DistributionEngine

# Reference collaborators
from .assets import Token, stake_token, reward_token
from .access import RoleRegistry
from .clock import ManualClock, SystemClock


__all__ = [
    # Protocols
    'FungibleAssetLedger', 'AuthorizationGuard', 'Clock',
    # Records and events
    'VestingChunk', 'Transfer', 'Deposited', 'Distributed', 'Claimed', 'Withdrawn', 'Event',
    'WithdrawalQuote', 'OperationRecord',
    # Exceptions
    'DistributorError', 'InvalidAmount', 'BelowMinimumDistribution', 'InsufficientBalance',
    'InsufficientAllowance', 'BelowMinimumStake', 'BelowMinimumStakeRemainder',
    'InsufficientStake', 'Unauthorized', 'NothingStaked', 'NoRewardsToClaim',
    'AlreadyInitialized', 'NotInitialized', 'StateMigrationError', 'ReentrantCall',
    # Constants
    'SCALE', 'PERCENT_BASE', 'SYSTEM_WALLET', 'DEFAULT_ADMIN_ROLE', 'DISTRIBUTOR_ROLE',
    'STAKE_TOKEN_DECIMALS', 'REWARD_TOKEN_DECIMALS', 'DEFAULT_MIN_STAKE',
    'DEFAULT_VESTING_PERIOD', 'DEFAULT_TAX_RATE', 'DEFAULT_MIN_DISTRIBUTE_AMOUNT',
    # Arithmetic
    'mul_div', 'reward_per_stake_delta', 'accrued_reward', 'undistributed_dust', 'split_tax',
    'fingerprint',
    # Components
    'VestingQueue', 'ChunkConsumption', 'plan_consumption', 'StakeLedger', 'UserAccount',
    'RewardAccumulator', 'DistributorConfig', 'LedgerState', 'Savepoint',
    'CURRENT_STATE_VERSION', 'migrate_state_dict',
    # Engine
    'DistributionEngine',
    # Collaborators
    'Token', 'stake_token', 'reward_token', 'RoleRegistry', 'ManualClock', 'SystemClock',
]
