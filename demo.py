#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Distributor Step by Step

This is a pedagogical demonstration of how the staking distributor works.
Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:   Setup           - Tokens, roles, initialization
  4-6:   Staking         - Deposits, vesting chunks, minimum stake
  7-8:   Rewards         - Distribution, the reward index, claims
  9-10:  Exits           - Early-withdrawal tax, FIFO consumption
  11-12: Guarantees      - Rejections, invariants, export and reload

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from distributor import (
    DistributionEngine, RoleRegistry, ManualClock,
    stake_token, reward_token,
    DISTRIBUTOR_ROLE, SCALE,
    DEFAULT_MIN_STAKE, DEFAULT_VESTING_PERIOD, DEFAULT_TAX_RATE, DEFAULT_MIN_DISTRIBUTE_AMOUNT,
    DistributorError,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: int = 1_735_718_400   # 2025-01-01 08:00 UTC

    # Whole-token supplies minted to the actors
    alice_stake_tokens: int = 1_000_000
    bob_stake_tokens: int = 500_000
    owner_reward_tokens: int = 1_000_000

    # Distributor parameters (production defaults)
    min_stake: int = DEFAULT_MIN_STAKE
    vesting_period: int = DEFAULT_VESTING_PERIOD
    tax_rate: int = DEFAULT_TAX_RATE
    min_distribute_amount: int = DEFAULT_MIN_DISTRIBUTE_AMOUNT


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv

DAY = 86_400


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


@dataclass
class World:
    """Everything the tutorial steps share."""
    clock: ManualClock
    roles: RoleRegistry
    engine: DistributionEngine
    stake: object
    reward: object


def show_position(world: World, user: str):
    engine = world.engine
    print(f"{user:>8}: stake={world.stake.to_display(engine.user_stake(user))} STK  "
          f"claimable={world.reward.to_display(engine.claimable_amount(user))} RWD  "
          f"chunks={len(engine.user_vestings(user))}")


# ============================================================================
# PHASE 1: SETUP (Steps 1-3)
# ============================================================================

def step_01_tokens() -> World:
    """Create the two tokens the distributor works with."""
    step_header(1, "Two Tokens",
        "Users lock a STAKE token and earn a REWARD token.")

    print("""
    The distributor never creates tokens. It holds them in custody:

    - STK (9 decimals): locked by users, returned on withdrawal
    - RWD (6 decimals): pushed in by distributors, paid out to stakers

    Amounts are always integers in base units. 1 STK = 10**9 base units.
    """)

    wait_for_enter()

    print('>>> stake = stake_token(1_000_000, holder="alice")')
    stake = stake_token(CONFIG.alice_stake_tokens, holder="alice", verbose=True)
    stake.mint("bob", CONFIG.bob_stake_tokens * 10 ** stake.decimals)
    reward = reward_token(CONFIG.owner_reward_tokens, holder="owner", verbose=True)

    section_header("Balances")
    for holder, balance in stake.holders().items():
        print(f"{holder:>8}: {stake.to_display(balance)} STK")
    for holder, balance in reward.holders().items():
        print(f"{holder:>8}: {reward.to_display(balance)} RWD")

    clock = ManualClock(CONFIG.start_time)
    roles = RoleRegistry(admin="owner")
    engine = DistributionEngine(roles, clock=clock, verbose=True)
    return World(clock=clock, roles=roles, engine=engine, stake=stake, reward=reward)


def step_02_roles(world: World) -> World:
    """Only authorized accounts may distribute."""
    step_header(2, "Roles",
        "Distribution is guarded; staking is open to everyone.")

    print(">>> roles = RoleRegistry(admin='owner')")
    print(f"owner is distributor:   {world.roles.is_authorized_distributor('owner')}")
    print(f"mallory is distributor: {world.roles.is_authorized_distributor('mallory')}")

    print("\n>>> roles.grant_role('owner', DISTRIBUTOR_ROLE, 'keeper')")
    world.roles.grant_role("owner", DISTRIBUTOR_ROLE, "keeper")
    print(f"distributors: {sorted(world.roles.members(DISTRIBUTOR_ROLE))}")
    return world


def step_03_initialize(world: World) -> World:
    """Configure the engine exactly once."""
    step_header(3, "Initialization",
        "Parameters are fixed once; a second initialize() is refused.")

    world.engine.initialize(
        world.stake, world.reward, "treasury",
        min_stake=CONFIG.min_stake,
        vesting_period=CONFIG.vesting_period,
        tax_rate=CONFIG.tax_rate,
        min_distribute_amount=CONFIG.min_distribute_amount,
    )

    section_header("Configuration")
    print(f"Minimum stake:      {world.stake.to_display(world.engine.min_stake)} STK")
    print(f"Vesting period:     {world.engine.vesting_period // DAY} days")
    print(f"Early exit tax:     {world.engine.tax_rate}%")
    print(f"Minimum reward:     {world.reward.to_display(world.engine.min_distribute_amount)} RWD")

    try:
        world.engine.initialize(world.stake, world.reward, "treasury", 1, 1, 1)
    except DistributorError as e:
        print(f"\nSecond initialize(): {type(e).__name__}: {e}")
    return world


# ============================================================================
# PHASE 2: STAKING (Steps 4-6)
# ============================================================================

def step_04_first_deposit(world: World) -> World:
    """Approve, then deposit."""
    step_header(4, "First Deposit",
        "A deposit pulls tokens on the user's allowance and opens a vesting chunk.")

    amount = 300_000 * 10 ** 9
    print(">>> stake.approve('alice', engine.address, 300_000 STK)")
    world.stake.approve("alice", world.engine.address, amount)
    print(">>> engine.deposit('alice', 300_000 STK)")
    world.engine.deposit("alice", amount)

    section_header("Alice's chunks")
    for chunk in world.engine.user_vestings("alice"):
        print(f"{world.stake.to_display(chunk.amount)} STK unlocks at {chunk.unlock_at}")
    return world


def step_05_second_staker(world: World) -> World:
    """Bob joins two days later."""
    step_header(5, "A Second Staker",
        "Every deposit is its own chunk with its own unlock time.")

    world.clock.advance(2 * DAY)
    amount = 250_000 * 10 ** 9
    world.stake.approve("bob", world.engine.address, amount)
    world.engine.deposit("bob", amount)

    world.clock.advance(DAY)
    top_up = 50_000 * 10 ** 9
    world.stake.approve("alice", world.engine.address, top_up)
    world.engine.deposit("alice", top_up)

    section_header("Positions")
    show_position(world, "alice")
    show_position(world, "bob")
    print(f"\nTotal stake: {world.stake.to_display(world.engine.total_stake)} STK")
    return world


def step_06_minimum_stake(world: World) -> World:
    """Stakes below the minimum are refused."""
    step_header(6, "Minimum Stake",
        "A first deposit must reach the minimum; top-ups may be any size.")

    world.stake.mint("carol", 1_000 * 10 ** 9)
    world.stake.approve("carol", world.engine.address, 1_000 * 10 ** 9)
    try:
        world.engine.deposit("carol", 1_000 * 10 ** 9)
    except DistributorError as e:
        print(f"\ncarol: {type(e).__name__}")
    return world


# ============================================================================
# PHASE 3: REWARDS (Steps 7-8)
# ============================================================================

def step_07_distribute(world: World) -> World:
    """Spread a reward over all current stake."""
    step_header(7, "Distribution",
        "One index update pays every staker pro rata, in O(1).")

    print("""
    reward_per_stake += amount * 10**18 // total_stake

    A user's reward is stake * (reward_per_stake - checkpoint) // 10**18.
    Flooring means stakers never receive more than was distributed.
    """)

    wait_for_enter()

    amount = 60_000 * 10 ** 6
    world.reward.approve("owner", world.engine.address, amount)
    world.engine.distribute("owner", amount)

    section_header("Index")
    print(f"reward_per_stake = {world.engine.reward_per_stake} ({world.engine.reward_per_stake / SCALE:.9f} RWD per base unit)")
    show_position(world, "alice")
    show_position(world, "bob")
    return world


def step_08_claim(world: World) -> World:
    """Claim pays out everything accrued."""
    step_header(8, "Claim",
        "Claiming moves accrued rewards to the user; a second claim finds nothing.")

    world.engine.claim("bob")
    print(f"bob RWD balance: {world.reward.to_display(world.reward.balance_of('bob'))}")
    try:
        world.engine.claim("bob")
    except DistributorError as e:
        print(f"second claim: {type(e).__name__}")
    return world


# ============================================================================
# PHASE 4: EXITS (Steps 9-10)
# ============================================================================

def step_09_preview_and_withdraw(world: World) -> World:
    """Early exit is taxed; rewards come along automatically."""
    step_header(9, "Early Withdrawal",
        "Unvested principal loses the tax to the treasury; vested principal does not.")

    quote = world.engine.preview_withdraw("bob", world.engine.user_stake("bob"))
    section_header("Preview")
    print(f"net principal: {world.stake.to_display(quote.net_principal)} STK")
    print(f"tax:           {world.stake.to_display(quote.tax)} STK")
    print(f"rewards:       {world.reward.to_display(quote.rewards)} RWD")

    world.engine.withdraw("bob", world.engine.user_stake("bob"))
    print(f"\ntreasury: {world.stake.to_display(world.stake.balance_of('treasury'))} STK")
    return world


def step_10_fifo(world: World) -> World:
    """Withdrawals consume the oldest chunk first."""
    step_header(10, "FIFO Vesting",
        "After the first chunk vests, a partial withdrawal is tax-free.")

    world.clock.advance(5 * DAY)
    print(f"vested: {world.stake.to_display(world.engine.vested_amount('alice'))} STK")

    amount = 40_000 * 10 ** 9
    quote = world.engine.preview_withdraw("alice", amount)
    print(f"withdrawing {world.stake.to_display(amount)} STK: tax={quote.tax}")
    world.engine.withdraw("alice", amount)

    section_header("Alice's chunks")
    for chunk in world.engine.user_vestings("alice"):
        print(f"{world.stake.to_display(chunk.amount)} STK unlocks at {chunk.unlock_at}")
    return world


# ============================================================================
# PHASE 5: GUARANTEES (Steps 11-12)
# ============================================================================

def step_11_invariants(world: World) -> World:
    """The engine can audit itself."""
    step_header(11, "Invariants",
        "Stake sums, chunk sums and custody are checked on demand.")

    result = world.engine.verify_invariants()
    print(f"valid:          {result['valid']}")
    print(f"total_stake:    {result['total_stake']}")
    print(f"sum_of_stakes:  {result['sum_of_stakes']}")
    print(f"STK supply ok:  {world.stake.verify_supply()['valid']}")
    print(f"RWD supply ok:  {world.reward.verify_supply()['valid']}")

    section_header("Operation log")
    for record in world.engine.operation_log:
        print(record)
    return world


def step_12_export(world: World) -> World:
    """State survives an export / load round trip."""
    step_header(12, "Export and Reload",
        "A versioned export reloads into a fresh engine with the same fingerprint.")

    payload = world.engine.export_state()
    fresh = DistributionEngine(world.roles, clock=world.clock, verbose=False)
    fresh.load_state(payload, world.stake, world.reward)

    print(f"state_version:  {payload['state_version']}")
    print(f"original:       {world.engine.state.fingerprint()}")
    print(f"reloaded:       {fresh.state.fingerprint()}")
    return world


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       STAKE DISTRIBUTOR - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    world = step_01_tokens()
    for step in (
        step_02_roles, step_03_initialize,
        step_04_first_deposit, step_05_second_staker, step_06_minimum_stake,
        step_07_distribute, step_08_claim,
        step_09_preview_and_withdraw, step_10_fifo,
        step_11_invariants, step_12_export,
    ):
        wait_for_enter()
        world = step(world)

    print(f"\n{'='*70}")
    print("TUTORIAL COMPLETE")
    print(f"{'='*70}")


if __name__ == "__main__":
    main()
