"""
fixed_point.py - Scaled integer arithmetic for the reward-per-stake index

The reward index is an integer scaled by SCALE (10**18). Every division in
this module floors. Floors always round in the distributor's favour: a user
is never credited more than their exact proportional share, so the sum of
credited rewards never exceeds what was distributed. The remainder stays in
custody as undistributed dust.

All functions are pure and operate on Python ints only.
"""

from __future__ import annotations
from typing import Tuple

from .core import SCALE, PERCENT_BASE, is_token_amount


def mul_div(a: int, b: int, denominator: int) -> int:
    """
    Compute floor(a * b / denominator) without intermediate rounding.

    Args:
        a: Non-negative multiplicand
        b: Non-negative multiplier
        denominator: Positive divisor

    Returns:
        The floored quotient

    Raises:
        ValueError: If an operand is negative or not an int, or denominator is zero
    """
    if not is_token_amount(a) or not is_token_amount(b):
        raise ValueError(f"mul_div operands must be non-negative ints, got {a!r}, {b!r}")
    if not is_token_amount(denominator) or denominator == 0:
        raise ValueError(f"mul_div denominator must be a positive int, got {denominator!r}")
    return (a * b) // denominator


def reward_per_stake_delta(amount: int, total_stake: int) -> int:
    """
    Index increment produced by distributing amount over total_stake.

    floor(amount * SCALE / total_stake). May be 0 when amount * SCALE < total_stake,
    in which case the whole distribution is dust.
    """
    return mul_div(amount, SCALE, total_stake)


def accrued_reward(stake: int, current_index: int, checkpoint: int) -> int:
    """
    Reward earned by stake while the index moved from checkpoint to current_index.

    floor(stake * (current_index - checkpoint) / SCALE).

    Raises:
        ValueError: If checkpoint is ahead of current_index
    """
    if checkpoint > current_index:
        raise ValueError(f"checkpoint {checkpoint} is ahead of index {current_index}")
    return mul_div(stake, current_index - checkpoint, SCALE)


def distributed_share(stake: int, delta: int) -> int:
    """Reward a stake receives from a single index increment."""
    return mul_div(stake, delta, SCALE)


def undistributed_dust(amount: int, total_stake: int) -> int:
    """
    Upper bound on the part of a distribution no staker can ever claim.

    amount - floor(total_stake * delta / SCALE); per-user flooring can only
    add to this, never subtract.
    """
    delta = reward_per_stake_delta(amount, total_stake)
    return amount - distributed_share(total_stake, delta)


def split_tax(portion: int, tax_rate: int) -> Tuple[int, int]:
    """
    Split an early-withdrawn portion into (net, tax).

    net = floor(portion * (100 - tax_rate) / 100); tax takes the remainder so
    net + tax == portion exactly.
    """
    if not is_token_amount(tax_rate) or tax_rate > PERCENT_BASE:
        raise ValueError(f"tax_rate must be an int in 0..{PERCENT_BASE}, got {tax_rate!r}")
    net = mul_div(portion, PERCENT_BASE - tax_rate, PERCENT_BASE)
    return net, portion - net
