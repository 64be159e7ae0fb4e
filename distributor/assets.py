"""
assets.py - In-memory fungible tokens

Token is the reference FungibleAssetLedger used by tests, the demo and any
embedding that does not bring its own token backend. It keeps integer
balances in base units, ERC-20 style allowances, and an append-only transfer
log.

Issuance follows double-entry rules: minting moves tokens out of
SYSTEM_WALLET, which is exempt from balance checks and goes negative. The
sum of all balances, SYSTEM_WALLET included, is therefore always zero, and
verify_supply() checks exactly that.

Usage:
    stake = stake_token(1_000_000, holder="owner", verbose=False)
    stake.approve("owner", "distributor", 500 * 10 ** 9)
    stake.transfer_from("distributor", "owner", "distributor", 500 * 10 ** 9)
"""

from __future__ import annotations
from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from .core import (
    Account, Transfer, SYSTEM_WALLET,
    STAKE_TOKEN_DECIMALS, REWARD_TOKEN_DECIMALS,
    InsufficientBalance, InsufficientAllowance,
    is_token_amount,
)


class Token:
    """
    Fungible token ledger with allowances.

    Every transfer is validated in full before any balance changes, so a
    rejected transfer leaves no trace.

    Thread Safety:
        Not thread-safe.

    Example:
        usd = Token("USDX", "Test Dollar", decimals=6, verbose=False)
        usd.mint("alice", 1_000_000)
        usd.transfer("alice", "bob", 250_000)
    """

    def __init__(self, symbol: str, name: str, decimals: int = 18, verbose: bool = True):
        """
        Create a token with no supply.

        Args:
            symbol: Ticker (e.g. "STK")
            name: Human-readable name
            decimals: Base-unit precision used by to_display()
            verbose: Print each transfer (default: True)
        """
        if not symbol or not symbol.strip():
            raise ValueError("Token symbol cannot be empty")
        if not is_token_amount(decimals):
            raise ValueError(f"decimals must be a non-negative int, got {decimals!r}")
        self.symbol = symbol
        self.name = name
        self.decimals = decimals
        self.verbose = verbose
        self.balances: Dict[Account, int] = defaultdict(int)
        self.allowances: Dict[Tuple[Account, Account], int] = {}
        self.transfer_log: List[Transfer] = []

    def __repr__(self) -> str:
        return f"Token({self.symbol}, supply={self.total_supply()})"

    # ========================================================================
    # READ
    # ========================================================================

    def balance_of(self, account: Account) -> int:
        return self.balances.get(account, 0)

    def allowance(self, owner: Account, spender: Account) -> int:
        return self.allowances.get((owner, spender), 0)

    def total_supply(self) -> int:
        """Tokens issued and not redeemed (the negated system balance)."""
        return -self.balances.get(SYSTEM_WALLET, 0)

    def holders(self) -> Dict[Account, int]:
        """All non-zero balances outside SYSTEM_WALLET."""
        return {
            a: b for a, b in sorted(self.balances.items())
            if b != 0 and a != SYSTEM_WALLET
        }

    def to_display(self, amount: int) -> Decimal:
        """Convert base units to a whole-token Decimal (1_500_000 → 1.5 at 6 decimals)."""
        return Decimal(amount).scaleb(-self.decimals)

    def verify_supply(self) -> Dict[str, Any]:
        """
        Verify the double-entry invariant: all balances sum to zero.

        Returns:
            Dict with keys:
            - 'valid': bool - True if the invariant holds
            - 'total_supply': int - Issued supply
            - 'circulating': int - Sum of non-system balances
            - 'discrepancy': int - circulating - total_supply (0 when valid)
        """
        circulating = sum(b for a, b in self.balances.items() if a != SYSTEM_WALLET)
        supply = self.total_supply()
        return {
            'valid': circulating == supply,
            'total_supply': supply,
            'circulating': circulating,
            'discrepancy': circulating - supply,
        }

    # ========================================================================
    # MUTATION
    # ========================================================================

    def mint(self, to: Account, amount: int) -> None:
        """Issue amount new tokens to an account."""
        self._execute(Transfer(amount, self.symbol, SYSTEM_WALLET, to))

    def approve(self, owner: Account, spender: Account, amount: int) -> None:
        """Set (not add to) spender's allowance over owner's tokens."""
        if not is_token_amount(amount):
            raise ValueError(f"Allowance must be a non-negative int, got {amount!r}")
        self.allowances[(owner, spender)] = amount

    def transfer(self, sender: Account, to: Account, amount: int) -> None:
        """
        Move amount from sender to to.

        Raises:
            InsufficientBalance: If sender holds less than amount
            ValueError: If the transfer itself is malformed
        """
        transfer = Transfer(amount, self.symbol, sender, to)
        self._check_balance(sender, amount)
        self._execute(transfer)

    def transfer_from(self, spender: Account, owner: Account, to: Account, amount: int) -> None:
        """
        Move amount from owner to to on spender's allowance.

        Raises:
            InsufficientAllowance: If spender may not pull amount from owner
            InsufficientBalance: If owner holds less than amount
        """
        transfer = Transfer(amount, self.symbol, owner, to, spender=spender)
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            self._reject(f"{spender} allowance over {owner}: {allowed} < {amount}")
            raise InsufficientAllowance(
                f"{owner} has not approved {spender} for {amount} {self.symbol}"
            )
        self._check_balance(owner, amount)
        self.allowances[(owner, spender)] = allowed - amount
        self._execute(transfer)

    def _check_balance(self, account: Account, amount: int) -> None:
        if account == SYSTEM_WALLET:
            return
        balance = self.balance_of(account)
        if balance < amount:
            self._reject(f"{account} {self.symbol}: {balance} < {amount}")
            raise InsufficientBalance(f"{account} holds {balance} {self.symbol}, needs {amount}")

    def _execute(self, transfer: Transfer) -> None:
        self.balances[transfer.source] -= transfer.amount
        self.balances[transfer.dest] += transfer.amount
        self.transfer_log.append(transfer)
        if self.verbose:
            print(f"✓ {transfer!r}")

    def _reject(self, reason: str) -> None:
        if self.verbose:
            print(f"✗ REJECTED: {reason}")


# ============================================================================
# TOKEN FACTORIES
# ============================================================================

def stake_token(
    initial_supply: int,
    holder: Account,
    symbol: str = "STK",
    verbose: bool = True,
) -> Token:
    """
    Create the stake token and mint initial_supply whole tokens to holder.

    Args:
        initial_supply: Supply in whole tokens (scaled by 10**9)
        holder: Account receiving the initial supply
        symbol: Ticker (default: "STK")
        verbose: Print transfers

    Returns:
        A Token with 9 decimals
    """
    token = Token(symbol, "Stake Token", decimals=STAKE_TOKEN_DECIMALS, verbose=verbose)
    if initial_supply:
        token.mint(holder, initial_supply * 10 ** STAKE_TOKEN_DECIMALS)
    return token


def reward_token(
    initial_supply: int,
    holder: Account,
    symbol: str = "RWD",
    verbose: bool = True,
) -> Token:
    """
    Create the reward token and mint initial_supply whole tokens to holder.

    Returns:
        A Token with 6 decimals
    """
    token = Token(symbol, "Reward Token", decimals=REWARD_TOKEN_DECIMALS, verbose=verbose)
    if initial_supply:
        token.mint(holder, initial_supply * 10 ** REWARD_TOKEN_DECIMALS)
    return token
