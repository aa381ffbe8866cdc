"""
currency.py - Currency ledger used to settle asset sales

The registry only needs one primitive from the currency system: an atomic
transfer that either moves the full amount or fails with InsufficientFunds.

Classes:
- CurrencyLedger: Protocol defining the transfer interface
- Balances: In-memory free-balance ledger with genesis endowments
"""

from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol, runtime_checkable
import copy

from .core import AccountId, Amount, InsufficientFunds, _canonicalize, to_amount


@runtime_checkable
class CurrencyLedger(Protocol):
    """
    Protocol for currency ledgers.

    transfer() is all-or-nothing: on InsufficientFunds no balance has changed.

    Ledger writes are not part of the registry's store overlay. The registry
    only calls transfer() once every check has passed and both accounts have
    been validated, so no registry write after a successful payment can fail.
    """

    def transfer(self, source: AccountId, dest: AccountId, amount: Amount) -> None:
        ...

    def free_balance(self, account: AccountId) -> Amount:
        ...


class Balances:
    """
    Free balances per account.

    Accounts that were never credited hold zero. Total issuance is fixed at
    genesis and conserved by every transfer.

    Example:
        balances = Balances({1: 10, 2: 20})
        balances.transfer(2, 1, Decimal("10"))
        balances.free_balance(1)   # Decimal("20")
    """

    def __init__(self, endowments: Optional[Dict[AccountId, Any]] = None, verbose: bool = False):
        """
        Create a balances ledger.

        Args:
            endowments: Genesis balances, account -> amount
            verbose: Print genesis endowments and transfers
        """
        self.verbose = verbose
        self._balances: Dict[AccountId, Amount] = {}
        self.genesis: Dict[AccountId, Amount] = {}
        for account, amount in (endowments or {}).items():
            amount = to_amount(amount)
            self._balances[account] = amount
            self.genesis[account] = amount
            if verbose:
                print(f"Endowed: {account!r} with {amount}")

    def free_balance(self, account: AccountId) -> Amount:
        return self._balances.get(account, Decimal("0"))

    def total_issuance(self) -> Amount:
        """Sum of all balances, accumulated in a deterministic order."""
        return sum(
            (self._balances[a] for a in sorted(self._balances, key=_canonicalize)),
            Decimal("0"),
        )

    def transfer(self, source: AccountId, dest: AccountId, amount: Amount) -> None:
        """
        Move amount from source to dest.

        Raises:
            InsufficientFunds: If source holds less than amount
            ValueError: If amount is negative or not finite
        """
        amount = to_amount(amount)
        available = self.free_balance(source)
        if available < amount:
            raise InsufficientFunds(
                f"{source!r} has {available}, needs {amount}"
            )
        if source == dest:
            return
        self._balances[source] = available - amount
        self._balances[dest] = self.free_balance(dest) + amount
        if self.verbose:
            print(f"Transfer: {amount} {source!r} -> {dest!r}")

    def clone(self) -> Balances:
        cloned = Balances.__new__(Balances)
        cloned.verbose = self.verbose
        cloned._balances = dict(self._balances)
        cloned.genesis = dict(self.genesis)
        return cloned

    def at_genesis(self) -> Balances:
        """Return a fresh ledger holding only the genesis endowments."""
        return Balances(copy.copy(self.genesis), verbose=False)

    def __repr__(self):
        return f"Balances({len(self._balances)} accounts, issuance={self.total_issuance()})"
