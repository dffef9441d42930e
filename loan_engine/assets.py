"""
Asset Ledger Module

The cash-asset accounts loans are paid from and disbursed into. The engine
only reads and writes a balance per account id; payment method names are
validated and mapped to account ids at the boundary.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import Dict, Union

from .errors import UnknownPaymentMethodError
from .money import ZERO, to_decimal
from .storage import StorageInterface


class PaymentMethod(Enum):
    """Where money for a payment comes from (or a loan is received into)"""
    BANK = "bank"
    CARD = "card"
    CASH = "cash"
    ASSETS = "assets"
    OTHER = "other"


PAYMENT_METHOD_ACCOUNTS: Dict[PaymentMethod, str] = {
    PaymentMethod.BANK: "1",
    PaymentMethod.CARD: "2",
    PaymentMethod.CASH: "3",
    PaymentMethod.ASSETS: "4",
    PaymentMethod.OTHER: "5",
}

PAYMENT_METHOD_NAMES: Dict[PaymentMethod, str] = {
    PaymentMethod.BANK: "Bank Account",
    PaymentMethod.CARD: "Credit Card",
    PaymentMethod.CASH: "Cash",
    PaymentMethod.ASSETS: "Investments",
    PaymentMethod.OTHER: "Other Assets",
}


def parse_payment_method(method: Union[PaymentMethod, str]) -> PaymentMethod:
    """Parse a payment method name; unknown names fail fast"""
    if isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod(method)
    except ValueError:
        valid = ", ".join(m.value for m in PaymentMethod)
        raise UnknownPaymentMethodError(
            f"Unknown payment method {method!r}; expected one of: {valid}"
        )


def resolve_account_id(method: Union[PaymentMethod, str]) -> str:
    """Account id backing a payment method"""
    return PAYMENT_METHOD_ACCOUNTS[parse_payment_method(method)]


class AssetLedger(ABC):
    """Balance per asset account, as seen by the payment engine"""
    
    @abstractmethod
    def get_balance(self, account_id: str) -> Decimal:
        """Current balance; unknown accounts are empty"""
        pass
    
    @abstractmethod
    def set_balance(self, account_id: str, amount: Decimal) -> None:
        """Overwrite the balance of an account"""
        pass


class InMemoryAssetLedger(AssetLedger):
    """Dict-backed ledger"""
    
    def __init__(self, balances: Dict[str, Decimal] = None):
        self._balances: Dict[str, Decimal] = {
            account_id: to_decimal(balance) for account_id, balance in (balances or {}).items()
        }
    
    def get_balance(self, account_id: str) -> Decimal:
        return self._balances.get(account_id, ZERO)
    
    def set_balance(self, account_id: str, amount: Decimal) -> None:
        self._balances[account_id] = to_decimal(amount)
    
    def snapshot(self) -> Dict[str, Decimal]:
        return dict(self._balances)


class StorageAssetLedger(AssetLedger):
    """Ledger persisted through the host storage backend"""
    
    table = "assets"
    
    def __init__(self, storage: StorageInterface):
        self.storage = storage
    
    def get_balance(self, account_id: str) -> Decimal:
        record = self.storage.load(self.table, account_id)
        if not record:
            return ZERO
        return to_decimal(record["balance"])
    
    def set_balance(self, account_id: str, amount: Decimal) -> None:
        record = self.storage.load(self.table, account_id) or {
            "id": account_id,
            "name": _account_name(account_id),
        }
        record["balance"] = str(to_decimal(amount))
        self.storage.save(self.table, account_id, record)
    
    def balances(self) -> Dict[str, Decimal]:
        return {
            record["id"]: to_decimal(record["balance"])
            for record in self.storage.load_all(self.table)
        }


def _account_name(account_id: str) -> str:
    for method, method_account in PAYMENT_METHOD_ACCOUNTS.items():
        if method_account == account_id:
            return PAYMENT_METHOD_NAMES[method]
    return account_id
