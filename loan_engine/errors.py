"""
Error Taxonomy

Payment errors are caller-recoverable and are returned inside PaymentResult
rather than raised out of the engine. Host-layer errors are raised.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Generic, Optional, TypeVar


class LoanEngineError(Exception):
    """Base exception for all loan engine errors"""


class PaymentError(LoanEngineError):
    """Base class for errors reported by split/apply payment"""
    code = "payment_error"
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
    
    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class InvalidAmount(PaymentError):
    """Non-positive or non-numeric payment amount"""
    code = "invalid_amount"


class InsufficientFunds(PaymentError):
    """Asset balance below the requested payment"""
    code = "insufficient_funds"
    
    def __init__(self, account_id: str, available: Decimal, requested: Decimal):
        self.account_id = account_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient funds in account {account_id}. "
            f"Available balance: {available}, requested: {requested}"
        )
    
    @property
    def shortfall(self) -> Decimal:
        return self.requested - self.available
    
    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "account_id": self.account_id,
            "available": str(self.available),
            "requested": str(self.requested),
            "shortfall": str(self.shortfall),
        })
        return data


class ExceedsRemainingBalance(PaymentError):
    """Computed principal exceeds what is owed"""
    code = "exceeds_remaining_balance"
    
    def __init__(self, remaining: Decimal, principal: Decimal):
        self.remaining = remaining
        self.principal = principal
        super().__init__(
            f"Payment amount exceeds the remaining balance of {remaining}"
        )
    
    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"remaining": str(self.remaining), "principal": str(self.principal)})
        return data


class LoanAlreadyCompleted(PaymentError):
    """Payment attempted on a terminal loan"""
    code = "loan_already_completed"
    
    def __init__(self, loan_id: str):
        self.loan_id = loan_id
        super().__init__(f"Loan {loan_id} is already paid off")


class InvalidLoanConfiguration(PaymentError):
    """Payment type missing/unrecognized, or its required fields are absent"""
    code = "invalid_loan_configuration"


class LoanNotFoundError(LoanEngineError):
    """Raised when a referenced loan does not exist"""
    
    def __init__(self, loan_id: str):
        self.loan_id = loan_id
        super().__init__(f"Loan {loan_id} not found")


class UnknownPaymentMethodError(LoanEngineError, ValueError):
    """Raised when a payment method name is not one of the known methods"""


class PaymentOutcomeUnknown(LoanEngineError):
    """
    Persisting a payment did not finish in time.
    
    The payment may or may not have been committed. Callers must not
    re-submit it automatically; reload the loan and asset balance first.
    """
    
    def __init__(self, loan_id: str, timeout_seconds: float):
        self.loan_id = loan_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Payment for loan {loan_id} did not complete within {timeout_seconds}s; "
            f"outcome unknown, do not retry automatically"
        )


T = TypeVar("T")


@dataclass(frozen=True)
class PaymentResult(Generic[T]):
    """Typed success-or-error result"""
    value: Optional[T] = None
    error: Optional[PaymentError] = None
    
    @property
    def ok(self) -> bool:
        return self.error is None
    
    @classmethod
    def success(cls, value: T) -> 'PaymentResult[T]':
        return cls(value=value)
    
    @classmethod
    def failure(cls, error: PaymentError) -> 'PaymentResult[T]':
        return cls(error=error)
    
    def unwrap(self) -> T:
        """Return the value, or raise the carried error"""
        if self.error is not None:
            raise self.error
        return self.value
