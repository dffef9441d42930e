"""
Loan Module

Loan record, its accrual model and status enums, and the per-payment
breakdown value returned for display.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from .assets import PaymentMethod
from .frequency import PaymentFrequency
from .money import ZERO, optional_decimal, to_decimal
from .storage import StorageRecord


class PaymentType(Enum):
    """Accrual model; exactly one is active per loan"""
    INTEREST = "interest"    # simple interest on the outstanding balance
    FIXED = "fixed"          # flat fee per fixed_charge_frequency


class LoanStatus(Enum):
    """Loan lifecycle states"""
    ACTIVE = "active"
    COMPLETED = "completed"  # terminal


def _coerce_enum(enum_type, value):
    """Convert known enum values; unrecognized ones are kept for the engine to report"""
    if value is None or isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        return value


def _coerce_date(value) -> Optional[date]:
    if isinstance(value, str):
        return date.fromisoformat(value)
    if isinstance(value, datetime):
        return value.date()
    return value


@dataclass
class Loan(StorageRecord):
    """Loan with its terms and current repayment status"""
    name: str
    principal: Decimal
    remaining_amount: Decimal
    payment_type: Optional[PaymentType]
    payment_frequency: PaymentFrequency
    installment_amount: Decimal          # monthly figure, converted on demand
    term_months: int
    next_due_date: date
    
    interest_rate_annual_percent: Optional[Decimal] = None
    fixed_charge: Optional[Decimal] = None
    fixed_charge_frequency: Optional[PaymentFrequency] = None
    total_to_pay: Optional[Decimal] = None
    manual_total_to_pay: bool = False
    
    lender: str = ""
    received_in: Optional[PaymentMethod] = None
    start_date: Optional[date] = None
    
    status: LoanStatus = LoanStatus.ACTIVE
    completed_date: Optional[datetime] = None
    
    def __post_init__(self):
        self.principal = to_decimal(self.principal)
        self.remaining_amount = to_decimal(self.remaining_amount)
        self.installment_amount = to_decimal(self.installment_amount)
        self.interest_rate_annual_percent = optional_decimal(self.interest_rate_annual_percent)
        self.fixed_charge = optional_decimal(self.fixed_charge)
        self.total_to_pay = optional_decimal(self.total_to_pay)
        self.term_months = int(self.term_months)
        
        self.payment_type = _coerce_enum(PaymentType, self.payment_type)
        self.payment_frequency = PaymentFrequency(self.payment_frequency)
        if self.fixed_charge_frequency is not None:
            self.fixed_charge_frequency = PaymentFrequency(self.fixed_charge_frequency)
        if self.received_in is not None:
            self.received_in = PaymentMethod(self.received_in)
        self.status = LoanStatus(self.status)
        self.next_due_date = _coerce_date(self.next_due_date)
        self.start_date = _coerce_date(self.start_date)
        if isinstance(self.completed_date, str):
            self.completed_date = datetime.fromisoformat(self.completed_date)
        
        if self.remaining_amount < ZERO or self.remaining_amount > self.principal:
            raise ValueError(
                f"Remaining amount {self.remaining_amount} must be between 0 and principal {self.principal}"
            )
        if self.status == LoanStatus.COMPLETED:
            if self.remaining_amount != ZERO or self.completed_date is None:
                raise ValueError("Completed loans must have zero balance and a completed date")
        elif self.completed_date is not None:
            raise ValueError("Only completed loans carry a completed date")
    
    @property
    def is_completed(self) -> bool:
        return self.status == LoanStatus.COMPLETED
    
    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE
    
    def copy(self, **changes) -> 'Loan':
        """Return a new Loan with the given fields replaced"""
        return replace(self, **changes)
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary for storage"""
        def text(value):
            return None if value is None else str(value)
        
        def value_of(enum_value):
            return enum_value.value if isinstance(enum_value, Enum) else enum_value
        
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "name": self.name,
            "principal": str(self.principal),
            "remaining_amount": str(self.remaining_amount),
            "payment_type": value_of(self.payment_type),
            "payment_frequency": self.payment_frequency.value,
            "installment_amount": str(self.installment_amount),
            "term_months": self.term_months,
            "next_due_date": self.next_due_date.isoformat(),
            "interest_rate_annual_percent": text(self.interest_rate_annual_percent),
            "fixed_charge": text(self.fixed_charge),
            "fixed_charge_frequency": value_of(self.fixed_charge_frequency),
            "total_to_pay": text(self.total_to_pay),
            "manual_total_to_pay": self.manual_total_to_pay,
            "lender": self.lender,
            "received_in": value_of(self.received_in),
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "status": self.status.value,
            "completed_date": self.completed_date.isoformat() if self.completed_date else None,
        }


@dataclass(frozen=True)
class PaymentBreakdown:
    """
    How one submitted payment is allocated.
    
    interest and charge are mutually exclusive; the other is always zero.
    """
    principal: Decimal
    interest: Decimal
    charge: Decimal
    submitted_amount: Decimal = field(default=ZERO)
    
    @property
    def allocated(self) -> Decimal:
        return self.principal + self.interest + self.charge
    
    @property
    def unapplied(self) -> Decimal:
        """Part of the submitted amount not allocated to any component"""
        return max(ZERO, self.submitted_amount - self.allocated)
    
    @property
    def charge_shortfall(self) -> Decimal:
        """Part of the period's interest/charge the submitted amount does not cover"""
        return max(ZERO, self.interest + self.charge - self.submitted_amount)
    
    def to_dict(self) -> Dict[str, str]:
        return {
            "principal": str(self.principal),
            "interest": str(self.interest),
            "charge": str(self.charge),
            "submitted_amount": str(self.submitted_amount),
            "unapplied": str(self.unapplied),
            "charge_shortfall": str(self.charge_shortfall),
        }
