"""
Pydantic schemas for API requests
"""

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field


class CreateLoanRequest(BaseModel):
    name: str
    principal: str = Field(..., description="Decimal amount as string")
    payment_type: str = Field(..., description="interest or fixed")
    term_months: int
    interest_rate_annual_percent: Optional[str] = None
    fixed_charge: Optional[str] = None
    fixed_charge_frequency: Optional[str] = Field(None, description="weekly, biweekly or monthly")
    payment_frequency: str = "monthly"
    installment_amount: Optional[str] = None
    total_to_pay: Optional[str] = Field(None, description="Manual override of the computed total")
    received_in: Optional[str] = Field(None, description="Payment method receiving the principal")
    lender: str = ""
    start_date: Optional[date] = None
    next_due_date: Optional[date] = None


class SplitPaymentRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")


class LoanPaymentRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")
    paid_through: Optional[str] = Field(None, description="bank, card, cash, assets or other")
    payment_date: Optional[date] = None


class SetBalanceRequest(BaseModel):
    balance: str = Field(..., description="Decimal amount as string")
