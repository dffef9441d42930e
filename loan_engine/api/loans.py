"""
Loan endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..errors import (
    LoanNotFoundError, PaymentError, PaymentOutcomeUnknown, UnknownPaymentMethodError
)
from ..engine import minimum_payment, split_payment
from ..loans import LoanStatus
from ..service import LoanService
from .dependencies import bad_method, get_loan_service, not_found, payment_error
from .schemas import CreateLoanRequest, LoanPaymentRequest, SplitPaymentRequest


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: CreateLoanRequest,
    service: LoanService = Depends(get_loan_service)
):
    """Create a loan and credit its principal to the receiving account"""
    try:
        loan = service.create_loan(
            name=request.name,
            principal=request.principal,
            payment_type=request.payment_type,
            term_months=request.term_months,
            interest_rate_annual_percent=request.interest_rate_annual_percent,
            fixed_charge=request.fixed_charge,
            fixed_charge_frequency=request.fixed_charge_frequency,
            payment_frequency=request.payment_frequency,
            installment_amount=request.installment_amount,
            total_to_pay_override=request.total_to_pay,
            received_in=request.received_in,
            lender=request.lender,
            start_date=request.start_date,
            next_due_date=request.next_due_date,
        )
    except PaymentError as e:
        raise payment_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    
    return loan.to_dict()


@router.get("")
async def list_loans(
    status_filter: Optional[str] = Query(None, alias="status"),
    service: LoanService = Depends(get_loan_service)
):
    """List loans, optionally only active or completed ones"""
    try:
        status_value = LoanStatus(status_filter) if status_filter else None
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown loan status {status_filter!r}")
    return {"loans": [loan.to_dict() for loan in service.list_loans(status_value)]}


@router.get("/{loan_id}")
async def get_loan(
    loan_id: str,
    service: LoanService = Depends(get_loan_service)
):
    """Get loan details"""
    try:
        return service.get_loan(loan_id).to_dict()
    except LoanNotFoundError as e:
        raise not_found(e)


@router.delete("/{loan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_loan(
    loan_id: str,
    service: LoanService = Depends(get_loan_service)
):
    """Delete a loan"""
    try:
        service.delete_loan(loan_id)
    except LoanNotFoundError as e:
        raise not_found(e)


@router.get("/{loan_id}/minimum-payment")
async def get_minimum_payment(
    loan_id: str,
    service: LoanService = Depends(get_loan_service)
):
    """Catch-up minimum payment as of now"""
    try:
        loan = service.get_loan(loan_id)
    except LoanNotFoundError as e:
        raise not_found(e)
    return {"loan_id": loan_id, "minimum_payment": str(minimum_payment(loan, service.clock.now()))}


@router.get("/{loan_id}/payment-options")
async def get_payment_options(
    loan_id: str,
    service: LoanService = Depends(get_loan_service)
):
    """Minimum, regular and payoff amounts"""
    try:
        return service.payment_options(loan_id).to_dict()
    except LoanNotFoundError as e:
        raise not_found(e)


@router.post("/{loan_id}/split")
async def preview_split(
    loan_id: str,
    request: SplitPaymentRequest,
    service: LoanService = Depends(get_loan_service)
):
    """Preview the principal/interest/charge split of an amount"""
    try:
        loan = service.get_loan(loan_id)
    except LoanNotFoundError as e:
        raise not_found(e)
    
    result = split_payment(loan, request.amount)
    if not result.ok:
        raise payment_error(result.error)
    return result.value.to_dict()


@router.post("/{loan_id}/payments")
async def make_loan_payment(
    loan_id: str,
    request: LoanPaymentRequest,
    service: LoanService = Depends(get_loan_service)
):
    """Make a loan payment"""
    try:
        result = await service.make_payment_async(
            loan_id, request.amount, request.paid_through, now=request.payment_date
        )
    except LoanNotFoundError as e:
        raise not_found(e)
    except UnknownPaymentMethodError as e:
        raise bad_method(e)
    except PaymentOutcomeUnknown as e:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(e))
    
    if not result.ok:
        raise payment_error(result.error)
    
    outcome = result.value
    response = outcome.to_dict()
    response["message"] = (
        "Loan paid off" if outcome.paid_off else "Loan payment processed successfully"
    )
    return response
