"""
Shared API dependencies and error translation
"""

from fastapi import HTTPException, Request, status

from ..errors import (
    InvalidAmount, LoanAlreadyCompleted, LoanNotFoundError, PaymentError,
    UnknownPaymentMethodError
)
from ..service import LoanService


def get_loan_service(request: Request) -> LoanService:
    """The service bound to this application"""
    return request.app.state.loan_service


def payment_error(error: PaymentError) -> HTTPException:
    """HTTP error carrying the payment error verbatim"""
    if isinstance(error, InvalidAmount):
        status_code = 422
    elif isinstance(error, LoanAlreadyCompleted):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=status_code, detail=error.to_dict())


def not_found(error: LoanNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))


def bad_method(error: UnknownPaymentMethodError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
