"""
Asset balance and portfolio endpoints
"""

from fastapi import APIRouter, Depends, HTTPException

from ..assets import PAYMENT_METHOD_NAMES, resolve_account_id
from ..errors import UnknownPaymentMethodError
from ..service import LoanService
from .dependencies import bad_method, get_loan_service
from .schemas import SetBalanceRequest


router = APIRouter()


@router.get("/assets")
async def list_balances(service: LoanService = Depends(get_loan_service)):
    """Balance behind every payment method"""
    return {
        "assets": [
            {
                "method": method.value,
                "account_id": resolve_account_id(method),
                "name": PAYMENT_METHOD_NAMES[method],
                "balance": str(balance),
            }
            for method, balance in service.asset_balances().items()
        ]
    }


@router.put("/assets/{method}")
async def set_balance(
    method: str,
    request: SetBalanceRequest,
    service: LoanService = Depends(get_loan_service)
):
    """Set the balance behind a payment method"""
    try:
        balance = service.set_asset_balance(method, request.balance)
    except UnknownPaymentMethodError as e:
        raise bad_method(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"method": method, "balance": str(balance)}


@router.get("/portfolio/summary")
async def portfolio_summary(service: LoanService = Depends(get_loan_service)):
    """Totals across active and completed loans"""
    return service.portfolio_summary().to_dict()
