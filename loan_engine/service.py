"""
Loan Service Module

Host-application layer around the pure engine: creates and stores loans,
owns the single mutable copy of loans and asset balances, commits payment
outcomes atomically and notifies observers afterwards.
"""

import asyncio
import threading
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Union

from .amortization import derive_installment, total_to_pay
from .assets import (
    InMemoryAssetLedger, PaymentMethod, StorageAssetLedger,
    parse_payment_method, resolve_account_id
)
from .clock import Clock, SystemClock, as_date
from .config import LoanEngineConfig, config as default_config
from .errors import (
    InvalidLoanConfiguration, LoanNotFoundError, PaymentOutcomeUnknown, PaymentResult
)
from .events import EventDispatcher, EventPayload, LoanEvent
from .frequency import PaymentFrequency, add_months
from .loans import Loan, LoanStatus, PaymentType
from .logging_config import get_logger, log_action
from .money import ZERO, optional_decimal, round_money, to_decimal
from .overdue import PaymentOptions, payment_options
from .payments import PaymentOutcome, PaymentProcessor
from .storage import StorageInterface


@dataclass(frozen=True)
class PortfolioSummary:
    """Totals across the user's loans"""
    active_count: int
    completed_count: int
    total_principal: Decimal
    total_remaining: Decimal
    total_monthly_installment: Decimal
    average_interest_rate: Decimal
    
    def to_dict(self) -> Dict[str, object]:
        return {
            "active_count": self.active_count,
            "completed_count": self.completed_count,
            "total_principal": str(self.total_principal),
            "total_remaining": str(self.total_remaining),
            "total_monthly_installment": str(self.total_monthly_installment),
            "average_interest_rate": str(self.average_interest_rate),
        }


class LoanService:
    """
    Manages loans from creation through payoff
    """
    
    loans_table = "loans"
    
    def __init__(
        self,
        storage: StorageInterface,
        clock: Optional[Clock] = None,
        dispatcher: Optional[EventDispatcher] = None,
        processor: Optional[PaymentProcessor] = None,
        config: Optional[LoanEngineConfig] = None
    ):
        self.storage = storage
        self.clock = clock or SystemClock()
        self.dispatcher = dispatcher or EventDispatcher()
        self.processor = processor or PaymentProcessor()
        self.config = config or default_config
        self.assets = StorageAssetLedger(storage)
        self.logger = get_logger("loan_engine.service")
        # Held from the balance read to the balance write of each payment
        self._payment_lock = threading.Lock()
    
    def create_loan(
        self,
        name: str,
        principal,
        payment_type: Union[PaymentType, str],
        term_months: int,
        interest_rate_annual_percent=None,
        fixed_charge=None,
        fixed_charge_frequency: Union[PaymentFrequency, str, None] = None,
        payment_frequency: Union[PaymentFrequency, str] = PaymentFrequency.MONTHLY,
        installment_amount=None,
        total_to_pay_override=None,
        received_in: Union[PaymentMethod, str, None] = None,
        lender: str = "",
        start_date: Optional[date] = None,
        next_due_date: Optional[date] = None
    ) -> Loan:
        """
        Create a loan and credit its principal to the receiving asset account
        
        Args:
            name: Display name
            principal: Amount borrowed
            payment_type: "interest" or "fixed"
            term_months: Contractual duration
            interest_rate_annual_percent: Required for interest loans
            fixed_charge: Required for fixed-charge loans
            fixed_charge_frequency: Cadence the fixed charge is quoted at (monthly by default)
            payment_frequency: Cadence payments fall due
            installment_amount: Monthly installment; derived when omitted
            total_to_pay_override: Manually supplied total to repay
            received_in: Payment method whose account receives the principal
            lender: Lender name
            start_date: Loan start (today by default)
            next_due_date: First due date (one month after start by default)
            
        Returns:
            Created Loan
            
        Raises:
            InvalidLoanConfiguration: missing or invalid terms
            UnknownPaymentMethodError: received_in is not a known method
        """
        now = self.clock.now()
        payment_type = self._parse_payment_type(payment_type)
        principal = self._parse_terms_amount("principal", principal)
        rate = optional_decimal(interest_rate_annual_percent)
        charge = optional_decimal(fixed_charge)
        charge_frequency = PaymentFrequency(fixed_charge_frequency or PaymentFrequency.MONTHLY)
        method = parse_payment_method(received_in or self.config.default_payment_method)
        
        if not name or not name.strip():
            raise InvalidLoanConfiguration("Loan name is required")
        if principal <= ZERO:
            raise InvalidLoanConfiguration("Loan principal must be greater than zero")
        if int(term_months) <= 0:
            raise InvalidLoanConfiguration("Loan term must be at least one month")
        if payment_type == PaymentType.INTEREST and (rate is None or rate <= ZERO):
            raise InvalidLoanConfiguration("Please enter a valid interest rate")
        if payment_type == PaymentType.FIXED and (charge is None or charge <= ZERO):
            raise InvalidLoanConfiguration("Please enter a valid fixed charge amount")
        
        if installment_amount is None:
            installment = round_money(derive_installment(
                payment_type, principal, term_months,
                annual_rate_percent=rate, fixed_charge=charge,
                fixed_charge_frequency=charge_frequency,
            ), self.config.money_precision)
        else:
            installment = self._parse_terms_amount("installment_amount", installment_amount)
        
        start = start_date or as_date(now)
        loan = Loan(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name.strip(),
            principal=principal,
            remaining_amount=principal,
            payment_type=payment_type,
            payment_frequency=PaymentFrequency(payment_frequency),
            installment_amount=installment,
            term_months=term_months,
            next_due_date=next_due_date or add_months(start, 1),
            interest_rate_annual_percent=rate if payment_type == PaymentType.INTEREST else None,
            fixed_charge=charge if payment_type == PaymentType.FIXED else None,
            fixed_charge_frequency=charge_frequency if payment_type == PaymentType.FIXED else None,
            lender=lender,
            received_in=method,
            start_date=start,
        )
        if total_to_pay_override is not None:
            loan = loan.copy(
                total_to_pay=self._parse_terms_amount("total_to_pay", total_to_pay_override),
                manual_total_to_pay=True,
            )
        else:
            loan = loan.copy(total_to_pay=round_money(total_to_pay(loan), self.config.money_precision))
        
        account_id = resolve_account_id(method)
        new_balance = self.assets.get_balance(account_id) + principal
        with self.storage.atomic():
            self._save_loan(loan)
            self.assets.set_balance(account_id, new_balance)
        
        log_action(
            self.logger, "info", f"Loan {loan.id} created",
            action="loan.created", resource=loan.id,
            extra={
                "principal": str(principal),
                "payment_type": payment_type.value,
                "installment_amount": str(installment),
                "total_to_pay": str(loan.total_to_pay),
                "received_in": method.value,
            }
        )
        self._publish(LoanEvent.LOAN_CREATED, loan)
        self._publish_balance(account_id, new_balance)
        return loan
    
    def get_loan(self, loan_id: str) -> Loan:
        """
        Raises:
            LoanNotFoundError
        """
        data = self.storage.load(self.loans_table, loan_id)
        if not data:
            raise LoanNotFoundError(loan_id)
        return Loan.from_dict(data)
    
    def list_loans(self, status: Union[LoanStatus, str, None] = None) -> List[Loan]:
        """All loans, optionally filtered by status, oldest first"""
        if status is not None:
            records = self.storage.find(self.loans_table, {"status": LoanStatus(status).value})
        else:
            records = self.storage.load_all(self.loans_table)
        loans = [Loan.from_dict(record) for record in records]
        return sorted(loans, key=lambda loan: loan.created_at)
    
    def delete_loan(self, loan_id: str) -> None:
        """Remove a loan; asset balances are left untouched"""
        loan = self.get_loan(loan_id)
        self.storage.delete(self.loans_table, loan_id)
        log_action(self.logger, "info", f"Loan {loan_id} deleted",
                   action="loan.deleted", resource=loan_id)
        self._publish(LoanEvent.LOAN_DELETED, loan)
    
    def asset_balances(self) -> Dict[PaymentMethod, Decimal]:
        """Balance behind every payment method"""
        return {
            method: self.assets.get_balance(resolve_account_id(method))
            for method in PaymentMethod
        }
    
    def set_asset_balance(self, method: Union[PaymentMethod, str], amount) -> Decimal:
        """Overwrite a payment method's balance; negative balances are refused"""
        account_id = resolve_account_id(method)
        balance = to_decimal(amount)
        if balance < ZERO:
            raise ValueError("Asset balance cannot be negative")
        self.assets.set_balance(account_id, balance)
        self._publish_balance(account_id, balance)
        return balance
    
    def payment_options(self, loan_id: str) -> PaymentOptions:
        """Quick-pick amounts for the loan as of now"""
        return payment_options(self.get_loan(loan_id), self.clock.now())
    
    def make_payment(self, loan_id: str, amount,
                     method: Union[PaymentMethod, str, None] = None,
                     now=None) -> PaymentResult[PaymentOutcome]:
        """
        Pay a loan from the asset account behind a payment method
        
        Returns:
            PaymentResult; on error nothing is persisted
            
        Raises:
            LoanNotFoundError, UnknownPaymentMethodError
        """
        result = self._process_payment(loan_id, amount, method, now)
        if result.ok:
            self._publish_payment(result.value)
        return result
    
    async def make_payment_async(self, loan_id: str, amount,
                                 method: Union[PaymentMethod, str, None] = None,
                                 now=None) -> PaymentResult[PaymentOutcome]:
        """
        make_payment with a timeout around the payment transaction.
        
        The transaction runs in a worker thread; on timeout it may still
        finish, and later payments wait for it to release the payment lock.
        
        Raises:
            PaymentOutcomeUnknown: the transaction did not finish in time; the
                payment must not be re-submitted automatically
        """
        timeout = self.config.payment_timeout_seconds
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self._process_payment, loan_id, amount, method, now),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            log_action(
                self.logger, "error", f"Payment transaction for loan {loan_id} timed out",
                action="loan.payment_timeout", resource=loan_id,
                extra={"timeout_seconds": timeout, "amount": str(amount)}
            )
            raise PaymentOutcomeUnknown(loan_id, timeout)
        
        if result.ok:
            self._publish_payment(result.value)
        return result
    
    def portfolio_summary(self) -> PortfolioSummary:
        """Counts and totals across active and completed loans"""
        loans = self.list_loans()
        active = [loan for loan in loans if loan.is_active]
        rates = [
            loan.interest_rate_annual_percent for loan in active
            if loan.payment_type == PaymentType.INTEREST and loan.interest_rate_annual_percent is not None
        ]
        return PortfolioSummary(
            active_count=len(active),
            completed_count=len(loans) - len(active),
            total_principal=sum((loan.principal for loan in active), ZERO),
            total_remaining=sum((loan.remaining_amount for loan in active), ZERO),
            total_monthly_installment=sum((loan.installment_amount for loan in active), ZERO),
            average_interest_rate=sum(rates, ZERO) / len(rates) if rates else ZERO,
        )
    
    def _prepare_payment(self, loan_id: str, amount, method, now) -> PaymentResult[PaymentOutcome]:
        """Run the engine against a snapshot of the paying account"""
        loan = self.get_loan(loan_id)
        account_id = resolve_account_id(method or self.config.default_payment_method)
        snapshot = InMemoryAssetLedger({account_id: self.assets.get_balance(account_id)})
        return self.processor.apply_payment(
            loan, snapshot, amount, account_id, now or self.clock.now()
        )
    
    def _process_payment(self, loan_id: str, amount, method, now) -> PaymentResult[PaymentOutcome]:
        """Read, check and write one payment under the payment lock in a single transaction"""
        with self._payment_lock, self.storage.atomic():
            result = self._prepare_payment(loan_id, amount, method, now)
            if result.ok:
                self._save_loan(result.value.loan)
                self.assets.set_balance(result.value.asset.account_id, result.value.asset.balance)
        return result
    
    def _publish_payment(self, outcome: PaymentOutcome) -> None:
        self._publish(LoanEvent.LOAN_PAYMENT, outcome.loan, {
            "amount": str(outcome.amount),
            "breakdown": outcome.breakdown.to_dict(),
        })
        if outcome.paid_off:
            self._publish(LoanEvent.LOAN_PAID_OFF, outcome.loan)
        self._publish_balance(outcome.asset.account_id, outcome.asset.balance)
    
    def _save_loan(self, loan: Loan) -> None:
        self.storage.save(self.loans_table, loan.id, loan.to_dict())
    
    def _publish(self, event_type: LoanEvent, loan: Loan, data: Optional[dict] = None) -> None:
        payload = {
            "status": loan.status.value,
            "remaining_amount": str(loan.remaining_amount),
            "next_due_date": loan.next_due_date.isoformat(),
        }
        payload.update(data or {})
        self.dispatcher.publish(EventPayload(
            event_type=event_type, entity_type="loan", entity_id=loan.id, data=payload
        ))
    
    def _publish_balance(self, account_id: str, balance: Decimal) -> None:
        self.dispatcher.publish(EventPayload(
            event_type=LoanEvent.ASSET_BALANCE_CHANGED, entity_type="asset",
            entity_id=account_id, data={"balance": str(balance)}
        ))
    
    @staticmethod
    def _parse_payment_type(value) -> PaymentType:
        try:
            return PaymentType(value)
        except ValueError:
            raise InvalidLoanConfiguration(f"Unknown payment type {value!r}")
    
    @staticmethod
    def _parse_terms_amount(field_name: str, value) -> Decimal:
        try:
            return to_decimal(value)
        except ValueError:
            raise InvalidLoanConfiguration(f"{field_name} must be a number")
