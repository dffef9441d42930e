"""
Test suite for the loan service

Creation, persistence, payments through storage, events and the
asynchronous submission timeout.
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from loan_engine.assets import PaymentMethod
from loan_engine.config import LoanEngineConfig
from loan_engine.errors import (
    InsufficientFunds, InvalidLoanConfiguration, LoanAlreadyCompleted,
    LoanNotFoundError, PaymentOutcomeUnknown, UnknownPaymentMethodError
)
from loan_engine.events import EventDispatcher, LoanEvent
from loan_engine.frequency import PaymentFrequency
from loan_engine.loans import LoanStatus, PaymentType
from loan_engine.service import LoanService
from loan_engine.storage import InMemoryStorage


class FailingAssetStorage(InMemoryStorage):
    """Storage that fails asset writes once armed"""
    
    def __init__(self):
        super().__init__()
        self.fail_assets = False
    
    def save(self, table, record_id, data):
        if self.fail_assets and table == "assets":
            raise RuntimeError("disk full")
        super().save(table, record_id, data)


class SlowStorage(InMemoryStorage):
    """Storage whose loan writes stall once armed"""
    
    def __init__(self, delay):
        super().__init__()
        self.delay = delay
        self.slow = False
    
    def save(self, table, record_id, data):
        if self.slow and table == "loans":
            time.sleep(self.delay)
        super().save(table, record_id, data)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def dispatcher():
    return EventDispatcher()


@pytest.fixture
def service(storage, clock, dispatcher):
    return LoanService(storage, clock=clock, dispatcher=dispatcher)


@pytest.fixture
def car_loan(service):
    """1200 at 12% over 12 months, received into the bank account"""
    return service.create_loan(
        name="Car loan",
        principal="1200",
        payment_type="interest",
        term_months=12,
        interest_rate_annual_percent="12",
        received_in="bank",
        lender="Credit Union",
    )


class TestCreateLoan:
    """Test loan creation"""
    
    def test_interest_loan_terms(self, car_loan):
        assert car_loan.installment_amount == Decimal('106.62')
        assert car_loan.total_to_pay == Decimal('1279.42')
        assert not car_loan.manual_total_to_pay
        assert car_loan.remaining_amount == Decimal('1200')
        assert car_loan.status == LoanStatus.ACTIVE
        assert car_loan.payment_frequency == PaymentFrequency.MONTHLY
    
    def test_dates(self, car_loan):
        assert car_loan.start_date == date(2024, 1, 15)
        assert car_loan.next_due_date == date(2024, 2, 15)
    
    def test_principal_credited_to_receiving_account(self, service, car_loan):
        balances = service.asset_balances()
        assert balances[PaymentMethod.BANK] == Decimal('1200')
        assert balances[PaymentMethod.CASH] == Decimal('0')
    
    def test_loan_is_persisted(self, service, car_loan):
        loaded = service.get_loan(car_loan.id)
        assert loaded.to_dict() == car_loan.to_dict()
    
    def test_fixed_charge_loan(self, service):
        loan = service.create_loan(
            name="Phone",
            principal=Decimal('600'),
            payment_type=PaymentType.FIXED,
            term_months=6,
            fixed_charge=Decimal('10'),
            fixed_charge_frequency="weekly",
            received_in="cash",
        )
        monthly_charge = Decimal('10') * Decimal('52') / Decimal('12')
        assert loan.installment_amount == Decimal('43.33')
        assert loan.total_to_pay == (Decimal('600') + monthly_charge * 6).quantize(Decimal('0.01'))
        assert loan.interest_rate_annual_percent is None
        assert service.asset_balances()[PaymentMethod.CASH] == Decimal('600')
    
    def test_manual_total_override(self, service):
        loan = service.create_loan(
            name="Family loan", principal="500", payment_type="interest",
            term_months=5, interest_rate_annual_percent="5",
            total_to_pay_override="550",
        )
        assert loan.total_to_pay == Decimal('550')
        assert loan.manual_total_to_pay
    
    def test_explicit_installment_and_due_date(self, service):
        loan = service.create_loan(
            name="Bike", principal="300", payment_type="interest", term_months=3,
            interest_rate_annual_percent="10", installment_amount="105",
            next_due_date=date(2024, 1, 31), payment_frequency="biweekly",
        )
        assert loan.installment_amount == Decimal('105')
        assert loan.next_due_date == date(2024, 1, 31)
        assert loan.payment_frequency == PaymentFrequency.BIWEEKLY
    
    def test_month_end_start_clamps_first_due_date(self, service):
        loan = service.create_loan(
            name="Clamp", principal="100", payment_type="interest", term_months=2,
            interest_rate_annual_percent="1", start_date=date(2024, 1, 31),
        )
        assert loan.next_due_date == date(2024, 2, 29)
    
    @pytest.mark.parametrize("overrides, message", [
        ({"name": "  "}, "Loan name is required"),
        ({"principal": "0"}, "principal must be greater than zero"),
        ({"term_months": 0}, "at least one month"),
        ({"interest_rate_annual_percent": None}, "valid interest rate"),
        ({"interest_rate_annual_percent": "-1"}, "valid interest rate"),
        ({"payment_type": "fixed"}, "valid fixed charge"),
        ({"payment_type": "balloon"}, "Unknown payment type"),
        ({"principal": "lots"}, "principal must be a number"),
    ])
    def test_validation(self, service, overrides, message):
        fields = dict(
            name="Loan", principal="1000", payment_type="interest",
            term_months=12, interest_rate_annual_percent="12",
        )
        fields.update(overrides)
        with pytest.raises(InvalidLoanConfiguration, match=message):
            service.create_loan(**fields)
        assert service.list_loans() == []
    
    def test_unknown_receiving_method(self, service):
        with pytest.raises(UnknownPaymentMethodError):
            service.create_loan(
                name="Loan", principal="100", payment_type="interest",
                term_months=1, interest_rate_annual_percent="1", received_in="piggy",
            )
    
    def test_created_events(self, service, dispatcher):
        received = []
        dispatcher.subscribe_all(received.append)
        loan = service.create_loan(
            name="Loan", principal="100", payment_type="interest",
            term_months=1, interest_rate_annual_percent="1",
        )
        assert [event.event_type for event in received] == [
            LoanEvent.LOAN_CREATED, LoanEvent.ASSET_BALANCE_CHANGED
        ]
        assert received[0].entity_id == loan.id
        assert received[1].data == {"balance": "100"}


class TestLoanQueries:
    """Test get/list/delete"""
    
    def test_get_missing_loan(self, service):
        with pytest.raises(LoanNotFoundError, match="Loan nope not found"):
            service.get_loan("nope")
    
    def test_list_and_filter(self, service, clock, car_loan):
        clock.set(datetime(2024, 1, 16, tzinfo=timezone.utc))
        second = service.create_loan(
            name="Small", principal="100", payment_type="interest",
            term_months=1, interest_rate_annual_percent="12",
        )
        service.make_payment(second.id, "101")
        
        assert [loan.id for loan in service.list_loans()] == [car_loan.id, second.id]
        assert [loan.id for loan in service.list_loans("active")] == [car_loan.id]
        assert [loan.id for loan in service.list_loans(LoanStatus.COMPLETED)] == [second.id]
    
    def test_delete(self, service, dispatcher, car_loan):
        received = []
        dispatcher.subscribe(LoanEvent.LOAN_DELETED, received.append)
        service.delete_loan(car_loan.id)
        
        with pytest.raises(LoanNotFoundError):
            service.get_loan(car_loan.id)
        assert len(received) == 1
        assert service.asset_balances()[PaymentMethod.BANK] == Decimal('1200')
    
    def test_payment_options(self, service, car_loan):
        options = service.payment_options(car_loan.id)
        assert options.regular == Decimal('106.62')
        assert options.payoff == Decimal('1212')
        assert not options.is_overdue


class TestMakePayment:
    """Test payments through the service"""
    
    def test_payment_is_persisted(self, service, car_loan):
        result = service.make_payment(car_loan.id, "200", "bank")
        
        assert result.ok
        assert result.value.breakdown.interest == Decimal('12')
        assert result.value.breakdown.principal == Decimal('188')
        
        stored = service.get_loan(car_loan.id)
        assert stored.remaining_amount == Decimal('1012')
        assert stored.next_due_date == date(2024, 3, 15)
        assert service.asset_balances()[PaymentMethod.BANK] == Decimal('1000')
    
    def test_default_method_is_bank(self, service, car_loan):
        service.make_payment(car_loan.id, "100")
        assert service.asset_balances()[PaymentMethod.BANK] == Decimal('1100')
    
    def test_rejected_payment_changes_nothing(self, service, car_loan):
        result = service.make_payment(car_loan.id, "50", "cash")
        
        assert isinstance(result.error, InsufficientFunds)
        assert service.get_loan(car_loan.id).to_dict() == car_loan.to_dict()
        assert service.asset_balances()[PaymentMethod.CASH] == Decimal('0')
    
    def test_payoff_then_locked(self, service, dispatcher, car_loan):
        service.set_asset_balance("bank", "5000")
        received = []
        dispatcher.subscribe_all(lambda event: received.append(event.event_type))
        
        result = service.make_payment(car_loan.id, "1212")
        assert result.value.paid_off
        assert received == [
            LoanEvent.LOAN_PAYMENT, LoanEvent.LOAN_PAID_OFF, LoanEvent.ASSET_BALANCE_CHANGED
        ]
        
        stored = service.get_loan(car_loan.id)
        assert stored.status == LoanStatus.COMPLETED
        assert stored.completed_date == datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
        assert service.asset_balances()[PaymentMethod.BANK] == Decimal('3788')
        
        again = service.make_payment(car_loan.id, "10")
        assert isinstance(again.error, LoanAlreadyCompleted)
        assert service.asset_balances()[PaymentMethod.BANK] == Decimal('3788')
    
    def test_explicit_payment_date(self, service, car_loan):
        result = service.make_payment(car_loan.id, "200", now=date(2024, 3, 1))
        assert result.value.was_overdue
        assert service.get_loan(car_loan.id).next_due_date == date(2024, 4, 1)
    
    def test_unknown_loan_and_method(self, service, car_loan):
        with pytest.raises(LoanNotFoundError):
            service.make_payment("missing", "10")
        with pytest.raises(UnknownPaymentMethodError):
            service.make_payment(car_loan.id, "10", "iou")
    
    def test_failed_commit_rolls_back(self, clock):
        storage = FailingAssetStorage()
        service = LoanService(storage, clock=clock)
        loan = service.create_loan(
            name="Loan", principal="1000", payment_type="interest",
            term_months=12, interest_rate_annual_percent="12",
        )
        storage.fail_assets = True
        
        with pytest.raises(RuntimeError):
            service.make_payment(loan.id, "100")
        
        assert service.get_loan(loan.id).remaining_amount == Decimal('1000')
        assert service.asset_balances()[PaymentMethod.BANK] == Decimal('1000')


class TestAssetBalances:
    """Test manual asset balance updates"""
    
    def test_set_balance(self, service, dispatcher):
        received = []
        dispatcher.subscribe(LoanEvent.ASSET_BALANCE_CHANGED, received.append)
        
        assert service.set_asset_balance("card", "250.50") == Decimal('250.50')
        assert service.asset_balances()[PaymentMethod.CARD] == Decimal('250.50')
        assert received[0].entity_id == "2"
    
    def test_negative_balance_refused(self, service):
        with pytest.raises(ValueError):
            service.set_asset_balance(PaymentMethod.CASH, "-1")
    
    def test_unknown_method(self, service):
        with pytest.raises(UnknownPaymentMethodError):
            service.set_asset_balance("gold", "1")


class TestAsyncPayment:
    """Test payment submission with a persistence timeout"""
    
    @pytest.mark.asyncio
    async def test_async_payment(self, service, car_loan):
        result = await service.make_payment_async(car_loan.id, "200")
        assert result.ok
        assert service.get_loan(car_loan.id).remaining_amount == Decimal('1012')
    
    @pytest.mark.asyncio
    async def test_async_rejection_is_returned(self, service, car_loan):
        result = await service.make_payment_async(car_loan.id, "0")
        assert not result.ok
    
    @pytest.mark.asyncio
    async def test_timeout_reports_unknown_outcome(self, clock):
        storage = SlowStorage(delay=0.5)
        service = LoanService(
            storage, clock=clock, config=LoanEngineConfig(payment_timeout_seconds=0.05)
        )
        loan = service.create_loan(
            name="Loan", principal="1000", payment_type="interest",
            term_months=12, interest_rate_annual_percent="12",
        )
        received = []
        service.dispatcher.subscribe(LoanEvent.LOAN_PAYMENT, received.append)
        storage.slow = True
        
        with pytest.raises(PaymentOutcomeUnknown) as exc_info:
            await service.make_payment_async(loan.id, "100")
        
        assert exc_info.value.loan_id == loan.id
        assert received == []


class TestPortfolioSummary:
    """Test portfolio totals"""
    
    def test_empty(self, service):
        summary = service.portfolio_summary()
        assert summary.active_count == 0
        assert summary.average_interest_rate == Decimal('0')
    
    def test_totals(self, service, car_loan):
        service.create_loan(
            name="Second", principal="800", payment_type="interest",
            term_months=12, interest_rate_annual_percent="6",
        )
        service.create_loan(
            name="Fixed", principal="100", payment_type="fixed",
            term_months=2, fixed_charge="5",
        )
        summary = service.portfolio_summary()
        
        assert summary.active_count == 3
        assert summary.completed_count == 0
        assert summary.total_principal == Decimal('2100')
        assert summary.total_remaining == Decimal('2100')
        assert summary.average_interest_rate == Decimal('9')
        assert summary.to_dict()["total_principal"] == "2100"


class TestConcurrentPayments:
    """Payments racing for the same asset account"""
    
    @pytest.mark.asyncio
    async def test_shared_account_is_not_double_spent(self, clock):
        """Two loans paid from one account: only what the account holds is paid out"""
        storage = SlowStorage(delay=0.2)
        service = LoanService(storage, clock=clock)
        loans = [
            service.create_loan(
                name=name, principal="1000", payment_type="interest",
                term_months=12, interest_rate_annual_percent="12", received_in="cash",
            )
            for name in ("First", "Second")
        ]
        service.set_asset_balance("bank", "1000")
        storage.slow = True
        
        results = await asyncio.gather(*[
            service.make_payment_async(loan.id, "600", "bank") for loan in loans
        ])
        
        assert sorted(result.ok for result in results) == [False, True]
        rejected = next(result for result in results if not result.ok)
        assert isinstance(rejected.error, InsufficientFunds)
        assert rejected.error.available == Decimal('400')
        assert service.asset_balances()[PaymentMethod.BANK] == Decimal('400')
        
        remaining = sorted(service.get_loan(loan.id).remaining_amount for loan in loans)
        assert remaining == [Decimal('410'), Decimal('1000')]
    
    def test_threads_paying_from_one_account(self, service):
        """Synchronous callers on several threads see each other's debits"""
        loans = [
            service.create_loan(
                name=f"Loan {i}", principal="1000", payment_type="interest",
                term_months=12, interest_rate_annual_percent="12", received_in="cash",
            )
            for i in range(5)
        ]
        service.set_asset_balance("bank", "1000")
        
        with ThreadPoolExecutor(max_workers=5) as executor:
            results = list(executor.map(
                lambda loan: service.make_payment(loan.id, "300", "bank"), loans
            ))
        
        assert sum(result.ok for result in results) == 3
        assert service.asset_balances()[PaymentMethod.BANK] == Decimal('100')
