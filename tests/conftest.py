"""Shared fixtures for loan engine tests"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from loan_engine.assets import InMemoryAssetLedger
from loan_engine.clock import FixedClock
from loan_engine.frequency import PaymentFrequency
from loan_engine.loans import Loan, PaymentType


NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed moment used as 'now' across tests"""
    return NOW


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def ledger():
    """Bank account '1' holding 5000"""
    return InMemoryAssetLedger({"1": Decimal('5000.00')})


@pytest.fixture
def make_loan():
    """Factory for loans with sensible interest-loan defaults"""
    def _make(**overrides):
        fields = dict(
            id="loan-001",
            created_at=NOW,
            updated_at=NOW,
            name="Car loan",
            principal=Decimal('1000.00'),
            remaining_amount=Decimal('1000.00'),
            payment_type=PaymentType.INTEREST,
            payment_frequency=PaymentFrequency.MONTHLY,
            installment_amount=Decimal('88.85'),
            term_months=12,
            next_due_date=date(2024, 2, 15),
            interest_rate_annual_percent=Decimal('12'),
        )
        fields.update(overrides)
        return Loan(**fields)
    return _make


@pytest.fixture
def fixed_loan(make_loan):
    """Fixed-charge loan: 50 per month, paid monthly"""
    return make_loan(
        payment_type=PaymentType.FIXED,
        interest_rate_annual_percent=None,
        fixed_charge=Decimal('50'),
        fixed_charge_frequency=PaymentFrequency.MONTHLY,
        installment_amount=Decimal('50.00'),
    )
