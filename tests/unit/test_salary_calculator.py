from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.models.shared.enums import SalaryDisplayStatus, SalaryStatus
from app.services.salary.salary_calculator import (
    apply_payment,
    calculated_status,
    can_edit,
    compute_totals,
    ledger_total,
    month_number,
    overtime_amount,
    refresh_payment_status,
    remaining_edit_time,
    to_amount,
)

NOW = datetime(2024, 6, 10, 9, 30, tzinfo=timezone.utc)
LOCK = timedelta(hours=4)


def make_salary(**overrides):
    fields = dict(
        base_salary=Decimal("20000"),
        bonus=Decimal("0"),
        overtime_amount=overtime_amount(2, 100),
        other_deductions=Decimal("500"),
        gross_salary=None,
        total_deductions=None,
        net_salary=None,
        paid_amount=Decimal("0"),
        pending_amount=None,
        status=SalaryStatus.PENDING,
        edit_lock_expires_at=None,
        payments=[],
    )
    fields.update(overrides)
    salary = SimpleNamespace(**fields)
    compute_totals(salary)
    refresh_payment_status(salary, NOW, LOCK)
    return salary


def payment(amount):
    return SimpleNamespace(amount=Decimal(str(amount)))


class TestAmounts:
    """Numeric coercion and overtime derivation"""

    @pytest.mark.parametrize("value", [None, "", "   ", "abc", True, "NaN", "Infinity"])
    def test_unusable_values_become_zero(self, value):
        assert to_amount(value) == Decimal("0")

    @pytest.mark.parametrize("value", ["abc", "NaN", False])
    def test_strict_mode_rejects_unparsable_values(self, value):
        with pytest.raises(ValueError):
            to_amount(value, strict=True)

    def test_missing_values_are_zero_even_in_strict_mode(self):
        assert to_amount(None, strict=True) == Decimal("0")
        assert to_amount("", strict=True) == Decimal("0")

    def test_numeric_strings_and_floats(self):
        assert to_amount(" 1500.50 ") == Decimal("1500.50")
        assert to_amount(2.5) == Decimal("2.5")

    def test_overtime_is_hours_times_rate(self):
        assert overtime_amount(2, 100) == Decimal("200")

    def test_supplied_overtime_amount_wins(self):
        assert overtime_amount(2, 100, 750) == Decimal("750")
        assert overtime_amount(2, 100, 0) == Decimal("200")


class TestTotals:
    def test_gross_and_net_from_components(self):
        salary = make_salary()

        assert salary.gross_salary == Decimal("20200")
        assert salary.total_deductions == Decimal("500")
        assert salary.net_salary == Decimal("19700")

    def test_totals_recomputed_after_component_change(self):
        salary = make_salary()
        salary.bonus = Decimal("1000")
        salary.other_deductions = Decimal("0")
        compute_totals(salary)

        assert salary.net_salary == salary.base_salary + salary.bonus + salary.overtime_amount - salary.other_deductions
        assert salary.net_salary == Decimal("21200")

    def test_missing_components_count_as_zero(self):
        salary = make_salary(bonus=None, overtime_amount=None, other_deductions=None)
        assert salary.net_salary == Decimal("20000")


class TestPaymentStatus:
    def test_new_salary_is_pending(self):
        salary = make_salary()

        assert salary.status == SalaryStatus.PENDING
        assert salary.pending_amount == Decimal("19700")
        assert salary.edit_lock_expires_at is None

    def test_partial_payment(self):
        salary = make_salary()
        apply_payment(salary, payment(10000), NOW, LOCK)

        assert salary.status == SalaryStatus.PARTIALLY_PAID
        assert salary.paid_amount == Decimal("10000")
        assert salary.pending_amount == Decimal("9700")
        assert salary.edit_lock_expires_at is None

    def test_full_payment_sets_edit_lock(self):
        salary = make_salary()
        apply_payment(salary, payment(19700), NOW, LOCK)

        assert salary.status == SalaryStatus.PAID
        assert salary.pending_amount == Decimal("0")
        assert salary.edit_lock_expires_at == NOW + LOCK

    def test_extra_payment_keeps_status_and_lock(self):
        salary = make_salary()
        apply_payment(salary, payment(19700), NOW, LOCK)
        first_lock = salary.edit_lock_expires_at

        apply_payment(salary, payment(100), NOW + timedelta(hours=1), LOCK)

        assert len(salary.payments) == 2
        assert salary.paid_amount == Decimal("19800")
        assert salary.status == SalaryStatus.PAID
        assert salary.edit_lock_expires_at == first_lock

    def test_paid_amount_tracks_ledger_after_each_append(self):
        salary = make_salary()
        for amount in (100, 2500, 0.5, 7000):
            apply_payment(salary, payment(amount), NOW, LOCK)
            assert salary.paid_amount == ledger_total(salary.payments)
        assert salary.paid_amount == Decimal("9600.5")

    def test_lock_not_moved_when_totals_change_later(self):
        salary = make_salary()
        apply_payment(salary, payment(19700), NOW, LOCK)
        first_lock = salary.edit_lock_expires_at

        salary.bonus = Decimal("100")
        compute_totals(salary)
        refresh_payment_status(salary, NOW + timedelta(hours=2), LOCK)
        assert salary.status == SalaryStatus.PARTIALLY_PAID

        apply_payment(salary, payment(100), NOW + timedelta(hours=3), LOCK)
        assert salary.status == SalaryStatus.PAID
        assert salary.edit_lock_expires_at == first_lock

    def test_zero_net_salary_is_paid_immediately(self):
        salary = make_salary(base_salary=Decimal("0"), overtime_amount=Decimal("0"), other_deductions=Decimal("0"))

        assert salary.status == SalaryStatus.PAID
        assert salary.edit_lock_expires_at == NOW + LOCK

    def test_cancelled_salary_keeps_status(self):
        salary = make_salary(status=SalaryStatus.CANCELLED)
        salary.payments.append(payment(19700))
        refresh_payment_status(salary, NOW, LOCK)

        assert salary.status == SalaryStatus.CANCELLED
        assert salary.paid_amount == Decimal("19700")
        assert salary.pending_amount == Decimal("0")
        assert salary.edit_lock_expires_at is None


class TestCalculatedStatus:
    def test_month_numbers(self):
        assert month_number("January") == 1
        assert month_number("December") == 12

    def test_past_pending_period_is_overdue(self):
        assert calculated_status(SalaryStatus.PENDING, "March", 2024, date(2024, 6, 1)) == SalaryDisplayStatus.OVERDUE

    def test_previous_year_is_overdue(self):
        assert calculated_status(SalaryStatus.PENDING, "December", 2023, date(2024, 1, 5)) == SalaryDisplayStatus.OVERDUE

    @pytest.mark.parametrize("month,year", [("June", 2024), ("July", 2024), ("January", 2025)])
    def test_current_or_future_period_is_pending(self, month, year):
        assert calculated_status(SalaryStatus.PENDING, month, year, date(2024, 6, 30)) == SalaryDisplayStatus.PENDING

    @pytest.mark.parametrize("stored", [SalaryStatus.PAID, SalaryStatus.CANCELLED, SalaryStatus.PARTIALLY_PAID])
    def test_non_pending_records_are_never_overdue(self, stored):
        result = calculated_status(stored, "January", 2020, date(2024, 6, 1))
        assert result != SalaryDisplayStatus.OVERDUE
        assert result.value == stored.value

    def test_accepts_stored_string_values(self):
        assert calculated_status("pending", "May", 2024, date(2024, 6, 1)) == SalaryDisplayStatus.OVERDUE


class TestEditWindow:
    def test_unpaid_salary_is_always_editable(self):
        salary = make_salary()
        assert can_edit(salary, NOW + timedelta(days=365))
        assert remaining_edit_time(salary, NOW) is None

    def test_paid_salary_editable_until_lock_expires(self):
        salary = make_salary()
        apply_payment(salary, payment(19700), NOW, LOCK)

        assert can_edit(salary, NOW + timedelta(hours=3, minutes=59))
        assert can_edit(salary, NOW + LOCK)
        assert not can_edit(salary, NOW + LOCK + timedelta(seconds=1))

    def test_remaining_minutes_round_up(self):
        salary = make_salary()
        apply_payment(salary, payment(19700), NOW, LOCK)

        assert remaining_edit_time(salary, NOW) == 240
        assert remaining_edit_time(salary, NOW + timedelta(minutes=30, seconds=10)) == 210
        assert remaining_edit_time(salary, NOW + timedelta(hours=5)) == 0

    def test_paid_salary_without_lock_is_editable(self):
        salary = make_salary()
        salary.status = SalaryStatus.PAID
        salary.edit_lock_expires_at = None

        assert can_edit(salary, NOW)
        assert remaining_edit_time(salary, NOW) is None

    def test_naive_lock_timestamp_is_read_as_utc(self):
        salary = make_salary()
        apply_payment(salary, payment(19700), NOW, LOCK)
        salary.edit_lock_expires_at = salary.edit_lock_expires_at.replace(tzinfo=None)

        assert can_edit(salary, NOW + timedelta(hours=1))
        assert not can_edit(salary, NOW + timedelta(hours=5))
