"""
Salary lifecycle rules.

Pure functions over a salary record (the ORM ``Salary`` or anything with the
same attributes). Time is always passed in by the caller so the rules can be
evaluated against a frozen clock.

Ordering on every save: ``compute_totals`` first, then ``refresh_payment_status``.
"""
import math
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Union

from app.core.config import settings
from app.models.shared.enums import MONTH_NAMES, Month, SalaryDisplayStatus, SalaryStatus

ZERO = Decimal("0")


def to_amount(value: Any, strict: bool = False) -> Decimal:
    """
    Convert user input to Decimal.
    Missing values are zero. Unparsable values are zero unless ``strict``,
    in which case ValueError is raised.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return ZERO
    try:
        if isinstance(value, bool):
            raise ValueError(value)
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        if not result.is_finite():
            raise ValueError(value)
    except (InvalidOperation, ValueError):
        if strict:
            raise ValueError(f"'{value}' is not a valid number")
        return ZERO
    return result


def overtime_amount(hours: Any, rate: Any, amount: Any = None) -> Decimal:
    """Supplied amount wins; otherwise hours * rate"""
    supplied = to_amount(amount)
    if supplied:
        return supplied
    return to_amount(hours) * to_amount(rate)


def compute_totals(salary) -> None:
    """Overwrite gross_salary, total_deductions and net_salary from the components"""
    base = to_amount(salary.base_salary)
    bonus = to_amount(salary.bonus)
    overtime = to_amount(salary.overtime_amount)
    deductions = to_amount(salary.other_deductions)

    salary.gross_salary = base + bonus + overtime
    salary.total_deductions = deductions
    salary.net_salary = salary.gross_salary - deductions


def ledger_total(payments: Optional[Iterable]) -> Decimal:
    return sum((to_amount(p.amount) for p in (payments or [])), ZERO)


def refresh_payment_status(salary, now: datetime, lock_duration: Optional[timedelta] = None) -> None:
    """
    Recompute paid_amount from the ledger and derive the stored status.
    The edit lock is set the first time the salary becomes paid and never moved.
    A cancelled salary keeps its status; only the amounts are refreshed.
    """
    if lock_duration is None:
        lock_duration = timedelta(hours=settings.SALARY_EDIT_LOCK_HOURS)

    paid = ledger_total(salary.payments)
    net = to_amount(salary.net_salary)
    salary.paid_amount = paid

    if salary.status == SalaryStatus.CANCELLED:
        salary.pending_amount = max(net - paid, ZERO)
        return

    if paid >= net:
        salary.status = SalaryStatus.PAID
        salary.pending_amount = ZERO
        if not salary.edit_lock_expires_at:
            salary.edit_lock_expires_at = now + lock_duration
    elif paid > 0:
        salary.status = SalaryStatus.PARTIALLY_PAID
        salary.pending_amount = net - paid
    else:
        salary.status = SalaryStatus.PENDING
        salary.pending_amount = net


def apply_payment(salary, payment, now: datetime, lock_duration: Optional[timedelta] = None) -> None:
    """Append a ledger entry and refresh the status. Each call appends; no de-duplication."""
    salary.payments.append(payment)
    refresh_payment_status(salary, now, lock_duration)


def month_number(month: Union[Month, str]) -> int:
    name = month.value if isinstance(month, Month) else str(month)
    return MONTH_NAMES.index(name) + 1


def calculated_status(
    status: Union[SalaryStatus, str],
    month: Union[Month, str],
    year: int,
    today: date,
) -> SalaryDisplayStatus:
    """Display status: stored status plus the calendar-based overdue rule"""
    status = SalaryStatus(status)
    if status in (SalaryStatus.PAID, SalaryStatus.CANCELLED):
        return SalaryDisplayStatus(status.value)
    if status == SalaryStatus.PARTIALLY_PAID:
        return SalaryDisplayStatus.PARTIALLY_PAID

    period = (int(year), month_number(month))
    current = (today.year, today.month)
    if period < current:
        return SalaryDisplayStatus.OVERDUE
    return SalaryDisplayStatus.PENDING


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were written as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def can_edit(salary, now: datetime) -> bool:
    if salary.status != SalaryStatus.PAID:
        return True
    if salary.edit_lock_expires_at is None:
        return True
    return _as_utc(now) <= _as_utc(salary.edit_lock_expires_at)


def remaining_edit_time(salary, now: datetime) -> Optional[int]:
    """Minutes left in the edit window, rounded up; None when no window applies"""
    if salary.status != SalaryStatus.PAID or salary.edit_lock_expires_at is None:
        return None
    remaining = (_as_utc(salary.edit_lock_expires_at) - _as_utc(now)).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining / 60)
