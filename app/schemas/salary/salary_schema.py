from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

from app.core.config import settings
from app.models.shared.enums import Month, PaymentMethod, SalaryDisplayStatus, SalaryStatus
from app.services.salary.salary_calculator import overtime_amount
from app.utils.validators.validation_utils import coerce_amount, parse_json_field


def _non_negative(v: Decimal, label: str) -> Decimal:
    if v < 0:
        raise ValueError(f"{label} must be non-negative")
    return v


def _clean_text(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class OvertimeSchema(BaseModel):
    hours: Decimal = Decimal("0")
    rate: Decimal = Decimal("0")
    amount: Decimal = Field(Decimal("0"), validate_default=True)

    @validator("hours", "rate", "amount", pre=True)
    def coerce_numbers(cls, v):
        return coerce_amount(v)

    @validator("hours")
    def validate_hours(cls, v):
        return _non_negative(v, "Overtime hours")

    @validator("rate")
    def validate_rate(cls, v):
        return _non_negative(v, "Overtime rate")

    @validator("amount")
    def derive_amount(cls, v, values):
        _non_negative(v, "Overtime amount")
        return overtime_amount(values.get("hours"), values.get("rate"), v)


class DeductionsSchema(BaseModel):
    other: Decimal = Decimal("0")

    @validator("other", pre=True)
    def coerce_other(cls, v):
        return coerce_amount(v)

    @validator("other")
    def validate_non_negative(cls, v):
        return _non_negative(v, "Deductions")


class ReceiptImage(BaseModel):
    file_name: str
    original_name: Optional[str] = None
    file_path: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None


class SalaryComponentsMixin(BaseModel):
    """Shared parsing for the nested component groups and free text"""

    @validator("overtime", "deductions", pre=True, check_fields=False)
    def parse_nested(cls, v):
        return parse_json_field(v)

    @validator("month", pre=True, check_fields=False)
    def normalize_month(cls, v):
        if isinstance(v, str):
            return v.strip().capitalize()
        return v

    @validator("year", check_fields=False)
    def validate_year(cls, v):
        if v is None:
            return v
        if not settings.SALARY_MIN_YEAR <= v <= settings.SALARY_MAX_YEAR:
            raise ValueError(f"Year must be between {settings.SALARY_MIN_YEAR} and {settings.SALARY_MAX_YEAR}")
        return v

    @validator("transaction_id", "notes", pre=True, check_fields=False)
    def strip_text(cls, v):
        return _clean_text(v)

    @validator("notes", check_fields=False)
    def validate_notes_length(cls, v):
        if v is not None and len(v) > 500:
            raise ValueError("Notes cannot exceed 500 characters")
        return v


class SalaryCreate(SalaryComponentsMixin):
    maintainer_id: int
    branch_id: int
    month: Month
    year: int
    base_salary: Decimal
    bonus: Decimal = Decimal("0")
    overtime: OvertimeSchema = Field(default_factory=OvertimeSchema)
    deductions: DeductionsSchema = Field(default_factory=DeductionsSchema)
    payment_method: PaymentMethod = PaymentMethod.CASH
    transaction_id: Optional[str] = None
    notes: Optional[str] = None

    @validator("base_salary", pre=True)
    def require_base_salary(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValueError("Base salary is required")
        return coerce_amount(v)

    @validator("bonus", pre=True)
    def coerce_bonus(cls, v):
        return coerce_amount(v)

    @validator("base_salary")
    def validate_base_salary(cls, v):
        return _non_negative(v, "Base salary")

    @validator("bonus")
    def validate_bonus(cls, v):
        return _non_negative(v, "Bonus")

    @validator("deductions")
    def validate_net_salary(cls, v, values):
        gross = values.get("base_salary", Decimal("0")) + values.get("bonus", Decimal("0"))
        overtime = values.get("overtime")
        if overtime is not None:
            gross += overtime.amount
        if "base_salary" in values and v.other > gross:
            raise ValueError("Deductions cannot exceed gross salary")
        return v


class SalaryUpdate(SalaryComponentsMixin):
    maintainer_id: Optional[int] = None
    branch_id: Optional[int] = None
    month: Optional[Month] = None
    year: Optional[int] = None
    base_salary: Optional[Decimal] = None
    bonus: Optional[Decimal] = None
    overtime: Optional[OvertimeSchema] = None
    deductions: Optional[DeductionsSchema] = None
    payment_method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = None
    notes: Optional[str] = None

    @validator("base_salary", "bonus", pre=True)
    def coerce_optional_amount(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return coerce_amount(v)

    @validator("base_salary")
    def validate_base_salary(cls, v):
        return v if v is None else _non_negative(v, "Base salary")

    @validator("bonus")
    def validate_bonus(cls, v):
        return v if v is None else _non_negative(v, "Bonus")


class SalaryPaymentCreate(BaseModel):
    payment_amount: Decimal
    payment_method: PaymentMethod = PaymentMethod.CASH
    transaction_id: Optional[str] = None
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None

    @validator("payment_amount", pre=True)
    def coerce_payment_amount(cls, v):
        return coerce_amount(v)

    @validator("payment_amount")
    def validate_positive_amount(cls, v):
        if v <= 0:
            raise ValueError("Payment amount must be greater than 0")
        return v

    @validator("transaction_id", "notes", pre=True)
    def strip_text(cls, v):
        return _clean_text(v)

    @validator("notes")
    def validate_notes_length(cls, v):
        if v is not None and len(v) > 500:
            raise ValueError("Notes cannot exceed 500 characters")
        return v


class SalaryPaymentResponse(BaseModel):
    id: int
    amount: Decimal
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    payment_date: datetime
    notes: Optional[str] = None
    receipt_image: Optional[ReceiptImage] = None
    paid_by: int
    paid_at: datetime

    class Config:
        from_attributes = True


class BranchBrief(BaseModel):
    id: int
    name: str
    address: Optional[str] = None

    class Config:
        from_attributes = True


class MaintainerBrief(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class SalaryResponse(BaseModel):
    id: int
    maintainer_id: int
    pg_id: int
    branch_id: int
    month: Month
    year: int
    period: str
    base_salary: Decimal
    bonus: Optional[Decimal] = None
    overtime: OvertimeSchema
    deductions: DeductionsSchema
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    status: SalaryStatus
    payment_method: Optional[PaymentMethod] = None
    payment_date: Optional[datetime] = None
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    receipt_image: Optional[ReceiptImage] = None
    paid_by: int
    edit_lock_expires_at: Optional[datetime] = None
    is_active: bool
    payments: List[SalaryPaymentResponse] = []
    branch: Optional[BranchBrief] = None
    maintainer: Optional[MaintainerBrief] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Read-time values, never persisted
    calculated_status: Optional[SalaryDisplayStatus] = None
    can_edit: Optional[bool] = None
    remaining_edit_time: Optional[int] = None

    class Config:
        from_attributes = True

    @validator("maintainer", pre=True)
    def flatten_maintainer(cls, v):
        if v is None or isinstance(v, dict):
            return v
        user = getattr(v, "user", None)
        return {
            "id": v.id,
            "name": v.name,
            "email": user.email if user else None,
            "phone": user.phone if user else None,
        }


class SalaryEditStatus(BaseModel):
    salary_id: int
    status: SalaryStatus
    can_edit: bool
    remaining_edit_time: Optional[int] = None
    edit_lock_expires_at: Optional[datetime] = None


class StatusBucket(BaseModel):
    count: int = 0
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")


class SalaryStats(BaseModel):
    total_salaries: int = 0
    total_amount: Decimal = Decimal("0")
    total_paid_amount: Decimal = Decimal("0")
    pending: StatusBucket = Field(default_factory=StatusBucket)
    paid: StatusBucket = Field(default_factory=StatusBucket)
    partially_paid: StatusBucket = Field(default_factory=StatusBucket)
    overdue: StatusBucket = Field(default_factory=StatusBucket)


class MonthlyTrend(BaseModel):
    month: Month
    count: int
    total_gross_salary: Decimal
    total_net_salary: Decimal
    total_paid_amount: Decimal
    total_deductions: Decimal


class SalaryAnalytics(BaseModel):
    year: int
    monthly_trends: List[MonthlyTrend]


class MaintainerSalarySummary(BaseModel):
    total_salaries: int = 0
    total_gross_salary: Decimal = Decimal("0")
    total_net_salary: Decimal = Decimal("0")
    total_paid_amount: Decimal = Decimal("0")
    total_pending_amount: Decimal = Decimal("0")
    avg_gross_salary: Decimal = Decimal("0")
    avg_net_salary: Decimal = Decimal("0")


class MaintainerSummaryResponse(BaseModel):
    maintainer: MaintainerBrief
    year: int
    summary: MaintainerSalarySummary


class ActiveMaintainer(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    specialization: List[str] = []
    branches: List[BranchBrief] = []
