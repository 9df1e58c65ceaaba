from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.core.config import settings
from app.models.shared.enums import Month, PaymentMethod
from app.schemas.salary.salary_schema import OvertimeSchema, SalaryCreate, SalaryPaymentCreate, SalaryUpdate
from app.utils.validators.validation_utils import clean_payload, format_validation_errors


def salary_payload(**overrides):
    data = {
        "maintainer_id": 1,
        "branch_id": 1,
        "month": "March",
        "year": 2024,
        "base_salary": "20000",
        "bonus": "0",
        "overtime": {"hours": 2, "rate": 100},
        "deductions": {"other": 500},
    }
    data.update(overrides)
    return data


@pytest.fixture
def reject_mode(monkeypatch):
    monkeypatch.setattr(settings, "SALARY_NUMERIC_COERCION", "reject")


class TestOvertimeSchema:
    """Overtime amount is derived when only hours and rate are given"""

    def test_amount_from_hours_and_rate(self):
        assert OvertimeSchema(hours=2, rate=100).amount == Decimal("200")

    def test_amount_from_string_inputs(self):
        assert OvertimeSchema(hours="1.5", rate="300").amount == Decimal("450")

    def test_supplied_amount_is_kept(self):
        assert OvertimeSchema(hours=2, rate=100, amount=750).amount == Decimal("750")

    def test_empty_group_is_zero(self):
        assert OvertimeSchema().amount == Decimal("0")


class TestSalaryCreate:
    def test_valid_payload(self):
        salary = SalaryCreate(**salary_payload())

        assert salary.month == Month.MARCH
        assert salary.base_salary == Decimal("20000")
        assert salary.overtime.amount == Decimal("200")
        assert salary.deductions.other == Decimal("500")
        assert salary.payment_method == PaymentMethod.CASH

    def test_nested_groups_accept_json_strings(self):
        salary = SalaryCreate(**salary_payload(
            overtime='{"hours": "3", "rate": "150"}',
            deductions='{"other": "250"}',
        ))

        assert salary.overtime.amount == Decimal("450")
        assert salary.deductions.other == Decimal("250")

    def test_month_is_case_insensitive(self):
        assert SalaryCreate(**salary_payload(month=" march ")).month == Month.MARCH

    def test_missing_groups_default_to_zero(self):
        data = salary_payload()
        del data["overtime"], data["deductions"], data["bonus"]
        salary = SalaryCreate(**data)

        assert salary.bonus == Decimal("0")
        assert salary.overtime.amount == Decimal("0")
        assert salary.deductions.other == Decimal("0")

    def test_unparsable_numbers_become_zero(self):
        salary = SalaryCreate(**salary_payload(bonus="abc", overtime='not json'))

        assert salary.bonus == Decimal("0")
        assert salary.overtime.amount == Decimal("0")

    def test_unparsable_numbers_rejected_in_reject_mode(self, reject_mode):
        with pytest.raises(ValidationError) as exc_info:
            SalaryCreate(**salary_payload(bonus="abc"))

        assert "bonus" in format_validation_errors(exc_info.value)

    def test_base_salary_required(self):
        with pytest.raises(ValidationError) as exc_info:
            SalaryCreate(**salary_payload(base_salary=""))

        assert "Base salary is required" in format_validation_errors(exc_info.value)

    def test_negative_component_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            SalaryCreate(**salary_payload(overtime={"hours": -1, "rate": 100}))

        assert "Overtime hours must be non-negative" in format_validation_errors(exc_info.value)

    def test_deductions_cannot_exceed_gross(self):
        with pytest.raises(ValidationError) as exc_info:
            SalaryCreate(**salary_payload(deductions={"other": 20201}))

        assert format_validation_errors(exc_info.value) == "deductions: Deductions cannot exceed gross salary"

    def test_deductions_equal_to_gross_allowed(self):
        salary = SalaryCreate(**salary_payload(deductions={"other": 20200}))
        assert salary.deductions.other == Decimal("20200")

    @pytest.mark.parametrize("year", [2019, 2031])
    def test_year_out_of_range(self, year):
        with pytest.raises(ValidationError) as exc_info:
            SalaryCreate(**salary_payload(year=year))

        assert "Year must be between 2020 and 2030" in format_validation_errors(exc_info.value)

    def test_errors_are_aggregated_into_one_message(self):
        with pytest.raises(ValidationError) as exc_info:
            SalaryCreate(**salary_payload(month="Smarch", year=1999, base_salary="-5"))

        message = format_validation_errors(exc_info.value)
        assert message.count(", ") >= 2
        assert "month:" in message
        assert "year:" in message
        assert "base_salary:" in message

    def test_notes_trimmed_and_limited(self):
        assert SalaryCreate(**salary_payload(notes="  June advance  ")).notes == "June advance"
        assert SalaryCreate(**salary_payload(notes="   ")).notes is None

        with pytest.raises(ValidationError):
            SalaryCreate(**salary_payload(notes="x" * 501))


class TestSalaryUpdate:
    def test_only_given_fields_are_set(self):
        update = SalaryUpdate(bonus="1500")

        assert update.model_dump(exclude_unset=True) == {"bonus": Decimal("1500")}

    def test_blank_amount_means_not_given(self):
        assert SalaryUpdate(base_salary="").base_salary is None

    def test_negative_bonus_rejected(self):
        with pytest.raises(ValidationError):
            SalaryUpdate(bonus=-1)


class TestSalaryPaymentCreate:
    def test_valid_payment(self):
        payment = SalaryPaymentCreate(payment_amount="1500.50", payment_method="upi", transaction_id=" UPI-123 ")

        assert payment.payment_amount == Decimal("1500.50")
        assert payment.payment_method == PaymentMethod.UPI
        assert payment.transaction_id == "UPI-123"

    @pytest.mark.parametrize("amount", [0, "-10", "abc"])
    def test_amount_must_be_positive(self, amount):
        with pytest.raises(ValidationError) as exc_info:
            SalaryPaymentCreate(payment_amount=amount)

        assert "Payment amount must be greater than 0" in format_validation_errors(exc_info.value)

    def test_unknown_payment_method(self):
        with pytest.raises(ValidationError):
            SalaryPaymentCreate(payment_amount=10, payment_method="bitcoin")


def test_clean_payload_drops_empty_values():
    assert clean_payload({"a": 1, "b": None, "c": "", "d": 0}) == {"a": 1, "d": 0}


def test_json_overtime_without_amount_feeds_totals():
    salary = SalaryCreate(**salary_payload(overtime='{"hours": 2, "rate": 100}'))
    gross = salary.base_salary + salary.bonus + salary.overtime.amount

    assert gross == Decimal("20200")
    assert gross - salary.deductions.other == Decimal("19700")
