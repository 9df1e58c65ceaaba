import json
from decimal import Decimal
from typing import Any, Dict

from pydantic import ValidationError as PydanticValidationError

from app.core.config import settings
from app.services.salary.salary_calculator import to_amount


def coerce_amount(value: Any) -> Decimal:
    """Apply the configured numeric coercion policy ('zero' or 'reject')"""
    return to_amount(value, strict=settings.SALARY_NUMERIC_COERCION == "reject")


def parse_json_field(value: Any) -> Any:
    """Multipart forms send nested objects as JSON strings"""
    if isinstance(value, str):
        if not value.strip():
            return {}
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            if settings.SALARY_NUMERIC_COERCION == "reject":
                raise ValueError(f"'{value}' is not a valid JSON object")
            return {}
    return {} if value is None else value


def format_validation_errors(exc: PydanticValidationError) -> str:
    """Collapse pydantic errors into one comma-separated message"""
    messages = []
    for error in exc.errors():
        message = str(error.get("msg", "")).replace("Value error, ", "")
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "__root__")
        messages.append(f"{field}: {message}" if field else message)
    return ", ".join(messages)


def clean_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None or an empty string"""
    return {k: v for k, v in data.items() if v is not None and v != ""}
