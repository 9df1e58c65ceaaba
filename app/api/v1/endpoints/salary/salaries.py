import json
import logging
from typing import Any, Dict, List, Optional, Tuple, Type

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile

from app.api.dependencies import get_salary_service, require_salary_admin
from app.core.exceptions import BadRequestError, ValidationError
from app.models.auth.user import User
from app.models.shared.enums import Month, SalaryDisplayStatus
from app.schemas.common.pagination import PaginatedResponse
from app.schemas.salary.salary_schema import (
    ActiveMaintainer,
    MaintainerSummaryResponse,
    SalaryAnalytics,
    SalaryCreate,
    SalaryEditStatus,
    SalaryPaymentCreate,
    SalaryResponse,
    SalaryStats,
    SalaryUpdate,
)
from app.services.salary.salary_service import SalaryService
from app.utils.validators.validation_utils import clean_payload, format_validation_errors

router = APIRouter()
logger = logging.getLogger(__name__)

RECEIPT_FIELD = "receipt_image"


async def _read_payload(request: Request) -> Tuple[Dict[str, Any], Optional[UploadFile]]:
    """Accept either a JSON body or multipart form data with an optional receipt image"""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data") or content_type.startswith("application/x-www-form-urlencoded"):
        form = await request.form()
        upload = None
        data = {}
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key == RECEIPT_FIELD and value.filename:
                    upload = value
                continue
            data[key] = value
        return clean_payload(data), upload

    body = await request.body()
    if not body:
        return {}, None
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        raise BadRequestError("Request body must be valid JSON")
    if not isinstance(data, dict):
        raise BadRequestError("Request body must be a JSON object")
    return clean_payload(data), None


def _validate(schema: Type[BaseModel], data: Dict[str, Any]):
    try:
        return schema(**data)
    except PydanticValidationError as e:
        raise ValidationError(format_validation_errors(e))


async def _store_receipt(service: SalaryService, upload: Optional[UploadFile]) -> Optional[Dict[str, Any]]:
    if upload is None:
        return None
    service.file_service.validate_file(upload)
    try:
        return await service.file_service.save_receipt(upload)
    except HTTPException as e:
        # The salary change still goes through without the image
        logger.error(f"Receipt upload failed, continuing without it: {e.detail}")
        return None


@router.post("/", response_model=SalaryResponse, status_code=status.HTTP_201_CREATED)
async def create_or_update_salary(
    request: Request,
    response: Response,
    current_user: User = Depends(require_salary_admin),
    service: SalaryService = Depends(get_salary_service),
):
    """Create a salary, or update the active one for the same maintainer and period"""
    data, upload = await _read_payload(request)
    salary_data = _validate(SalaryCreate, data)
    receipt = await _store_receipt(service, upload)

    try:
        salary, created = await service.create_or_update_salary(salary_data, current_user, receipt)
    except Exception:
        service.file_service.delete_receipt(receipt)
        raise

    if not created:
        response.status_code = status.HTTP_200_OK
    return service.to_response(salary)


@router.get("/", response_model=PaginatedResponse[SalaryResponse])
async def get_all_salaries(
    page_index: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    maintainer_id: Optional[int] = Query(None),
    branch_id: Optional[int] = Query(None),
    month: Optional[Month] = Query(None),
    year: Optional[int] = Query(None),
    salary_status: Optional[SalaryDisplayStatus] = Query(None, alias="status"),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: User = Depends(require_salary_admin),
    service: SalaryService = Depends(get_salary_service),
):
    """Get salaries with pagination and filters"""
    return await service.get_all_salaries(
        pg_id=current_user.pg_id,
        page_index=page_index,
        page_size=page_size,
        maintainer_id=maintainer_id,
        branch_id=branch_id,
        month=month,
        year=year,
        salary_status=salary_status,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/stats", response_model=SalaryStats)
async def get_salary_stats(
    branch_id: Optional[int] = Query(None),
    month: Optional[Month] = Query(None),
    year: Optional[int] = Query(None),
    current_user: User = Depends(require_salary_admin),
    service: SalaryService = Depends(get_salary_service),
):
    """Month and year filter independently; either may be given alone"""
    return await service.get_salary_stats(current_user.pg_id, branch_id=branch_id, month=month, year=year)


@router.get("/analytics", response_model=SalaryAnalytics)
async def get_salary_analytics(
    year: Optional[int] = Query(None),
    branch_id: Optional[int] = Query(None),
    current_user: User = Depends(require_salary_admin),
    service: SalaryService = Depends(get_salary_service),
):
    return await service.get_salary_analytics(current_user.pg_id, year=year, branch_id=branch_id)


@router.get("/maintainers", response_model=List[ActiveMaintainer])
async def get_active_maintainers(
    current_user: User = Depends(require_salary_admin),
    service: SalaryService = Depends(get_salary_service),
):
    """Active maintainers of the caller's PG, for the salary form"""
    return await service.get_active_maintainers(current_user.pg_id)


@router.get("/maintainer/{maintainer_id}/summary", response_model=MaintainerSummaryResponse)
async def get_maintainer_salary_summary(
    maintainer_id: int,
    year: Optional[int] = Query(None),
    current_user: User = Depends(require_salary_admin),
    service: SalaryService = Depends(get_salary_service),
):
    return await service.get_maintainer_summary(maintainer_id, current_user.pg_id, year=year)


@router.get("/{salary_id}", response_model=SalaryResponse)
async def get_salary(
    salary_id: int,
    current_user: User = Depends(require_salary_admin),
    service: SalaryService = Depends(get_salary_service),
):
    salary = await service.get_salary(salary_id, current_user.pg_id)
    return service.to_response(salary)


@router.get("/{salary_id}/edit-status", response_model=SalaryEditStatus)
async def get_salary_edit_status(
    salary_id: int,
    current_user: User = Depends(require_salary_admin),
    service: SalaryService = Depends(get_salary_service),
):
    return await service.get_edit_status(salary_id, current_user.pg_id)


@router.put("/{salary_id}", response_model=SalaryResponse)
async def update_salary(
    salary_id: int,
    request: Request,
    current_user: User = Depends(require_salary_admin),
    service: SalaryService = Depends(get_salary_service),
):
    """Partial update of a salary that is still inside its edit window"""
    data, upload = await _read_payload(request)
    update_data = _validate(SalaryUpdate, data)
    receipt = await _store_receipt(service, upload)

    try:
        salary = await service.update_salary(salary_id, update_data, current_user, receipt)
    except Exception:
        service.file_service.delete_receipt(receipt)
        raise
    return service.to_response(salary)


@router.patch("/{salary_id}/payment", response_model=SalaryResponse)
async def process_salary_payment(
    salary_id: int,
    request: Request,
    current_user: User = Depends(require_salary_admin),
    service: SalaryService = Depends(get_salary_service),
):
    """Record a full or partial payment"""
    data, upload = await _read_payload(request)
    payment_data = _validate(SalaryPaymentCreate, data)
    receipt = await _store_receipt(service, upload)

    try:
        salary = await service.process_payment(salary_id, payment_data, current_user, receipt)
    except Exception:
        service.file_service.delete_receipt(receipt)
        raise
    return service.to_response(salary)


@router.patch("/{salary_id}/cancel", response_model=SalaryResponse)
async def cancel_salary(
    salary_id: int,
    current_user: User = Depends(require_salary_admin),
    service: SalaryService = Depends(get_salary_service),
):
    salary = await service.cancel_salary(salary_id, current_user)
    return service.to_response(salary)


@router.delete("/{salary_id}")
async def delete_salary(
    salary_id: int,
    current_user: User = Depends(require_salary_admin),
    service: SalaryService = Depends(get_salary_service),
):
    """Soft delete a salary record"""
    await service.delete_salary(salary_id, current_user)
    return {"message": "Salary record deleted successfully"}
