import logging
from typing import Any, Dict, List, Optional, Tuple
from decimal import Decimal
from sqlalchemy import and_, asc, desc, func, not_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from fastapi import HTTPException, status

from app.core.clock import Clock, system_clock
from app.core.exceptions import (
    BadRequestError,
    ConflictError,
    EditLockedError,
    NotFoundError,
    ValidationError,
)
from app.core.locks import KeyedLock, salary_locks
from app.models.auth.user import User
from app.models.organization.branch import Branch
from app.models.salary.salary import Salary
from app.models.salary.salary_payment import SalaryPayment
from app.models.shared.enums import (
    MONTH_NAMES,
    MaintainerStatus,
    Month,
    SalaryDisplayStatus,
    SalaryStatus,
)
from app.models.staff.maintainer import Maintainer
from app.schemas.salary.salary_schema import (
    ActiveMaintainer,
    MaintainerSalarySummary,
    MaintainerSummaryResponse,
    MonthlyTrend,
    SalaryAnalytics,
    SalaryCreate,
    SalaryEditStatus,
    SalaryPaymentCreate,
    SalaryResponse,
    SalaryStats,
    SalaryUpdate,
    StatusBucket,
)
from app.services.salary.salary_calculator import (
    apply_payment,
    calculated_status,
    can_edit,
    compute_totals,
    ledger_total,
    refresh_payment_status,
    remaining_edit_time,
    to_amount,
)
from app.utils.file_handler import FileUploadService

logger = logging.getLogger(__name__)

DUPLICATE_PERIOD_DETAIL = "Salary record already exists for this maintainer in the selected month and year"
STALE_RECORD_DETAIL = "Salary record was modified by another request, please retry"

SORTABLE_FIELDS = {
    "created_at": Salary.created_at,
    "updated_at": Salary.updated_at,
    "year": Salary.year,
    "base_salary": Salary.base_salary,
    "gross_salary": Salary.gross_salary,
    "net_salary": Salary.net_salary,
    "paid_amount": Salary.paid_amount,
    "pending_amount": Salary.pending_amount,
}


class SalaryService:
    def __init__(
        self,
        session: AsyncSession,
        clock: Optional[Clock] = None,
        file_service: Optional[FileUploadService] = None,
        locks: Optional[KeyedLock] = None,
    ):
        self.session = session
        self.clock = clock or system_clock
        self.file_service = file_service or FileUploadService()
        self.locks = locks or salary_locks

    # ------------------------------------------------------------------
    # Read-time projection
    # ------------------------------------------------------------------

    def to_response(self, salary: Salary) -> SalaryResponse:
        """Serialize a salary with its calculated status and edit window"""
        now = self.clock.now()
        response = SalaryResponse.model_validate(salary)
        response.calculated_status = calculated_status(
            salary.status, salary.month, salary.year, self.clock.today()
        )
        response.can_edit = can_edit(salary, now)
        response.remaining_edit_time = remaining_edit_time(salary, now)
        return response

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    async def create_or_update_salary(
        self,
        salary_data: SalaryCreate,
        current_user: User,
        receipt_image: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Salary, bool]:
        """
        Create the salary for (maintainer, month, year), or update the active one.
        Returns the salary and whether it was created.
        """
        pg_id = current_user.pg_id
        month = salary_data.month.value
        lock_key = ("period", salary_data.maintainer_id, month, salary_data.year)

        async with self.locks.acquire(lock_key):
            try:
                await self._require_maintainer(salary_data.maintainer_id, pg_id)
                await self._require_branch(salary_data.branch_id, pg_id)

                existing = await self.session.scalar(
                    select(Salary).where(
                        Salary.maintainer_id == salary_data.maintainer_id,
                        Salary.month == month,
                        Salary.year == salary_data.year,
                        Salary.is_active == True,
                    )
                )

                now = self.clock.now()
                if existing is not None:
                    if existing.pg_id != pg_id:
                        raise ConflictError(DUPLICATE_PERIOD_DETAIL)
                    if not can_edit(existing, now):
                        raise EditLockedError("Salary edit window has expired")
                    salary = existing
                    salary.updated_by = current_user.id
                else:
                    salary = Salary(
                        pg_id=pg_id,
                        status=SalaryStatus.PENDING,
                        is_active=True,
                        created_by=current_user.id,
                    )
                    self.session.add(salary)

                old_receipt = salary.receipt_image if receipt_image else None
                self._apply_fields(salary, {
                    "maintainer_id": salary_data.maintainer_id,
                    "branch_id": salary_data.branch_id,
                    "month": month,
                    "year": salary_data.year,
                    "base_salary": salary_data.base_salary,
                    "bonus": salary_data.bonus,
                    "overtime": salary_data.overtime,
                    "deductions": salary_data.deductions,
                    "payment_method": salary_data.payment_method,
                    "transaction_id": salary_data.transaction_id,
                    "notes": salary_data.notes,
                })
                salary.paid_by = current_user.id
                if receipt_image:
                    salary.receipt_image = receipt_image

                self._recalculate(salary, now)
                await self._commit()

                if old_receipt:
                    self.file_service.delete_receipt(old_receipt)

                created = existing is None
                logger.info(
                    f"Salary {'created' if created else 'updated'}: {salary.id} for maintainer "
                    f"{salary.maintainer_id} ({month} {salary.year}) by user {current_user.id} | "
                    f"Gross: {salary.gross_salary} | Deductions: {salary.total_deductions} | Net: {salary.net_salary}"
                )
                return await self._load_salary(salary.id), created

            except HTTPException:
                await self.session.rollback()
                raise
            except Exception as e:
                await self.session.rollback()
                logger.error(f"Error creating/updating salary: {str(e)}")
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Failed to create/update salary"
                )

    async def update_salary(
        self,
        salary_id: int,
        update_data: SalaryUpdate,
        current_user: User,
        receipt_image: Optional[Dict[str, Any]] = None,
    ) -> Salary:
        """Partial update; totals and status are recomputed on save"""
        async with self.locks.acquire(salary_id):
            try:
                salary = await self._get_salary_or_404(salary_id, current_user.pg_id)

                now = self.clock.now()
                if not can_edit(salary, now):
                    raise EditLockedError("Salary edit window has expired")

                fields = update_data.model_dump(exclude_unset=True)
                if fields.get("maintainer_id") is not None:
                    await self._require_maintainer(fields["maintainer_id"], current_user.pg_id)
                if fields.get("branch_id") is not None:
                    await self._require_branch(fields["branch_id"], current_user.pg_id)
                if fields.get("month") is not None:
                    fields["month"] = Month(fields["month"]).value
                if "overtime" in fields and fields["overtime"] is not None:
                    fields["overtime"] = update_data.overtime
                if "deductions" in fields and fields["deductions"] is not None:
                    fields["deductions"] = update_data.deductions

                old_receipt = salary.receipt_image if receipt_image else None
                self._apply_fields(salary, fields)
                if receipt_image:
                    salary.receipt_image = receipt_image
                salary.updated_by = current_user.id

                self._recalculate(salary, now)
                await self._commit()

                if old_receipt:
                    self.file_service.delete_receipt(old_receipt)

                logger.info(f"Salary updated: {salary_id} by user {current_user.id} | Net: {salary.net_salary} | Status: {salary.status.value}")
                return await self._load_salary(salary_id)

            except HTTPException:
                await self.session.rollback()
                raise
            except Exception as e:
                await self.session.rollback()
                logger.error(f"Error updating salary {salary_id}: {str(e)}")
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Failed to update salary"
                )

    def _apply_fields(self, salary: Salary, fields: Dict[str, Any]) -> None:
        overtime = fields.pop("overtime", None)
        deductions = fields.pop("deductions", None)

        for key in ("maintainer_id", "branch_id", "month", "year", "base_salary", "bonus", "payment_method"):
            if fields.get(key) is not None:
                setattr(salary, key, fields[key])
        for key in ("transaction_id", "notes"):
            if key in fields:
                setattr(salary, key, fields[key])

        if overtime is not None:
            salary.overtime_hours = overtime.hours
            salary.overtime_rate = overtime.rate
            salary.overtime_amount = overtime.amount
        if deductions is not None:
            salary.other_deductions = deductions.other

    def _recalculate(self, salary: Salary, now) -> None:
        # Totals first, then the status derived from them
        compute_totals(salary)
        if salary.net_salary < 0:
            raise ValidationError("Deductions cannot exceed gross salary")
        refresh_payment_status(salary, now)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def process_payment(
        self,
        salary_id: int,
        payment_data: SalaryPaymentCreate,
        current_user: User,
        receipt_image: Optional[Dict[str, Any]] = None,
    ) -> Salary:
        """Append a payment to the ledger and refresh the salary status"""
        async with self.locks.acquire(salary_id):
            try:
                salary = await self._get_salary_or_404(salary_id, current_user.pg_id)

                if salary.status == SalaryStatus.PAID:
                    raise BadRequestError("Salary is already fully paid")
                if salary.status == SalaryStatus.CANCELLED:
                    raise BadRequestError("Cannot record a payment against a cancelled salary")

                remaining = to_amount(salary.net_salary) - ledger_total(salary.payments)
                if payment_data.payment_amount > remaining:
                    raise BadRequestError(
                        f"Payment amount {payment_data.payment_amount} exceeds pending amount {remaining}"
                    )

                now = self.clock.now()
                payment = SalaryPayment(
                    amount=payment_data.payment_amount,
                    payment_method=payment_data.payment_method,
                    transaction_id=payment_data.transaction_id,
                    payment_date=payment_data.payment_date or now,
                    notes=payment_data.notes,
                    receipt_image=receipt_image,
                    paid_by=current_user.id,
                    paid_at=now,
                    created_by=current_user.id,
                )
                apply_payment(salary, payment, now)

                # Latest-payment snapshot on the salary row
                salary.payment_method = payment.payment_method
                salary.transaction_id = payment.transaction_id or salary.transaction_id
                salary.payment_date = payment.payment_date
                salary.paid_at = now
                salary.updated_by = current_user.id

                await self._commit()

                logger.info(
                    f"Salary payment recorded: {payment_data.payment_amount} on salary {salary_id} by user {current_user.id} | "
                    f"Paid: {salary.paid_amount} | Pending: {salary.pending_amount} | Status: {salary.status.value}"
                )
                return await self._load_salary(salary_id)

            except HTTPException:
                await self.session.rollback()
                raise
            except Exception as e:
                await self.session.rollback()
                logger.error(f"Error processing salary payment for {salary_id}: {str(e)}")
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Failed to process salary payment"
                )

    # ------------------------------------------------------------------
    # Cancel / delete
    # ------------------------------------------------------------------

    async def cancel_salary(self, salary_id: int, current_user: User) -> Salary:
        async with self.locks.acquire(salary_id):
            try:
                salary = await self._get_salary_or_404(salary_id, current_user.pg_id)
                if salary.status == SalaryStatus.CANCELLED:
                    raise BadRequestError("Salary is already cancelled")
                if salary.status == SalaryStatus.PAID:
                    raise BadRequestError("A fully paid salary cannot be cancelled")

                salary.status = SalaryStatus.CANCELLED
                salary.updated_by = current_user.id
                await self._commit()

                logger.info(f"Salary cancelled: {salary_id} by user {current_user.id}")
                return await self._load_salary(salary_id)

            except HTTPException:
                await self.session.rollback()
                raise
            except Exception as e:
                await self.session.rollback()
                logger.error(f"Error cancelling salary {salary_id}: {str(e)}")
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Failed to cancel salary"
                )

    async def delete_salary(self, salary_id: int, current_user: User) -> bool:
        """Soft delete; receipt files are removed best-effort afterwards"""
        async with self.locks.acquire(salary_id):
            try:
                salary = await self._get_salary_or_404(salary_id, current_user.pg_id)

                salary.is_active = False
                salary.updated_by = current_user.id
                receipts = [salary.receipt_image] + [p.receipt_image for p in salary.payments]
                await self._commit()

                for receipt in receipts:
                    if receipt:
                        self.file_service.delete_receipt(receipt)

                logger.info(f"Salary deleted: {salary_id} by user {current_user.id}")
                return True

            except HTTPException:
                await self.session.rollback()
                raise
            except Exception as e:
                await self.session.rollback()
                logger.error(f"Error deleting salary {salary_id}: {str(e)}")
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Failed to delete salary record"
                )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_salary(self, salary_id: int, pg_id: int) -> Salary:
        return await self._get_salary_or_404(salary_id, pg_id)

    async def get_edit_status(self, salary_id: int, pg_id: int) -> SalaryEditStatus:
        salary = await self._get_salary_or_404(salary_id, pg_id)
        now = self.clock.now()
        return SalaryEditStatus(
            salary_id=salary.id,
            status=salary.status,
            can_edit=can_edit(salary, now),
            remaining_edit_time=remaining_edit_time(salary, now),
            edit_lock_expires_at=salary.edit_lock_expires_at,
        )

    async def get_all_salaries(
        self,
        pg_id: int,
        page_index: int = 1,
        page_size: int = 10,
        maintainer_id: Optional[int] = None,
        branch_id: Optional[int] = None,
        month: Optional[Month] = None,
        year: Optional[int] = None,
        salary_status: Optional[SalaryDisplayStatus] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        """Get paginated salaries with filters; status filters on the calculated status"""
        conditions = [Salary.pg_id == pg_id, Salary.is_active == True]

        if maintainer_id:
            conditions.append(Salary.maintainer_id == maintainer_id)
        if branch_id:
            conditions.append(Salary.branch_id == branch_id)
        if month:
            conditions.append(Salary.month == Month(month).value)
        if year:
            conditions.append(Salary.year == year)
        if salary_status:
            conditions.append(self._status_condition(SalaryDisplayStatus(salary_status)))

        total_count = await self.session.scalar(
            select(func.count(Salary.id)).where(and_(*conditions))
        )

        sort_column = SORTABLE_FIELDS.get(sort_by, Salary.created_at)
        direction = asc if sort_order == "asc" else desc
        skip = (page_index - 1) * page_size

        result = await self.session.scalars(
            select(Salary)
            .where(and_(*conditions))
            .order_by(direction(sort_column), direction(Salary.id))
            .offset(skip)
            .limit(page_size)
        )

        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total_count or 0,
            "data": [self.to_response(s) for s in result.all()],
        }

    def _status_condition(self, display_status: SalaryDisplayStatus):
        if display_status not in (SalaryDisplayStatus.PENDING, SalaryDisplayStatus.OVERDUE):
            return Salary.status == SalaryStatus(display_status.value)

        today = self.clock.today()
        past_period = or_(
            Salary.year < today.year,
            and_(Salary.year == today.year, Salary.month.in_(MONTH_NAMES[:today.month - 1])),
        )
        if display_status == SalaryDisplayStatus.OVERDUE:
            return and_(Salary.status == SalaryStatus.PENDING, past_period)
        return and_(Salary.status == SalaryStatus.PENDING, not_(past_period))

    async def get_salary_stats(
        self,
        pg_id: int,
        branch_id: Optional[int] = None,
        month: Optional[Month] = None,
        year: Optional[int] = None,
    ) -> SalaryStats:
        """Counts and totals bucketed by calculated status, so past unpaid periods count as overdue"""
        conditions = [Salary.pg_id == pg_id, Salary.is_active == True]
        if branch_id:
            conditions.append(Salary.branch_id == branch_id)
        if month:
            conditions.append(Salary.month == Month(month).value)
        if year:
            conditions.append(Salary.year == year)

        result = await self.session.execute(
            select(Salary.status, Salary.month, Salary.year, Salary.net_salary, Salary.paid_amount)
            .where(and_(*conditions))
        )

        today = self.clock.today()
        stats = SalaryStats()
        for row in result.all():
            net = to_amount(row.net_salary)
            paid = to_amount(row.paid_amount)
            stats.total_salaries += 1
            stats.total_amount += net
            stats.total_paid_amount += paid

            display = calculated_status(row.status, row.month, row.year, today)
            bucket: Optional[StatusBucket] = getattr(stats, display.value, None)
            if bucket is None:
                continue
            bucket.count += 1
            bucket.total_amount += net
            bucket.paid_amount += paid

        return stats

    async def get_salary_analytics(
        self,
        pg_id: int,
        year: Optional[int] = None,
        branch_id: Optional[int] = None,
    ) -> SalaryAnalytics:
        """Monthly totals for a year, in calendar order"""
        year = year or self.clock.today().year
        conditions = [Salary.pg_id == pg_id, Salary.is_active == True, Salary.year == year]
        if branch_id:
            conditions.append(Salary.branch_id == branch_id)

        result = await self.session.execute(
            select(
                Salary.month,
                func.count(Salary.id).label("count"),
                func.sum(Salary.gross_salary).label("total_gross_salary"),
                func.sum(Salary.net_salary).label("total_net_salary"),
                func.sum(Salary.paid_amount).label("total_paid_amount"),
                func.sum(Salary.other_deductions).label("total_deductions"),
            )
            .where(and_(*conditions))
            .group_by(Salary.month)
        )

        trends = [
            MonthlyTrend(
                month=row.month,
                count=row.count,
                total_gross_salary=to_amount(row.total_gross_salary),
                total_net_salary=to_amount(row.total_net_salary),
                total_paid_amount=to_amount(row.total_paid_amount),
                total_deductions=to_amount(row.total_deductions),
            )
            for row in result.all()
        ]
        trends.sort(key=lambda t: t.month.number)
        return SalaryAnalytics(year=year, monthly_trends=trends)

    async def get_maintainer_summary(
        self,
        maintainer_id: int,
        pg_id: int,
        year: Optional[int] = None,
    ) -> MaintainerSummaryResponse:
        maintainer = await self._require_maintainer(maintainer_id, pg_id)
        year = year or self.clock.today().year

        row = (await self.session.execute(
            select(
                func.count(Salary.id).label("total_salaries"),
                func.sum(Salary.gross_salary).label("total_gross_salary"),
                func.sum(Salary.net_salary).label("total_net_salary"),
                func.sum(Salary.paid_amount).label("total_paid_amount"),
                func.sum(Salary.pending_amount).label("total_pending_amount"),
                func.avg(Salary.gross_salary).label("avg_gross_salary"),
                func.avg(Salary.net_salary).label("avg_net_salary"),
            ).where(
                Salary.maintainer_id == maintainer_id,
                Salary.is_active == True,
                Salary.year == year,
            )
        )).one()

        summary = MaintainerSalarySummary(
            total_salaries=row.total_salaries or 0,
            total_gross_salary=to_amount(row.total_gross_salary),
            total_net_salary=to_amount(row.total_net_salary),
            total_paid_amount=to_amount(row.total_paid_amount),
            total_pending_amount=to_amount(row.total_pending_amount),
            avg_gross_salary=to_amount(row.avg_gross_salary).quantize(Decimal("0.01")),
            avg_net_salary=to_amount(row.avg_net_salary).quantize(Decimal("0.01")),
        )
        return MaintainerSummaryResponse(
            maintainer={
                "id": maintainer.id,
                "name": maintainer.name,
                "email": maintainer.user.email if maintainer.user else None,
                "phone": maintainer.user.phone if maintainer.user else None,
            },
            year=year,
            summary=summary,
        )

    async def get_active_maintainers(self, pg_id: int) -> List[ActiveMaintainer]:
        result = await self.session.scalars(
            select(Maintainer)
            .where(Maintainer.pg_id == pg_id, Maintainer.status == MaintainerStatus.ACTIVE)
            .order_by(Maintainer.id)
        )
        return [
            ActiveMaintainer(
                id=m.id,
                name=m.name,
                email=m.user.email if m.user else None,
                phone=m.user.phone if m.user else None,
                specialization=m.specialization or [],
                branches=[{"id": b.id, "name": b.name, "address": b.address} for b in m.branches],
            )
            for m in result.all()
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"Salary integrity conflict: {str(e.orig)}")
            raise ConflictError(DUPLICATE_PERIOD_DETAIL)
        except StaleDataError:
            await self.session.rollback()
            raise ConflictError(STALE_RECORD_DETAIL)

    async def _load_salary(self, salary_id: int) -> Salary:
        """Reload after commit so server-side columns and the ledger are current"""
        result = await self.session.execute(
            select(Salary)
            .where(Salary.id == salary_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _get_salary_or_404(self, salary_id: int, pg_id: int) -> Salary:
        salary = await self.session.scalar(
            select(Salary).where(
                Salary.id == salary_id,
                Salary.pg_id == pg_id,
                Salary.is_active == True,
            )
        )
        if not salary:
            raise NotFoundError("Salary record not found")
        return salary

    async def _require_maintainer(self, maintainer_id: int, pg_id: int) -> Maintainer:
        maintainer = await self.session.scalar(
            select(Maintainer).where(Maintainer.id == maintainer_id, Maintainer.pg_id == pg_id)
        )
        if not maintainer:
            raise NotFoundError("Maintainer not found or access denied")
        return maintainer

    async def _require_branch(self, branch_id: int, pg_id: int) -> Branch:
        branch = await self.session.scalar(
            select(Branch).where(Branch.id == branch_id, Branch.pg_id == pg_id, Branch.is_active == True)
        )
        if not branch:
            raise NotFoundError("Branch not found or access denied")
        return branch
