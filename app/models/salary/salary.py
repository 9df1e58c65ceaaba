from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text, Numeric, ForeignKey, Index, JSON,
    Enum as SQLEnum, true,
)
from sqlalchemy.orm import relationship
from app.db.base import BaseModel
from app.models.shared.enums import SalaryStatus, PaymentMethod

class Salary(BaseModel):
    __tablename__ = 'salaries'
    
    maintainer_id = Column(Integer, ForeignKey('maintainers.id'), nullable=False)
    pg_id = Column(Integer, ForeignKey('pgs.id'), nullable=False)
    branch_id = Column(Integer, ForeignKey('branches.id'), nullable=False, index=True)
    month = Column(String(10), nullable=False)  # English month name
    year = Column(Integer, nullable=False)

    # Components
    base_salary = Column(Numeric(12, 2), nullable=False)
    bonus = Column(Numeric(12, 2), default=0)
    overtime_hours = Column(Numeric(8, 2), default=0)
    overtime_rate = Column(Numeric(12, 2), default=0)
    overtime_amount = Column(Numeric(12, 2), default=0)
    other_deductions = Column(Numeric(12, 2), default=0)

    # Derived totals
    gross_salary = Column(Numeric(12, 2), default=0)
    total_deductions = Column(Numeric(12, 2), default=0)
    net_salary = Column(Numeric(12, 2), default=0)
    paid_amount = Column(Numeric(12, 2), default=0)
    pending_amount = Column(Numeric(12, 2), default=0)

    status = Column(SQLEnum(SalaryStatus), default=SalaryStatus.PENDING, nullable=False)

    # Snapshot of the latest payment
    payment_method = Column(SQLEnum(PaymentMethod), default=PaymentMethod.CASH)
    payment_date = Column(DateTime(timezone=True))
    transaction_id = Column(String(100))
    paid_at = Column(DateTime(timezone=True))

    notes = Column(Text)
    receipt_image = Column(JSON)  # {file_name, original_name, file_path, file_size, mime_type}
    paid_by = Column(Integer, ForeignKey('users.id'), nullable=False)
    edit_lock_expires_at = Column(DateTime(timezone=True))
    is_active = Column(Boolean, default=True, nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        # One active salary per maintainer and period; soft-deleted rows do not count
        Index(
            'uq_salaries_maintainer_period_active',
            'maintainer_id', 'month', 'year',
            unique=True,
            sqlite_where=is_active == true(),
            postgresql_where=is_active == true(),
        ),
        Index('ix_salaries_pg_status', 'pg_id', 'status'),
        Index('ix_salaries_period', 'month', 'year'),
    )
    
    # Relationships
    maintainer = relationship("Maintainer", back_populates="salaries", lazy="selectin")
    branch = relationship("Branch", lazy="selectin")
    payer = relationship("User", foreign_keys=[paid_by], lazy="selectin")
    payments = relationship(
        "SalaryPayment",
        back_populates="salary",
        order_by="SalaryPayment.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def overtime(self) -> dict:
        return {
            "hours": self.overtime_hours or 0,
            "rate": self.overtime_rate or 0,
            "amount": self.overtime_amount or 0,
        }

    @property
    def deductions(self) -> dict:
        return {"other": self.other_deductions or 0}

    @property
    def period(self) -> str:
        return f"{self.month} {self.year}"

    def __repr__(self):
        return f"<Salary {self.id} {self.period} maintainer={self.maintainer_id}>"
