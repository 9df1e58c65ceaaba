from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from app.db.base import BaseModel
from app.models.shared.enums import PaymentMethod


class SalaryPayment(BaseModel):
    __tablename__ = 'salary_payments'
    
    salary_id = Column(Integer, ForeignKey('salaries.id', ondelete='CASCADE'), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(SQLEnum(PaymentMethod), nullable=False)
    transaction_id = Column(String(100))
    payment_date = Column(DateTime(timezone=True), nullable=False)
    notes = Column(String(500))
    receipt_image = Column(JSON)
    paid_by = Column(Integer, ForeignKey('users.id'), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=False)
    
    # Relationships
    salary = relationship("Salary", back_populates="payments")
