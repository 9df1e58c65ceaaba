from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Enum as SQLEnum
from app.db.base import BaseModel
from app.models.shared.enums import UserRole

class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(SQLEnum(UserRole), default=UserRole.USER, nullable=False)
    pg_id = Column(Integer, ForeignKey('pgs.id'), nullable=True, index=True)
    is_active = Column(Boolean, default=True)

    def __repr__(self):
        return f"<User {self.email}>"
