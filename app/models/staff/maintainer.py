from sqlalchemy import Column, Integer, ForeignKey, JSON, Table, Enum as SQLEnum
from sqlalchemy.orm import relationship
from app.db.base import BaseModel
from app.models.base import Base
from app.models.shared.enums import MaintainerStatus

maintainer_branches = Table(
    'maintainer_branches',
    Base.metadata,
    Column('maintainer_id', Integer, ForeignKey('maintainers.id', ondelete='CASCADE'), primary_key=True),
    Column('branch_id', Integer, ForeignKey('branches.id', ondelete='CASCADE'), primary_key=True),
)

class Maintainer(BaseModel):
    __tablename__ = 'maintainers'
    
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, unique=True)
    pg_id = Column(Integer, ForeignKey('pgs.id'), nullable=False, index=True)
    specialization = Column(JSON, default=lambda: ["general"])  # maintenance, housekeeping, security, general
    status = Column(SQLEnum(MaintainerStatus), default=MaintainerStatus.ACTIVE, index=True)
    
    # Relationships
    user = relationship("User", lazy="selectin")
    branches = relationship("Branch", secondary=maintainer_branches, lazy="selectin")
    salaries = relationship("Salary", back_populates="maintainer")

    @property
    def name(self) -> str:
        return self.user.full_name if self.user else ""
