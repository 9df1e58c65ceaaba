from sqlalchemy import Boolean, Column, String, Text
from sqlalchemy.orm import relationship
from app.db.base import BaseModel

class PG(BaseModel):
    __tablename__ = 'pgs'
    
    name = Column(String(150), nullable=False)
    address = Column(Text)
    is_active = Column(Boolean, default=True)
    
    # Relationships
    branches = relationship("Branch", back_populates="pg")
