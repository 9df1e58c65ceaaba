from sqlalchemy import Boolean, Column, Integer, String, Text, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base import BaseModel

class Branch(BaseModel):
    __tablename__ = 'branches'
    
    pg_id = Column(Integer, ForeignKey('pgs.id'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    address = Column(Text)
    is_active = Column(Boolean, default=True)
    
    # Relationships
    pg = relationship("PG", back_populates="branches")
