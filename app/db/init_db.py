import logging
from app.core.database import engine
from app.models import *  # Import all models so metadata is complete

logger = logging.getLogger(__name__)

async def create_tables():
    """Create all database tables"""
    try:
        from app.db.base import Base

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("✅ Database tables created successfully")

    except Exception as e:
        logger.error(f"❌ Error creating tables: {str(e)}")
        raise
