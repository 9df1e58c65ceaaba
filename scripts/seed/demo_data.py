"""
Demo Seed Data (async, idempotent)
- One PG with a branch
- An admin user and a maintainer
Prints an access token for the admin so the salary API can be tried right away.
Run:  python scripts/seed/demo_data.py
"""

import os, sys
import asyncio
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..")))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.database import async_session_maker, engine
from app.core.security import create_access_token
from app.models.base import Base
from app.models.auth.user import User
from app.models.organization.branch import Branch
from app.models.organization.pg import PG
from app.models.shared.enums import MaintainerStatus, UserRole
from app.models.staff.maintainer import Maintainer

# ----------------------------------------------------------------------
# SEED DATA
# ----------------------------------------------------------------------

PG_SEED = {"name": "Sunrise PG", "address": "12 MG Road, Bengaluru"}
BRANCH_SEED = {"name": "Koramangala", "address": "80 Feet Road, Koramangala"}
ADMIN_SEED = {"email": "admin@sunrisepg.test", "full_name": "Asha Rao", "phone": "9000000001", "role": UserRole.ADMIN}
MAINTAINER_USER_SEED = {"email": "ravi@sunrisepg.test", "full_name": "Ravi Kumar", "phone": "9000000002", "role": UserRole.MAINTAINER}

# ----------------------------------------------------------------------
# ASYNC HELPERS (idempotent upserts)
# ----------------------------------------------------------------------

async def get_or_create_user(db: AsyncSession, data: dict, pg_id: int) -> User:
    result = await db.execute(select(User).where(User.email == data["email"]))
    obj = result.scalar_one_or_none()
    if obj:
        return obj
    obj = User(**data, pg_id=pg_id, is_active=True)
    db.add(obj)
    await db.flush()
    return obj

# ----------------------------------------------------------------------
# MAIN ASYNC SEED LOGIC
# ----------------------------------------------------------------------

async def seed(db: AsyncSession) -> User:
    pg = (await db.execute(select(PG).where(PG.name == PG_SEED["name"]))).scalar_one_or_none()
    if pg is None:
        pg = PG(**PG_SEED, is_active=True)
        db.add(pg)
        await db.flush()
    print(f"✓ PG ready: {pg.name}")

    branch = (await db.execute(
        select(Branch).where(Branch.pg_id == pg.id, Branch.name == BRANCH_SEED["name"])
    )).scalar_one_or_none()
    if branch is None:
        branch = Branch(**BRANCH_SEED, pg_id=pg.id, is_active=True)
        db.add(branch)
        await db.flush()
    print(f"✓ Branch ready: {branch.name}")

    admin = await get_or_create_user(db, ADMIN_SEED, pg.id)
    maintainer_user = await get_or_create_user(db, MAINTAINER_USER_SEED, pg.id)

    maintainer = (await db.execute(
        select(Maintainer).where(Maintainer.user_id == maintainer_user.id)
    )).scalar_one_or_none()
    if maintainer is None:
        maintainer = Maintainer(
            user_id=maintainer_user.id,
            pg_id=pg.id,
            specialization=["housekeeping"],
            status=MaintainerStatus.ACTIVE,
            branches=[branch],
        )
        db.add(maintainer)
        await db.flush()
    print(f"✓ Maintainer ready: {maintainer_user.full_name} (id={maintainer.id})")

    await db.commit()
    return admin

# ----------------------------------------------------------------------
# ASYNC ENTRY POINT
# ----------------------------------------------------------------------

async def main():
    # Create tables (safe if already created)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as db:
        try:
            admin = await seed(db)
            print("✅ Demo seed completed successfully!")
            print(f"🔑 Admin token: {create_access_token(admin.id)}")
        except Exception as ex:
            await db.rollback()
            print(f"❌ Seed failed: {ex}")
            raise

if __name__ == "__main__":
    asyncio.run(main())
