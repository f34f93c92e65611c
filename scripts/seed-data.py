# scripts/seed-data.py
"""Seed database with a tenant, its owner and a bearer token for local testing"""
import asyncio
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from billsync.core.constants import UserRole
from billsync.core.security import create_access_token
from billsync.db.database import async_session_local, init_db
from billsync.db.repositories.user_repository import UserRepository
from billsync.db.repositories.tenant_repository import TenantRepository

DEMO_EMAIL = "demo@billsync.dev"
DEMO_AUTH_USER_ID = "demo-auth-user"


async def seed_data():
    """Seed database with test data"""
    await init_db()

    async with async_session_local() as session:
        tenant_repo = TenantRepository(session)
        user_repo = UserRepository(session)

        user = await user_repo.get_by_email(DEMO_EMAIL)
        if user:
            print(f"User already exists: {user.email}")
        else:
            tenant = await tenant_repo.create({"name": "Demo Company"})
            print(f"Created tenant: {tenant.name} (id={tenant.id})")

            user = await user_repo.create({
                "email": DEMO_EMAIL,
                "full_name": "Demo Owner",
                "auth_user_id": DEMO_AUTH_USER_ID,
                "tenant_id": tenant.id,
                "role": UserRole.OWNER.value,
                "is_active": True,
            })
            await session.commit()
            print(f"Created user: {user.email}")

        print("\nBearer token (1 hour):")
        print(create_access_token(user.auth_user_id))


if __name__ == "__main__":
    asyncio.run(seed_data())
