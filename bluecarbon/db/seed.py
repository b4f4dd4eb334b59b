"""
Optional development seeding script.

Run with: python -m bluecarbon.db.seed
"""

import asyncio
import logging

from bluecarbon.core.database import AsyncSessionLocal, init_db
from bluecarbon.core.logging_config import configure_logging
from bluecarbon.core.security import Actor
from bluecarbon.handlers.profiles import get_profile
from bluecarbon.handlers.projects import create_project, transition_project
from bluecarbon.models.profile import Profile, UserRole
from bluecarbon.models.project import ProjectAction, ProjectCreate, ProjectStatus, ProjectType

logger = logging.getLogger(__name__)

DEMO_ADMIN = "demo-admin"
DEMO_NGO = "demo-ngo"


async def seed_data():
    """Seed database with demo profiles and projects for development."""
    await init_db()

    async with AsyncSessionLocal() as session:
        if await get_profile(session, DEMO_ADMIN):
            logger.info("Demo data already present, nothing to do")
            return

        # The admin role cannot be self-registered, so it is written directly
        session.add(Profile(
            user_id=DEMO_ADMIN,
            full_name="Registry Admin",
            organization="National Blue Carbon Registry",
            contact_email="admin@example.org",
            role=UserRole.ADMIN,
        ))
        session.add(Profile(
            user_id=DEMO_NGO,
            full_name="Coastal Restoration NGO",
            organization="Sundarbans Mangrove Trust",
            contact_email="ngo@example.org",
            role=UserRole.NGO,
        ))
        await session.commit()

        admin = Actor(user_id=DEMO_ADMIN, role=UserRole.ADMIN)
        ngo = Actor(user_id=DEMO_NGO, role=UserRole.NGO)

        mangrove = await create_project(session, ngo, ProjectCreate(
            name="Sundarbans Mangrove Restoration",
            description="Replanting degraded mangrove along the tidal creeks",
            project_type=ProjectType.MANGROVE,
            area_hectares=120.0,
            latitude=21.9497,
            longitude=89.1833,
            address="Sundarbans, West Bengal",
            projected_sequestration=1500.0,
        ))
        await transition_project(session, admin, mangrove.id, ProjectAction.APPROVE, notes="Site visit complete")

        await create_project(session, ngo, ProjectCreate(
            name="Gulf of Mannar Seagrass Meadows",
            project_type=ProjectType.SEAGRASS,
            area_hectares=45.5,
            latitude=9.1000,
            longitude=79.1300,
            address="Gulf of Mannar, Tamil Nadu",
            projected_sequestration=320.0,
        ))
        await create_project(session, ngo, ProjectCreate(
            name="Chilika Salt Marsh Pilot",
            project_type=ProjectType.SALT_MARSH,
            area_hectares=18.0,
            status=ProjectStatus.DRAFT,
        ))

    logger.info("Seed data created successfully")


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed_data())
