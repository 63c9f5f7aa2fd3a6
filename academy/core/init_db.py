import asyncio
import logging

from sqlalchemy import select, func
from academy.core.config import (
    ENVIRONMENT,
    BOOTSTRAP_ADMIN_AUTH_ID,
    BOOTSTRAP_ADMIN_EMAIL,
    BOOTSTRAP_ADMIN_NAME,
)
from academy.core.database import async_session, db_manager, db_operation
from academy.core.exceptions import DatabaseError, ConfigurationError
from academy.core.logging_utils import log_business_event

# Every model must be imported before create_all
from academy.staff.models import Coach, CoachRole
import academy.students.models  # noqa: F401

logger = logging.getLogger(__name__)


@db_operation
async def create_bootstrap_admin():
    """Create the first administrator from the environment if there is none"""
    if not BOOTSTRAP_ADMIN_AUTH_ID or not BOOTSTRAP_ADMIN_EMAIL:
        logger.info("No bootstrap administrator configured, skipping")
        return None

    async with async_session() as session:
        try:
            result = await session.execute(
                select(func.count(Coach.id)).where(Coach.role == CoachRole.admin.value)
            )
            if result.scalar():
                logger.info("Administrator already exists, skipping bootstrap")
                return None

            existing = await session.execute(
                select(Coach).where(
                    (Coach.auth_id == BOOTSTRAP_ADMIN_AUTH_ID)
                    | (func.lower(Coach.email) == BOOTSTRAP_ADMIN_EMAIL.lower())
                )
            )
            admin = existing.scalars().first()
            if admin:
                admin.role = CoachRole.admin.value
                admin.auth_id = admin.auth_id or BOOTSTRAP_ADMIN_AUTH_ID
            else:
                admin = Coach(
                    name=BOOTSTRAP_ADMIN_NAME,
                    email=BOOTSTRAP_ADMIN_EMAIL.lower(),
                    role=CoachRole.admin.value,
                    auth_id=BOOTSTRAP_ADMIN_AUTH_ID,
                )
                session.add(admin)

            await session.commit()
            log_business_event("admin_bootstrapped", "coach", admin.id, {"email": admin.email})
            return admin.id

        except Exception as e:
            logger.error(f"Failed to create bootstrap administrator: {e}")
            await session.rollback()
            raise DatabaseError(f"Failed to create bootstrap administrator: {str(e)}")


async def init_database():
    """Create tables and initial data"""
    try:
        logger.info("Starting database initialization...")

        await db_manager.check_connection()
        logger.info("Database connection verified")

        await db_manager.create_tables()
        logger.info("Database tables created/verified")

        await create_bootstrap_admin()
        logger.info("Initial data created/verified")

        logger.info("Database initialization completed successfully")

    except DatabaseError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during database initialization: {e}")
        raise DatabaseError(f"Database initialization failed: {str(e)}")


async def verify_database_setup():
    """Check that an administrator can sign in"""
    try:
        async with async_session() as session:
            result = await session.execute(
                select(func.count(Coach.id)).where(Coach.role == CoachRole.admin.value)
            )
            count = result.scalar() or 0

        if count == 0:
            raise DatabaseError("No administrator account found")

        logger.info(f"Database verification passed: {count} administrator(s) found")
        return True

    except DatabaseError:
        raise
    except Exception as e:
        logger.error(f"Database verification failed: {e}")
        raise DatabaseError(f"Database verification failed: {str(e)}")


async def reset_database():
    """Drop and recreate everything (development/testing only)"""
    if ENVIRONMENT not in ["development", "dev", "test"]:
        raise ConfigurationError(
            "ENVIRONMENT",
            "Database reset is only allowed in development or test environments",
        )

    try:
        logger.warning("RESETTING DATABASE - ALL DATA WILL BE LOST!")

        await db_manager.drop_tables()

        await init_database()
        logger.info("Database reset completed")

    except ConfigurationError:
        raise
    except Exception as e:
        logger.error(f"Database reset failed: {e}")
        raise DatabaseError(f"Database reset failed: {str(e)}")


if __name__ == "__main__":
    import sys

    async def main():
        if len(sys.argv) > 1:
            command = sys.argv[1]

            if command == "init":
                await init_database()
            elif command == "verify":
                await verify_database_setup()
            elif command == "reset":
                await reset_database()
            else:
                print(f"Unknown command: {command}")
                print("Available commands: init, verify, reset")
                sys.exit(1)
        else:
            await init_database()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Database initialization cancelled by user")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)
