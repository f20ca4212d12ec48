"""Bootstrap the first super_admin account.

Safe to run repeatedly: an existing super_admin is left alone, and an
older admin account is promoted instead of adding a second one.
"""

import logging
import sys
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from gws_backup.config import settings
from gws_backup.models import AdminUser
from gws_backup.auth import hash_password

logger = logging.getLogger(__name__)

CREATED = "created"
PROMOTED = "promoted"
UNCHANGED = "unchanged"


def ensure_super_admin(db: Session, config=settings, create: bool = True) -> str:
    """Make sure the first admin account exists and is a super_admin.

    With create=False an empty table is left empty and only an existing
    account can be promoted.
    """
    admin = db.query(AdminUser).order_by(AdminUser.id).first()

    if admin is None:
        if not create:
            logger.info("No admin accounts to promote")
            return UNCHANGED
        db.add(AdminUser(
            username=config.SEED_ADMIN_USERNAME,
            password_hash=hash_password(config.SEED_ADMIN_PASSWORD),
            role="super_admin",
        ))
        db.commit()
        logger.info("Created super admin %s", config.SEED_ADMIN_USERNAME)
        return CREATED

    if admin.role == "super_admin":
        logger.info("Admin %s is already super_admin", admin.username)
        return UNCHANGED

    previous = admin.role
    admin.role = "super_admin"
    if config.BOOTSTRAP_RESET_PASSWORD:
        admin.password_hash = hash_password(config.SEED_ADMIN_PASSWORD)
        admin.token_version += 1
        logger.warning("Password for %s reset to the seed password", admin.username)
    db.commit()
    logger.info("Promoted %s from %s to super_admin", admin.username, previous)
    return PROMOTED


def print_summary(db: Session, config=settings):
    admin = db.query(AdminUser).filter(AdminUser.role == "super_admin").order_by(AdminUser.id).first()
    print("Super admin ready")
    print(f"  Username: {admin.username}")
    if admin.username == config.SEED_ADMIN_USERNAME:
        print(f"  Default password: {config.SEED_ADMIN_PASSWORD} (change it after first login)")
    print(f"  Role:     {admin.role}")


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    from gws_backup.database import SessionLocal, adapter, init_db

    logger.info("Connecting to %s", adapter.describe())
    db = SessionLocal()
    try:
        init_db()
        ensure_super_admin(db)
        print_summary(db)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Admin setup failed: %s", e)
        sys.exit(1)
    finally:
        db.close()
    sys.exit(0)


if __name__ == "__main__":
    main()
