"""Widen the admin_users role constraint on MySQL databases created before super_admin.

Other backends build the constraint with all three roles from the start,
so there is nothing to patch and the script exits cleanly.
"""

import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from gws_backup.scripts.setup_admin import ensure_super_admin

logger = logging.getLogger(__name__)


def fix_admin_role(engine, adapter, session_factory) -> bool:
    """Patch the constraint and promote the first existing admin. False when skipped."""
    if not adapter.patches_role_constraint:
        logger.info("%s needs no role constraint patch, skipping", adapter.name)
        return False

    with engine.begin() as conn:
        adapter.patch_role_constraint(conn)

    db = session_factory()
    try:
        ensure_super_admin(db, create=False)
    finally:
        db.close()
    return True


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    from gws_backup.database import SessionLocal, adapter, engine

    try:
        if fix_admin_role(engine, adapter, SessionLocal):
            print("Admin role constraint fixed")
    except SQLAlchemyError as e:
        logger.error("Role constraint fix failed: %s", e)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
