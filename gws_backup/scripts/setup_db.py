"""Create every table the backend uses."""

import logging
import sys
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    from gws_backup.database import adapter, init_db

    try:
        init_db()
    except SQLAlchemyError as e:
        logger.error("Database setup failed on %s: %s", adapter.describe(), e)
        sys.exit(1)
    logger.info("Database schema ready on %s", adapter.describe())
    sys.exit(0)


if __name__ == "__main__":
    main()
