"""Per-backend persistence adapters, selected once from DB_TYPE."""
from __future__ import annotations

import logging
import os
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine, URL
from sqlalchemy.exc import DBAPIError

logger = logging.getLogger(__name__)

ROLE_CONSTRAINT = "admin_users_chk_1"
ROLE_CHECK_SQL = "role IN ('admin', 'viewer', 'super_admin')"


class DatabaseAdapter:
    """Knows how to reach one database backend and its dialect quirks."""

    name = "base"
    patches_role_constraint = False

    def __init__(self, settings):
        self.settings = settings

    def url(self) -> URL:
        raise NotImplementedError

    def engine_kwargs(self) -> dict:
        return {"pool_pre_ping": True}

    def create_engine(self) -> Engine:
        return create_engine(self.url(), **self.engine_kwargs())

    def describe(self) -> str:
        return f"{self.name.upper()} {self.settings.DB_HOST}:{self.settings.DB_PORT}/{self.settings.DB_NAME}"

    def patch_role_constraint(self, conn: Connection):
        raise NotImplementedError(f"Role constraint patch is not supported on {self.name}")


class MySQLAdapter(DatabaseAdapter):
    name = "mysql"
    patches_role_constraint = True

    def url(self) -> URL:
        s = self.settings
        return URL.create(
            "mysql+pymysql",
            username=s.DB_USER,
            password=s.DB_PASSWORD,
            host=s.DB_HOST,
            port=s.DB_PORT,
            database=s.DB_NAME,
            query={"charset": "utf8mb4"},
        )

    def engine_kwargs(self) -> dict:
        return {"pool_pre_ping": True, "pool_recycle": 3600}

    def patch_role_constraint(self, conn: Connection):
        """Replace the admin_users role CHECK with the three-tier role set."""
        try:
            conn.execute(text(f"ALTER TABLE admin_users DROP CHECK {ROLE_CONSTRAINT}"))
            logger.info("Dropped old constraint %s", ROLE_CONSTRAINT)
        except DBAPIError as e:
            # MySQL reports a missing constraint as error 3940 / 3821
            logger.info("No check constraint %s to drop: %s", ROLE_CONSTRAINT, e.orig)
        conn.execute(text(
            f"ALTER TABLE admin_users ADD CONSTRAINT {ROLE_CONSTRAINT} CHECK ({ROLE_CHECK_SQL})"
        ))
        logger.info("Added constraint %s", ROLE_CONSTRAINT)


class PostgreSQLAdapter(DatabaseAdapter):
    name = "postgresql"

    def url(self) -> URL:
        s = self.settings
        return URL.create(
            "postgresql+psycopg2",
            username=s.DB_USER,
            password=s.DB_PASSWORD,
            host=s.DB_HOST,
            port=s.DB_PORT,
            database=s.DB_NAME,
        )


class SQLiteAdapter(DatabaseAdapter):
    name = "sqlite"

    def url(self) -> URL:
        return URL.create("sqlite", database=self.settings.DB_FILE)

    def engine_kwargs(self) -> dict:
        return {"connect_args": {"check_same_thread": False}}

    def create_engine(self) -> Engine:
        directory = os.path.dirname(os.path.abspath(self.settings.DB_FILE))
        os.makedirs(directory, exist_ok=True)
        return super().create_engine()

    def describe(self) -> str:
        return f"SQLITE {self.settings.DB_FILE}"


ADAPTERS = {
    "mysql": MySQLAdapter,
    "postgresql": PostgreSQLAdapter,
    "postgres": PostgreSQLAdapter,
    "sqlite": SQLiteAdapter,
}


def get_adapter(settings) -> DatabaseAdapter:
    try:
        adapter_cls = ADAPTERS[settings.DB_TYPE]
    except KeyError:
        raise ValueError(
            f"Unsupported DB_TYPE '{settings.DB_TYPE}'. Use mysql, postgresql or sqlite"
        )
    return adapter_cls(settings)
