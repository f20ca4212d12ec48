from sqlalchemy import (
    Column, BigInteger, Integer, String, DateTime, Date, Text, Boolean,
    ForeignKey, CheckConstraint,
)
from sqlalchemy.sql import func
from gws_backup.database import Base

ADMIN_ROLES = ("viewer", "admin", "super_admin")
EXPORT_STATUSES = ("pending", "processing", "completed", "failed")
EXPORT_FORMATS = ("eml", "pst")
USER_STATUSES = ("active", "inactive")


class Domain(Base):
    __tablename__ = "domains"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class MailUser(Base):
    """A Workspace mailbox whose mail is backed up."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("status IN ('active', 'inactive')", name="users_status_chk"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    domain_id = Column(Integer, ForeignKey("domains.id", ondelete="CASCADE"), index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    last_uid = Column(Integer, default=0)
    status = Column(String(20), nullable=False, default="active", index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Email(Base):
    __tablename__ = "emails"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    message_id = Column(String(255), unique=True, nullable=False)
    subject = Column(Text)
    from_email = Column(String(255), index=True)
    to_email = Column(Text)
    date = Column(DateTime, index=True)
    eml_path = Column(String(500))
    size = Column(BigInteger, default=0)
    folder = Column(String(255), default="INBOX", index=True)
    indexed_at = Column(DateTime, server_default=func.now())


class Attachment(Base):
    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email_id = Column(BigInteger().with_variant(Integer, "sqlite"),
                      ForeignKey("emails.id", ondelete="CASCADE"), index=True)
    filename = Column(String(255))
    mime_type = Column(String(100))
    size = Column(BigInteger, default=0)
    file_path = Column(String(500))


class PstExport(Base):
    __tablename__ = "pst_exports"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="pst_exports_status_chk",
        ),
    )

    id = Column(String(36), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True)
    filename = Column(String(255))
    status = Column(String(20), nullable=False, default="pending", index=True)
    progress = Column(Integer, nullable=False, default=0)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    export_format = Column(String(10), nullable=False, default="eml")
    file_path = Column(String(500))
    retry_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    completed_at = Column(DateTime, nullable=True)


class AdminUser(Base):
    __tablename__ = "admin_users"
    __table_args__ = (
        CheckConstraint(
            "role IN ('admin', 'viewer', 'super_admin')", name="admin_users_chk_1"
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="admin")
    token_version = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    last_login = Column(DateTime, nullable=True)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    admin_user_id = Column(Integer, ForeignKey("admin_users.id", ondelete="SET NULL"), index=True)
    action = Column(String(100), nullable=False, index=True)
    resource = Column(String(100))
    resource_id = Column(String(64))
    details = Column(Text)
    ip_address = Column(String(45))
    created_at = Column(DateTime, server_default=func.now(), index=True)


class ImapConnection(Base):
    __tablename__ = "imap_connections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    connection_id = Column(String(100), unique=True, nullable=False)
    status = Column(String(20), nullable=False, default="connecting", index=True)
    last_activity = Column(DateTime, server_default=func.now(), index=True)
    created_at = Column(DateTime, server_default=func.now())


class BackupConfig(Base):
    """Single-row table holding the backup worker's tunables."""

    __tablename__ = "backup_config"

    id = Column(Integer, primary_key=True)
    backup_interval = Column(Integer, nullable=False)
    max_concurrent_users = Column(Integer, nullable=False)
    batch_size = Column(Integer, nullable=False)
    batch_delay = Column(Integer, nullable=False)
    use_real_gmail = Column(Boolean, default=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
