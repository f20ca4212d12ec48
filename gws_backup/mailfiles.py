"""Reading archived .eml files: bodies, previews and attachment extraction."""
from __future__ import annotations

import logging
import os
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import format_datetime
from datetime import timezone

logger = logging.getLogger(__name__)


def build_placeholder_eml(email) -> bytes:
    """Synthesise an EML from the indexed headers when the file is gone."""
    msg = EmailMessage()
    msg["From"] = email.from_email or "unknown"
    msg["To"] = email.to_email or ""
    msg["Subject"] = email.subject or "(no subject)"
    if email.date:
        msg["Date"] = format_datetime(email.date.replace(tzinfo=timezone.utc))
    if getattr(email, "message_id", None):
        msg["Message-ID"] = email.message_id
    msg.set_content(
        f"[Email content stored in backup at: {email.eml_path}]\n\n"
        "This is a backup record. Original EML file may be available in the backup directory.\n"
    )
    return msg.as_bytes()


def read_eml(email) -> bytes:
    if email.eml_path and os.path.isfile(email.eml_path):
        with open(email.eml_path, "rb") as fh:
            return fh.read()
    logger.info("EML file not found for email %s (%s), using placeholder", email.id, email.eml_path)
    return build_placeholder_eml(email)


def parse_message(raw: bytes) -> EmailMessage:
    return BytesParser(policy=policy.default).parsebytes(raw)


def extract_bodies(raw: bytes) -> dict:
    """Return body_html, body_text and the preferred content_type."""
    result = {"body_html": None, "body_text": None, "content_type": "text/plain"}
    try:
        msg = parse_message(raw)
        html_part = msg.get_body(preferencelist=("html",))
        text_part = msg.get_body(preferencelist=("plain",))
        if html_part is not None:
            result["body_html"] = html_part.get_content()
            result["content_type"] = "text/html"
        if text_part is not None:
            result["body_text"] = text_part.get_content()
    except Exception as e:
        logger.warning("Failed to parse email content, using raw fallback: %s", e)
        _, body = split_preview(raw.decode("utf-8", errors="replace"))
        result["body_text"] = body or None
    return result


def split_preview(text: str) -> tuple[str, str]:
    """Top-level Content-Type header and everything after the header block."""
    content_type = "text/plain"
    body_lines = []
    in_body = False
    for line in text.splitlines():
        if not in_body:
            if line.lower().startswith("content-type:"):
                content_type = line.split(":", 1)[1].strip()
            if line.strip() == "":
                in_body = True
            continue
        body_lines.append(line)
    return content_type, "\n".join(body_lines).strip()


def find_attachment(raw: bytes, filename: str) -> tuple[bytes, str] | None:
    """Pull a named attachment out of the message, if present."""
    try:
        msg = parse_message(raw)
    except Exception as e:
        logger.warning("Could not parse EML for attachment %s: %s", filename, e)
        return None
    for part in msg.iter_attachments():
        if part.get_filename() == filename:
            payload = part.get_payload(decode=True) or b""
            return payload, part.get_content_type()
    return None


def remove_file(path: str | None) -> bool:
    if not path:
        return False
    try:
        os.remove(path)
        return True
    except OSError as e:
        logger.warning("Failed to delete file %s: %s", path, e)
        return False
