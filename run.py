#!/usr/bin/env python3
"""Entry point for the Gmail Workspace Backup API."""

import uvicorn
from gws_backup.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "gws_backup.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        workers=4,
        log_level="info",
        access_log=True,
    )
