#!/usr/bin/env python3
"""
Wait for the database, apply migrations to head (same DATABASE_URL), then exec uvicorn.
Migrations run once here, before any worker serves requests.
"""
import os
import sys

from app.core.config import get_settings
from app.db.migrate import upgrade_to_head
from wait_for_db import wait_for_db

settings = get_settings()

# 1) Wait for DB
wait_for_db(settings.DATABASE_URL)

# 2) Run migrations using the same settings as the app
upgrade_to_head(settings.DATABASE_URL)

# 3) Start uvicorn (replace current process)
os.execv(
    sys.executable,
    [sys.executable, "-m", "uvicorn", "app.main:create_app", "--factory",
     "--host", "0.0.0.0", "--port", os.getenv("PORT", "8000")],
)
