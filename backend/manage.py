#!/usr/bin/env python
"""
Django management utility for the CampusGig backend.
"""

import os
import sys
import logging
from pathlib import Path

from dotenv import load_dotenv

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

# manage.py lives in <repo>/backend; the .env sits at the repo root
REPO_DIR = Path(__file__).resolve().parent.parent
ENV_FILE = REPO_DIR / ".env"


def main():
    if ENV_FILE.exists():
        load_dotenv(dotenv_path=ENV_FILE, override=False)
    elif os.environ.get("DEBUG", "").lower() in ("1", "true", "t", "yes", "y"):
        logger.warning("No .env file at %s; relying on the process environment.", ENV_FILE)

    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings")

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        logger.error("Django import failed: %s", exc)
        raise

    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
