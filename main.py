"""
ChatMimic Sync Worker — Entry Point.

Single entry point: `python main.py` starts the lifecycle tagging and
Google Sheets sync listeners for every configured tenant.
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from chatmimic.app import main

if __name__ == "__main__":
    main()
