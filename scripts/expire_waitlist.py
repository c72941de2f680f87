#!/usr/bin/env python3
"""
Expire waitlist entries whose expiry date has passed.

Meant to run from cron or a scheduler, e.g. once an hour:

    python scripts/expire_waitlist.py
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog  # noqa: E402

from app.database import AsyncSessionLocal, engine  # noqa: E402
from app.dependencies import get_cache_manager  # noqa: E402
from app.middleware.logging import configure_logging  # noqa: E402
from app.services.waitlist_service import WaitlistService  # noqa: E402

configure_logging()
logger = structlog.get_logger()


async def main() -> int:
    try:
        async with AsyncSessionLocal() as session:
            service = WaitlistService(session, get_cache_manager())
            result = await service.expire_old_entries()
    except Exception:
        logger.exception("waitlist_expiry_failed")
        return 1
    finally:
        await engine.dispose()

    print(f"✓ Expired {result.expired_count} waitlist entries")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
