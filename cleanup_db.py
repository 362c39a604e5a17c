"""Run one expired-quiz sweep cycle by hand and print the result."""
import asyncio
import json
import sys

from core.logger import setup_logging
from db.session import AsyncSessionLocal
from services.media_service import build_media_store
from services.retention_service import RetentionSweeper

async def cleanup() -> int:
    media_store = build_media_store()
    try:
        sweeper = RetentionSweeper(AsyncSessionLocal, media_store)
        result = await sweeper.run_once()
    finally:
        await media_store.close()

    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1

if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(cleanup()))
