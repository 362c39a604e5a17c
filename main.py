import asyncio
import sys

from core.config import settings
from core.logger import setup_logging, logger
from db.session import init_models

async def start_api(host: str = "0.0.0.0", port: int = 8000):
    import uvicorn
    from api.main import app
    config = uvicorn.Config(app, host=host, port=port, log_level=settings.LOG_LEVEL.lower())
    server = uvicorn.Server(config)
    await server.serve()

async def main():
    # Setup structured logging
    setup_logging()

    # Development databases are created on the fly; production goes through `alembic upgrade head`
    if settings.ENV != "production" or "--create-tables" in sys.argv:
        await init_models()
        logger.info("Database tables ensured", url=settings.DATABASE_URL.split("@")[-1])

    logger.info("Starting API...", env=settings.ENV)
    await start_api()

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Application stopped.")
