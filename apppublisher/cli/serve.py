"""
Publish Server CLI
Runs the publish API under uvicorn.
Run with: python -m apppublisher --port 3000
"""

import argparse
import asyncio
import logging

import uvicorn

from apppublisher.core.config import PUBLISH_ENVIRONMENTS, settings
from apppublisher.core.database import create_schema, dispose_engines

logger = logging.getLogger(__name__)


async def init_datastores(environments: list[str]) -> None:
    """Create the app table in each environment's datastore."""
    urls = settings.datastore_urls
    try:
        for env in environments:
            url = urls.get(env)
            if not url:
                logger.warning(f"Skipping {env}: no datastore configured")
                continue
            await create_schema(url)
    finally:
        await dispose_engines()


def main():
    parser = argparse.ArgumentParser(description="App publish server")

    parser.add_argument("--host", type=str, default=settings.host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.port, help="Listen port (default: PORT or 3000)")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    parser.add_argument(
        "--init-db",
        nargs="+",
        choices=PUBLISH_ENVIRONMENTS,
        metavar="ENV",
        help="Create the app table in the given environments' datastores and exit",
    )

    args = parser.parse_args()

    if args.init_db:
        logging.basicConfig(level=settings.log_level)
        asyncio.run(init_datastores(args.init_db))
        return

    uvicorn.run(
        "apppublisher.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
