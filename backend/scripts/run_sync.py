#!/usr/bin/env python3
"""Run a sync outside the API process.

Usage:
    python scripts/run_sync.py backfill <account_id> [from_date] [to_date]
    python scripts/run_sync.py daily <youtube|instagram> [account_id]
    python scripts/run_sync.py snapshots [youtube|instagram]
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import async_session
from models.platform_connection import Platform
from services.channel_sync import close_orchestrator, get_orchestrator
from services.errors import SyncError
from services.snapshot_capture import get_snapshot_capture


async def run_backfill(account_id: str, from_date: str | None, to_date: str | None) -> dict:
    async with async_session() as db:
        result = await get_orchestrator().backfill_youtube(db, account_id, from_date, to_date)
    return result.to_backfill_response()


async def run_daily(platform: Platform, account_id: str | None) -> dict:
    orchestrator = get_orchestrator()
    if account_id is None:
        return (await orchestrator.sync_all_accounts(platform)).to_response()

    async with async_session() as db:
        if platform == Platform.YOUTUBE:
            result = await orchestrator.sync_youtube_daily(db, account_id)
        else:
            result = await orchestrator.sync_instagram_daily(db, account_id)
    return result.to_daily_response()


async def main(args: list[str]) -> int:
    if not args:
        print(__doc__)
        return 1

    command = args[0]
    try:
        if command == "backfill" and len(args) >= 2:
            response = await run_backfill(
                args[1],
                args[2] if len(args) > 2 else None,
                args[3] if len(args) > 3 else None,
            )
        elif command == "daily" and len(args) >= 2:
            response = await run_daily(Platform(args[1]), args[2] if len(args) > 2 else None)
        elif command == "snapshots":
            platform = Platform(args[1]) if len(args) > 1 else None
            response = (await get_snapshot_capture().capture_all(platform)).to_response()
        else:
            print(__doc__)
            return 1
    except SyncError as e:
        print(f"Sync failed: {e.message}")
        return 1
    finally:
        await close_orchestrator()

    print(json.dumps(response, indent=2, default=str))
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    sys.exit(asyncio.run(main(sys.argv[1:])))
