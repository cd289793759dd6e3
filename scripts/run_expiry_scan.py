#!/usr/bin/env python
"""Run the license expiry sweep once from the command line."""

import asyncio
import sys
from datetime import date
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from agent_lifecycle.config import get_settings
from agent_lifecycle.services.expiry_scan_service import ExpiryScanService


async def run_expiry_scan(
    dry_run: bool = False, as_of: date | None = None, batch_size: int | None = None
) -> bool:
    """Run one sweep and print its outcome."""
    settings = get_settings()
    engine = create_async_engine(settings.async_database_url, echo=False)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with async_session() as session:
            service = ExpiryScanService(session, batch_size=settings.expiry_batch_size)
            batch_log = await service.run(
                today=as_of,
                dry_run=dry_run,
                triggered_by="cli",
                batch_size=batch_size,
            )
    finally:
        await engine.dispose()

    mode = "Dry run" if dry_run else "Sweep"
    print(f"{mode} {batch_log.id} finished in phase {batch_log.phase}")
    print(f"  licenses found:     {batch_log.total_found}")
    print(f"  licenses expired:   {batch_log.succeeded}")
    print(f"  failures:           {batch_log.failed}")
    print(f"  agents deactivated: {len(batch_log.deactivated_agent_ids)}")
    return batch_log.failed == 0


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Expire overdue licenses and deactivate agents")
    parser.add_argument("--dry-run", action="store_true", help="Report without changing anything")
    parser.add_argument("--as-of", type=date.fromisoformat, help="Reference date (YYYY-MM-DD)")
    parser.add_argument("--batch-size", type=int, help="Licenses per committed chunk")
    args = parser.parse_args()

    ok = asyncio.run(run_expiry_scan(args.dry_run, args.as_of, args.batch_size))
    sys.exit(0 if ok else 1)
