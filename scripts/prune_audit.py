from __future__ import annotations

import argparse
import asyncio

from seoadmin.core.config import get_settings
from seoadmin.persistence.db import SessionLocal
from seoadmin.persistence.repos import audit as audit_repo
from seoadmin.services.maintenance import prune_audit_logs, retention_cutoff


async def _run_prune(retention_days: int, dry_run: bool) -> None:
    # Purge SEO audit history older than the retention window.
    async with SessionLocal() as session:
        if dry_run:
            cutoff = retention_cutoff(retention_days=retention_days)
            pending = await audit_repo.count_before(session, cutoff=cutoff)
            print(f"dry_run=true cutoff={cutoff.isoformat()} prunable_seo_audit_logs={pending}")
            return
        deleted = await prune_audit_logs(session, retention_days=retention_days)
        await session.commit()
        print(f"pruned_seo_audit_logs={deleted}")


def main() -> None:
    # Parse CLI flags for audit retention pruning.
    parser = argparse.ArgumentParser(description="Prune SEO audit log entries beyond retention")
    parser.add_argument("--retention-days", type=int, default=None)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()

    retention = args.retention_days or get_settings().audit_retention_days
    asyncio.run(_run_prune(retention, args.dry_run))


if __name__ == "__main__":
    main()
