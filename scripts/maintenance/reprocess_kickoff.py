# scripts/maintenance/reprocess_kickoff.py
"""
Re-run kickoff reconciliation for one sale (or every orphan kickoff).
Creates missing homologation cards; never deletes or downgrades existing ones.
Usage:
  python scripts/maintenance/reprocess_kickoff.py --sale 123
  python scripts/maintenance/reprocess_kickoff.py --sale 123 --vehicles 10 11
  python scripts/maintenance/reprocess_kickoff.py --all-orphans
"""

import argparse
import asyncio
import json
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from vehicle_intake.context import PipelineContext
from vehicle_intake.database import SessionLocal
from vehicle_intake.services.kickoff_service import check_kickoff_integrity, process_kickoff_vehicles


async def run(sale_ids, vehicle_ids):
    db = SessionLocal()
    failed = False
    try:
        ctx = PipelineContext(db=db)
        for sale_id in sale_ids:
            result = await process_kickoff_vehicles(ctx, sale_id, vehicle_ids)
            print(f"{'✅' if result.success else '❌'} sale {sale_id} [{ctx.request_id}]")
            print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
            failed = failed or not result.success
    finally:
        db.close()
    return failed


def main():
    parser = argparse.ArgumentParser(description="Reprocess kickoff homologation cards")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--sale", type=int, help="sale_summary_id to reprocess")
    target.add_argument("--all-orphans", action="store_true",
                        help="reprocess every kickoff reported by the integrity check")
    parser.add_argument("--vehicles", type=int, nargs="*",
                        help="only these incoming vehicle ids (validated set)")
    args = parser.parse_args()

    if args.all_orphans:
        db = SessionLocal()
        try:
            sale_ids = [o.sale_summary_id for o in check_kickoff_integrity(db) if o.sale_summary_id is not None]
        finally:
            db.close()
        if not sale_ids:
            print("✅ No orphan kickoffs")
            return
    else:
        sale_ids = [args.sale]

    failed = asyncio.run(run(sale_ids, args.vehicles))
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
