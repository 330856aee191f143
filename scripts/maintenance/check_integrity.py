# scripts/maintenance/check_integrity.py
"""
Report data that needs an operator: kickoffs with missing homologation cards
and automatic orders whose lines were never written. Read-only.
Usage: python scripts/maintenance/check_integrity.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from vehicle_intake.database import SessionLocal
from vehicle_intake.services.kickoff_service import check_kickoff_integrity
from vehicle_intake.services.order_service import find_orders_missing_lines


def main():
    db = SessionLocal()
    try:
        orphans = check_kickoff_integrity(db)
        broken_orders = find_orders_missing_lines(db)
    finally:
        db.close()

    print("🔎 Kickoff integrity")
    print("=" * 40)
    if not orphans:
        print("✅ Every kickoff vehicle has its homologation cards")
    for o in orphans:
        print(f"❌ sale {o.sale_summary_id}: {o.company_name} (approved {o.approved_at})")
        for v in o.vehicles_without_cards:
            print(f"   • vehicle {v['id']}: {v['brand']} {v['model']} {v['year'] or ''} "
                  f": {v['linked_cards']}/{v['quantity']} cards")

    print("\n🔎 Automatic orders")
    print("=" * 40)
    if not broken_orders:
        print("✅ Every automatic order has vehicle and tracker lines")
    for order in broken_orders:
        print(f"❌ {order.order_number} (id {order.id}, {order.company_name}) has no vehicle/tracker line")

    sys.exit(1 if orphans or broken_orders else 0)


if __name__ == "__main__":
    main()
