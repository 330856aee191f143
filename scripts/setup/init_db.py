# scripts/setup/init_db.py
"""
Initialize database: creates all tables (and the order-number sequence on PostgreSQL).
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from vehicle_intake.database import create_tables, engine
from vehicle_intake.config import settings
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError


def main():
    print("🗄️  Vehicle Intake DB Initialization")
    print("=" * 40)
    print(f"📡 Database backend: {engine.url.get_backend_name()} ({engine.url.database})")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except SQLAlchemyError as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nCheck DATABASE_URL in .env and that PostgreSQL is running.")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()
    print("✅ All tables created")
    if not settings.is_sqlite:
        print(f"✅ Sequence {settings.AUTO_ORDER_SEQUENCE} ready")

    tables = sorted(inspect(engine).get_table_names())
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    print("\n🎉 Database ready! You can now start the backend:")
    print(f"   uvicorn vehicle_intake.main:app --host 0.0.0.0 --port {settings.BACKEND_PORT} --reload")


if __name__ == "__main__":
    main()
