# scripts/setup/init_db.py
"""
Initialize database: creates all tables and seeds the default campus zones.
Run once before first launch, or after adding new models.
Seeding is skipped when the zones table already has rows.
Usage: python scripts/setup/init_db.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from datetime import datetime
from campus_parking.database import create_tables, engine, SessionLocal
from campus_parking.config import settings
from campus_parking.models.zone import Zone
from sqlalchemy import inspect, text

DEFAULT_ZONES = [
    {"name": "Zone A - Main Campus",     "code": "ZONE-A", "type": "student", "total_slots": 50, "address": "Building A"},
    {"name": "Zone B - Faculty Block",   "code": "ZONE-B", "type": "staff",   "total_slots": 30, "address": "Building B"},
    {"name": "Zone C - Library",         "code": "ZONE-C", "type": "general", "total_slots": 40, "address": "Library"},
    {"name": "Zone D - Visitor Parking", "code": "ZONE-D", "type": "visitor", "total_slots": 20, "address": "Main Gate"},
]


def seed_zones() -> int:
    db = SessionLocal()
    try:
        if db.query(Zone).count() > 0:
            return 0
        now = datetime.utcnow()
        for z in DEFAULT_ZONES:
            db.add(Zone(**z, price_per_hour=0, is_active=True, created_at=now))
        db.commit()
        return len(DEFAULT_ZONES)
    finally:
        db.close()


def main():
    print("🗄️  Campus Parking DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nMake sure PostgreSQL is running:")
        print("  docker-compose up -d db")
        print("  # or: sudo systemctl start postgresql")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()
    tables = sorted(inspect(engine).get_table_names())
    print(f"✅ Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    seeded = seed_zones()
    if seeded:
        print(f"\n🅿️  Seeded {seeded} default zones")
    else:
        print("\n🅿️  Zones already present — seeding skipped")

    print("\n🎉 Database ready! You can now start the backend:")
    print(f"   uvicorn campus_parking.main:app --host {settings.BACKEND_IP} --port {settings.BACKEND_PORT} --reload")


if __name__ == "__main__":
    main()
