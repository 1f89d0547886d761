# scripts/setup/init_db.py
"""
Initialize database — creates the state table and optionally seeds a camera roster.
Run once before first launch, or to reset a fresh deployment.
Usage: python scripts/setup/init_db.py [--seed 18]
"""

import sys
import os
import argparse
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from hse_guardian.database import create_tables, engine
from hse_guardian.config import settings
from hse_guardian.main import build_engine, seed_cameras
from hse_guardian.services.state_store import StateStore
from sqlalchemy import inspect, text


def main():
    parser = argparse.ArgumentParser(description="Create HSE Guardian tables")
    parser.add_argument("--seed", type=int, default=0,
                        help="Store N default local cameras (cam1..camN) if none are persisted")
    args = parser.parse_args()

    print("🗄️  HSE Guardian DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nCheck DATABASE_URL in .env (default: sqlite:///./hse_guardian.db)")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()
    tables = inspect(engine).get_table_names()
    print(f"✅ Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    if args.seed > 0:
        store = StateStore()
        monitor = build_engine(settings)
        if store.load_engine(monitor) and len(monitor.registry):
            print(f"\n⚠️  {len(monitor.registry)} cameras already stored — seeding skipped")
        else:
            seed_cameras(monitor, args.seed)
            store.save_engine(monitor)
            print(f"\n📷 Seeded {args.seed} cameras")

    print("\n🎉 Database ready! You can now start the backend:")
    print(f"   uvicorn hse_guardian.main:app --host 0.0.0.0 --port {settings.BACKEND_PORT} --reload")


if __name__ == "__main__":
    main()
