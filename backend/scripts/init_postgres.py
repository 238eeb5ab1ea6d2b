"""
Check the PostgreSQL database for Session Guard.
Run once before migrating: python scripts/init_postgres.py

Requires: PostgreSQL installed and running. Create user and database:

  sudo -u postgres psql
  CREATE USER sessionguard WITH PASSWORD 'sessionguard';
  CREATE DATABASE sessionguard_db OWNER sessionguard;
  GRANT ALL PRIVILEGES ON DATABASE sessionguard_db TO sessionguard;
  \q
"""

import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import create_engine, text
from app.config import settings


def main():
    url = settings.get_database_url()
    if not url.startswith("postgresql"):
        print("Database URL is not PostgreSQL. Skipping.")
        return
    try:
        engine = create_engine(url)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("PostgreSQL connection OK. Database exists.")
    except Exception as e:
        print(f"Cannot connect to PostgreSQL: {e}")
        print("\nCreate database first:")
        print("  psql -U postgres -c \"CREATE USER sessionguard WITH PASSWORD 'sessionguard';\"")
        print("  psql -U postgres -c \"CREATE DATABASE sessionguard_db OWNER sessionguard;\"")
        print("  psql -U postgres -c \"GRANT ALL PRIVILEGES ON DATABASE sessionguard_db TO sessionguard;\"")
        sys.exit(1)
    for name in settings.insecure_defaults():
        print(f"WARNING: {name} is still the development placeholder.")


if __name__ == "__main__":
    main()
