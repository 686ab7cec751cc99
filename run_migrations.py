"""
Run schema migrations before the app starts.
Deploy startCommand runs: python run_migrations.py && uvicorn app.main:app ...
so every deploy upgrades the database to the latest Alembic revision.
"""
import os
import sys

from alembic import command
from alembic.config import Config


def run():
    root = os.path.dirname(os.path.abspath(__file__))
    os.chdir(root)
    sys.path.insert(0, root)

    from app.core.config import settings

    cfg = Config(os.path.join(root, "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", settings.database_url)
    try:
        command.upgrade(cfg, "head")
    except Exception as e:
        print(f"❌ Migration failed: {e}")
        return False
    print("✅ Migrations completed")
    return True


if __name__ == "__main__":
    success = run()
    sys.exit(0 if success else 1)
