"""Database maintenance.

    python -m officeshare.scripts.db_migrate              # stamp if needed, then upgrade
    python -m officeshare.scripts.db_migrate --make-admin someone@example.com
"""
import argparse
import subprocess
import sys

from sqlalchemy import create_engine, inspect, update

from officeshare.core.database import DATABASE_URL
from officeshare.models.user import User

CORE_TABLES = ("users", "organizations", "organization_members", "share_links")


def _sync_engine():
    return create_engine(DATABASE_URL.replace("+aiosqlite", ""))


def migrate():
    insp = inspect(_sync_engine())
    has_alembic = insp.has_table("alembic_version")
    existing_core_tables = any(insp.has_table(t) for t in CORE_TABLES)

    if existing_core_tables and not has_alembic:
        print("[db-migrate] Existing tables detected without alembic_version → stamping head")
        subprocess.run(["alembic", "stamp", "head"], check=True)
    else:
        print(f"[db-migrate] has_alembic={has_alembic}, existing_core_tables={existing_core_tables}")

    subprocess.run(["alembic", "upgrade", "head"], check=True)


def make_admin(email: str) -> int:
    with _sync_engine().begin() as conn:
        res = conn.execute(update(User).where(User.email == email).values(role="admin"))
    if not res.rowcount:
        print(f"[db-migrate] No user with email {email}", file=sys.stderr)
        return 1
    print(f"[db-migrate] {email} is now a platform admin")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Office Share database maintenance")
    parser.add_argument("--make-admin", metavar="EMAIL", help="grant the platform admin role to a user")
    args = parser.parse_args(argv)
    if args.make_admin:
        return make_admin(args.make_admin)
    migrate()
    return 0

if __name__ == "__main__":
    try:
        sys.exit(main())
    except subprocess.CalledProcessError as e:
        print(f"[db-migrate] Alembic command failed: {e}", file=sys.stderr)
        sys.exit(e.returncode)
    except Exception as e:
        print(f"[db-migrate] Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)
