"""
migrate.py — Schema maintenance for the share-link tables.

SQLAlchemy's create_all() only creates NEW tables; it never alters existing
ones. ``migrate`` creates what is missing and then applies the column
additions below, each idempotent. ``uninstall`` removes every share link,
which disables all outstanding public URLs at once.

Usage:
  python migrate.py migrate
  python migrate.py uninstall

Safe to run multiple times.
"""

import argparse

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401  (registers tables on Base.metadata)
from database import Base, engine as default_engine
from link_store import ShareLinkStore

# (table, column) added when missing; the DDL type comes from the model
COLUMN_MIGRATIONS = [
    ("documents", "parent_id"),
    ("documents", "modified_at"),
    ("share_links", "expires_at"),
    ("share_links", "created_at"),
    ("audit_logs", "document_id"),
]


def run_migrations(engine: Engine = default_engine) -> list:
    """Create missing tables and columns. Returns the statements applied."""
    Base.metadata.create_all(bind=engine)
    applied = []
    inspector = inspect(engine)
    with engine.connect() as conn:
        for table, column in COLUMN_MIGRATIONS:
            existing = {c["name"] for c in inspector.get_columns(table)}
            if column in existing:
                continue
            ddl_type = Base.metadata.tables[table].c[column].type.compile(dialect=engine.dialect)
            sql = f"ALTER TABLE {table} ADD COLUMN {column} {ddl_type}"
            conn.execute(text(sql))
            conn.commit()
            applied.append(sql)
            print(f"  [+] {sql}")
    return applied


def uninstall(engine: Engine = default_engine) -> int:
    """Delete every share link. Returns the number of links removed."""
    db = sessionmaker(bind=engine)()
    try:
        removed = ShareLinkStore(db).delete_all()
    finally:
        db.close()
    print(f"  [-] removed {removed} share link(s)")
    return removed


def main(argv=None):
    parser = argparse.ArgumentParser(description="Public Draft Share schema maintenance")
    parser.add_argument("command", choices=["migrate", "uninstall"])
    args = parser.parse_args(argv)

    print("=" * 60)
    print("Public Draft Share — " + args.command)
    print("=" * 60)
    if args.command == "migrate":
        applied = run_migrations()
        print(f"Migration complete ({len(applied)} change(s)).")
    else:
        uninstall()
        print("All share links removed.")


if __name__ == "__main__":
    main()
