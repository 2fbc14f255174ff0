"""
Legacy -> current schema
- Rebuilds users with a unique email and a password_hash column, hashing the
  plaintext passwords the old implementation stored
- Maps the 'contractor' role to 'store_owner'
- Creates the stores / ratings tables when missing
- Collapses duplicate (user, store) ratings, keeping the latest row, and adds
  the unique index the rating upsert relies on

Usage:
  python -m migration.migrate_legacy --db path/to/storerate.db
"""
import argparse
import logging
import os
import sqlite3
from contextlib import closing

from storerate.auth import hash_password
from storerate.db import Base, make_engine
from storerate.models import ROLE_ALIASES, ROLE_USER

logger = logging.getLogger(__name__)

USERS_DDL = """
CREATE TABLE users_new (
    id INTEGER PRIMARY KEY,
    name VARCHAR(60) NOT NULL,
    email VARCHAR(255) NOT NULL UNIQUE,
    address VARCHAR(400) NOT NULL DEFAULT '',
    password_hash VARCHAR(255) NOT NULL,
    role VARCHAR(20) NOT NULL DEFAULT 'user',
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
)
"""


def has_column(conn: sqlite3.Connection, table: str, column: str) -> bool:
    cur = conn.execute(f"PRAGMA table_info({table})")
    return any(row[1] == column for row in cur.fetchall())


def table_names(conn: sqlite3.Connection) -> set:
    return {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}


def rebuild_users(conn: sqlite3.Connection) -> int:
    """Copy users into the current layout, hashing plaintext passwords."""
    address = "address" if has_column(conn, "users", "address") else "''"
    created = "created_at" if has_column(conn, "users", "created_at") else "NULL"
    rows = conn.execute(
        f"SELECT id, name, email, {address}, password, role, {created} FROM users ORDER BY id"
    ).fetchall()
    conn.execute(USERS_DDL)
    for uid, name, email, addr, password, role, created_at in rows:
        role = ROLE_ALIASES.get(role, role or ROLE_USER)
        conn.execute(
            "INSERT INTO users_new (id, name, email, address, password_hash, role, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))",
            (uid, name, email, addr or "", hash_password(password or ""), role, created_at),
        )
    conn.execute("DROP TABLE users")
    conn.execute("ALTER TABLE users_new RENAME TO users")
    return len(rows)


def migrate(db_path: str):
    if db_path == ":memory:":
        raise ValueError("Use a file-backed DB for migration script")

    if not os.path.exists(db_path):
        raise FileNotFoundError(db_path)

    with closing(sqlite3.connect(db_path)) as conn:
        # table rebuild below must not cascade into stores/ratings
        conn.execute("PRAGMA foreign_keys=OFF")

        # Ensure users table exists
        if "users" not in table_names(conn):
            raise RuntimeError("users table missing; cannot migrate")

        if not has_column(conn, "users", "password_hash"):
            count = rebuild_users(conn)
            logger.info("rehashed %d legacy passwords", count)
        else:
            placeholders = ", ".join("?" for _ in ROLE_ALIASES)
            conn.execute(
                f"UPDATE users SET role = 'store_owner' WHERE role IN ({placeholders})",
                tuple(ROLE_ALIASES),
            )

        if "ratings" in table_names(conn):
            # keep the most recent rating per (user, store)
            conn.execute(
                "DELETE FROM ratings WHERE id NOT IN "
                "(SELECT MAX(id) FROM ratings GROUP BY user_id, store_id)"
            )
            conn.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS uq_ratings_user_store ON ratings (user_id, store_id)"
            )
        conn.commit()

    # Create whatever tables are still missing in their current form
    engine = make_engine(f"sqlite:///{db_path}")
    try:
        Base.metadata.create_all(bind=engine)
    finally:
        engine.dispose()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", required=True, help="Path to SQLite database file")
    args = parser.parse_args()
    migrate(args.db)

if __name__ == "__main__":
    main()
