import logging
import os
import sqlite3
from typing import Optional

from bookshelf.config import settings

logger = logging.getLogger(__name__)

# Default database file.
# Priority:
# 1) BOOKSHELF_DB_FILE (read by config.py/.env)
# 2) bookshelf.db in the working directory
DATABASE_FILE = settings.database_file


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a fresh SQLite connection; callers close it when done."""
    conn = sqlite3.connect(db_file or DATABASE_FILE, timeout=10, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    # Better concurrent access between API worker threads
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA busy_timeout = 10000;")
    return conn


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the tables if they do not exist yet."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                email TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        # One row per (user, catalog item)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS saved_books (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                catalog_id TEXT NOT NULL,
                title TEXT NOT NULL,
                subtitle TEXT NOT NULL DEFAULT '',
                authors TEXT NOT NULL,
                description TEXT NOT NULL,
                thumbnail TEXT NOT NULL DEFAULT '',
                link TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL DEFAULT 'Want to Read'
                    CHECK(status IN ('Want to Read', 'Reading', 'Completed')),
                personal_review TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE (user_id, catalog_id),
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_saved_books_user_created ON saved_books(user_id, created_at DESC)")
        conn.commit()
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initialize the database, creating tables when needed."""
    path = db_file or DATABASE_FILE
    parent = os.path.dirname(os.path.abspath(path))
    os.makedirs(parent, exist_ok=True)
    create_tables(path)
    logger.debug(f"Database ready at {path}")
