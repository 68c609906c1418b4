"""SQLite document store for gallery records and newsletter sign-ups."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


class GalleryDB:
    """Append-only gallery records plus newsletter subscriptions.

    Gallery ids are sequential integers starting at 1.  Listing returns only
    the newest record per username, newest first.
    """

    def __init__(self, db_path: Path):
        """Initialize the database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_db()
        logger.info(f"Initialized gallery database at {self.db_path}")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize_db(self) -> None:
        """Create database schema if it doesn't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS gallery_items (
                    id INTEGER PRIMARY KEY,
                    username TEXT,
                    inscription TEXT,
                    image_url TEXT NOT NULL
                )
                """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_gallery_username
                ON gallery_items(username, id DESC)
                """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS newsletter (
                    email TEXT PRIMARY KEY,
                    subscribed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """)

            conn.commit()

    @staticmethod
    def _to_dict(row: sqlite3.Row) -> dict:
        return {
            "id": row["id"],
            "username": row["username"],
            "inscription": row["inscription"],
            "imageUrl": row["image_url"],
        }

    # -- gallery -----------------------------------------------------------

    def latest_id(self) -> int | None:
        """Return the most recent gallery id, or None for an empty gallery."""
        with self._connect() as conn:
            row = conn.execute("SELECT MAX(id) AS last_id FROM gallery_items").fetchone()
            return row["last_id"]

    def add_item(self, username: str | None, inscription: str | None, image_url: str) -> dict:
        """Append a gallery record with the next sequential id.

        The id is assigned inside the INSERT so concurrent writers cannot
        pick the same value.

        Returns:
            The stored record.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO gallery_items (id, username, inscription, image_url)
                SELECT COALESCE(MAX(id), 0) + 1, ?, ?, ? FROM gallery_items
                """,
                (username, inscription, image_url),
            )
            conn.commit()
            row = conn.execute(
                "SELECT * FROM gallery_items WHERE rowid = ?", (cursor.lastrowid,)
            ).fetchone()

        item = self._to_dict(row)
        logger.info(f"Saved gallery item {item['id']} for {username!r}")
        return item

    def count_unique_users(self) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(DISTINCT username) AS total FROM gallery_items "
                "WHERE username IS NOT NULL"
            ).fetchone()
            return row["total"]

    def list_gallery(self, page: int = 1, per_page: int = 10) -> dict:
        """Paginated listing, one record (the newest) per username.

        Args:
            page: One-based page number; values below 1 are treated as 1.
            per_page: Items per page.

        Returns:
            ``{"total": <distinct usernames>, "items": [...]}`` sorted by id
            descending.  Pages past the end have no items.
        """
        page = max(page, 1)
        offset = (page - 1) * per_page
        total = self.count_unique_users()
        if offset >= total:
            return {"total": total, "items": []}

        with self._connect() as conn:
            rows = conn.execute(
                """
                WITH ranked AS (
                    SELECT id, username, inscription, image_url,
                           ROW_NUMBER() OVER (PARTITION BY username ORDER BY id DESC) AS rn
                    FROM gallery_items
                    WHERE username IS NOT NULL
                )
                SELECT id, username, inscription, image_url
                FROM ranked
                WHERE rn = 1
                ORDER BY id DESC
                LIMIT ? OFFSET ?
                """,
                (per_page, offset),
            ).fetchall()

        return {
            "total": total,
            "items": [self._to_dict(row) for row in rows],
        }

    # -- newsletter --------------------------------------------------------

    @staticmethod
    def normalize_email(email: str) -> str:
        return email.strip().lower()

    def is_subscribed(self, email: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM newsletter WHERE email = ? LIMIT 1",
                (self.normalize_email(email),),
            ).fetchone()
            return row is not None

    def subscribe(self, email: str) -> bool:
        """Add an address to the newsletter.

        Returns:
            True if added, False if the address was already subscribed
        """
        normalized = self.normalize_email(email)
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO newsletter (email, subscribed_at) VALUES (?, ?)",
                (normalized, datetime.now().isoformat()),
            )
            conn.commit()
            was_inserted = cursor.rowcount > 0

        if was_inserted:
            logger.info(f"Newsletter subscription added: {normalized}")
        else:
            logger.debug(f"Already subscribed: {normalized}")
        return was_inserted
