import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import bookshelf.database as database
from bookshelf.book import (
    MAX_REVIEW_LENGTH,
    READING_STATUSES,
    WANT_TO_READ,
    SavedBook,
    normalize_authors,
)
from bookshelf.database import get_db_connection, initialize_database
from bookshelf.errors import ConflictError, NotFoundError, ValidationError
from bookshelf.utils.validators import TextValidator

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, user_id, catalog_id, title, subtitle, authors, description,
    thumbnail, link, status, personal_review, created_at, updated_at
"""

BOOK_NOT_FOUND = "Book not found in your library"
BOOK_ALREADY_SAVED = "Book already saved to your library"

# Largest value SQLite can store in an INTEGER column
MAX_ROW_ID = 2 ** 63 - 1


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_status(status: Any) -> str:
    if status not in READING_STATUSES:
        raise ValidationError('Invalid status. Must be "Want to Read", "Reading", or "Completed"')
    return status


def _check_review(review: Any) -> str:
    if not isinstance(review, str):
        raise ValidationError("Personal review must be text")
    if len(review) > MAX_REVIEW_LENGTH:
        raise ValidationError(f"Personal review cannot exceed {MAX_REVIEW_LENGTH} characters")
    return review


def _book_id(raw: Any) -> int:
    # Anything that is not a positive integer can never match a row
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise NotFoundError(BOOK_NOT_FOUND)
    if not 1 <= value <= MAX_ROW_ID:
        raise NotFoundError(BOOK_NOT_FOUND)
    return value


class Library:
    """Per-user saved-book repository backed by SQLite.

    Every operation takes the caller's user id and scopes its SQL with
    ``user_id = ?``, so a record owned by someone else behaves exactly like a
    record that does not exist.
    """

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or database.DATABASE_FILE
        initialize_database(self.db_file)

    def _connect(self) -> sqlite3.Connection:
        return get_db_connection(self.db_file)

    # ------------------------- Core operations ------------------------- #
    def list_books(self, user_id: int, status: Optional[str] = None) -> List[SavedBook]:
        """Return the user's books, most recently created first."""
        query = f"SELECT {_COLUMNS} FROM saved_books WHERE user_id = ?"
        params: List[Any] = [user_id]
        if status is not None:
            params.append(_check_status(status))
            query += " AND status = ?"
        query += " ORDER BY created_at DESC, id DESC"

        conn = self._connect()
        try:
            rows = conn.execute(query, params).fetchall()
            return [SavedBook.from_row(row) for row in rows]
        finally:
            conn.close()

    def find_book(self, user_id: int, book_id: Any) -> Optional[SavedBook]:
        try:
            book_id = _book_id(book_id)
        except NotFoundError:
            return None
        conn = self._connect()
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM saved_books WHERE id = ? AND user_id = ?",
                (book_id, user_id),
            ).fetchone()
            return SavedBook.from_row(row) if row else None
        finally:
            conn.close()

    def add_book(self, user_id: int, data: Mapping[str, Any]) -> SavedBook:
        """Save a catalog entry to the user's library."""
        catalog_id = data.get("catalog_id") or data.get("catalogId") or data.get("googleId")
        title = data.get("title")
        if TextValidator.is_blank(catalog_id) or TextValidator.is_blank(title):
            raise ValidationError("Google ID and title are required")

        review = data.get("personal_review", data.get("personalReview")) or ""
        book = SavedBook(
            user_id=user_id,
            catalog_id=str(catalog_id),
            title=str(title),
            subtitle=data.get("subtitle"),
            authors=normalize_authors(data.get("authors")),
            description=data.get("description"),
            thumbnail=data.get("thumbnail"),
            link=data.get("link"),
            status=WANT_TO_READ,
            personal_review=_check_review(review),
        )
        now = _utcnow()
        book.created_at = book.updated_at = now

        conn = self._connect()
        try:
            cursor = conn.execute(
                """
                INSERT INTO saved_books (
                    user_id, catalog_id, title, subtitle, authors, description,
                    thumbnail, link, status, personal_review, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    book.user_id, book.catalog_id, book.title, book.subtitle,
                    json.dumps(book.authors), book.description, book.thumbnail,
                    book.link, book.status, book.personal_review, now, now,
                ),
            )
            conn.commit()
            book.id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            conn.rollback()
            if "UNIQUE" in str(e):
                raise ConflictError(BOOK_ALREADY_SAVED) from e
            raise
        finally:
            conn.close()

        logger.info(f"User {user_id} saved book {book.catalog_id} as id={book.id}")
        return book

    def update_book(self, user_id: int, book_id: Any, *, status: Optional[str] = None,
                    personal_review: Optional[str] = None) -> SavedBook:
        """Partially update status and/or review; untouched fields keep their values."""
        book_id = _book_id(book_id)
        assignments: List[str] = []
        params: List[Any] = []
        if status is not None:
            assignments.append("status = ?")
            params.append(_check_status(status))
        if personal_review is not None:
            assignments.append("personal_review = ?")
            params.append(_check_review(personal_review))
        assignments.append("updated_at = ?")
        params.append(_utcnow())
        params.extend([book_id, user_id])

        conn = self._connect()
        try:
            cursor = conn.execute(
                f"UPDATE saved_books SET {', '.join(assignments)} WHERE id = ? AND user_id = ?",
                params,
            )
            if cursor.rowcount == 0:
                conn.rollback()
                raise NotFoundError(BOOK_NOT_FOUND)
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM saved_books WHERE id = ? AND user_id = ?",
                (book_id, user_id),
            ).fetchone()
            conn.commit()
        finally:
            conn.close()

        logger.info(f"User {user_id} updated book id={book_id}")
        return SavedBook.from_row(row)

    def remove_book(self, user_id: int, book_id: Any) -> SavedBook:
        """Delete the book and return the snapshot taken just before removal."""
        book_id = _book_id(book_id)
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM saved_books WHERE id = ? AND user_id = ?",
                (book_id, user_id),
            ).fetchone()
            if row is None:
                conn.rollback()
                raise NotFoundError(BOOK_NOT_FOUND)
            conn.execute("DELETE FROM saved_books WHERE id = ? AND user_id = ?", (book_id, user_id))
            conn.commit()
        finally:
            conn.close()

        logger.info(f"User {user_id} removed book id={book_id}")
        return SavedBook.from_row(row)

    def status_counts(self, user_id: int) -> Dict[str, int]:
        """Number of the user's books per status, plus an "All" total."""
        counts = {status: 0 for status in READING_STATUSES}
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS total FROM saved_books WHERE user_id = ? GROUP BY status",
                (user_id,),
            ).fetchall()
        finally:
            conn.close()
        for row in rows:
            counts[row["status"]] = row["total"]
        return {"All": sum(counts.values()), **counts}
