from __future__ import annotations

import json
from typing import Any

WANT_TO_READ = "Want to Read"
READING = "Reading"
COMPLETED = "Completed"
READING_STATUSES = (WANT_TO_READ, READING, COMPLETED)

UNKNOWN_AUTHOR = "Unknown Author"
NO_DESCRIPTION = "No description available"
MAX_REVIEW_LENGTH = 1000


def normalize_authors(raw: Any) -> list:
    """Clean author list; a bare string counts as one author."""
    if isinstance(raw, str):
        raw = [raw]
    elif not isinstance(raw, (list, tuple)):
        raw = []
    authors = [str(a).strip() for a in raw if a is not None]
    return [a for a in authors if a] or [UNKNOWN_AUTHOR]


class SavedBook:
    """A single entry in a user's personal library."""

    def __init__(self, user_id: int, catalog_id: str, title: str, subtitle: str | None = None,
                 authors: list | None = None, description: str | None = None,
                 thumbnail: str | None = None, link: str | None = None,
                 status: str = WANT_TO_READ, personal_review: str = "",
                 id: int | None = None, created_at: str | None = None, updated_at: str | None = None) -> None:
        self.id = id
        self.user_id = user_id
        self.catalog_id = catalog_id.strip()
        self.title = title.strip()
        self.subtitle = (subtitle or "").strip()
        self.authors = normalize_authors(authors)
        self.description = description or NO_DESCRIPTION
        self.thumbnail = thumbnail or ""
        self.link = link or ""
        self.status = status
        self.personal_review = personal_review or ""
        self.created_at = created_at
        self.updated_at = updated_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {', '.join(self.authors)} [{self.status}]"

    def __repr__(self) -> str:  # pragma: no cover
        return f"<SavedBook id={self.id} user_id={self.user_id} catalog_id={self.catalog_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "catalogId": self.catalog_id,
            "title": self.title,
            "subtitle": self.subtitle,
            "authors": self.authors,
            "description": self.description,
            "thumbnail": self.thumbnail,
            "link": self.link,
            "status": self.status,
            "personalReview": self.personal_review,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @staticmethod
    def from_row(row: Any) -> "SavedBook":
        data = dict(row)
        # Authors are stored as a JSON array in SQLite
        authors = data.get("authors")
        if isinstance(authors, str):
            try:
                authors = json.loads(authors)
            except ValueError:
                authors = [authors] if authors else []

        return SavedBook(
            id=data["id"],
            user_id=data["user_id"],
            catalog_id=data["catalog_id"],
            title=data["title"],
            subtitle=data.get("subtitle"),
            authors=authors,
            description=data.get("description"),
            thumbnail=data.get("thumbnail"),
            link=data.get("link"),
            status=data.get("status") or WANT_TO_READ,
            personal_review=data.get("personal_review") or "",
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )
