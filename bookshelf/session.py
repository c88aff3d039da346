"""
Persisted CLI state: the signed-in session and the last search page.
Files live under ~/.bookshelf (or $BOOKSHELF_HOME).
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from bookshelf.client import AuthSession
from bookshelf.schemas import CatalogBookModel

logger = logging.getLogger(__name__)


class SessionStore:
    """Reads and writes the CLI's persisted credentials."""

    def __init__(self, state_dir: Path):
        self.state_dir = Path(state_dir)
        self.session_file = self.state_dir / "session.json"
        self.search_file = self.state_dir / "last_search.json"

    def _read(self, path: Path) -> Optional[Any]:
        if not path.exists():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read {path}: {e}")
            return None

    def _write(self, path: Path, data: Any, mode: int = 0o644) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        # Permissions are set at creation so the file is never wider than mode
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def load_session(self) -> Optional[AuthSession]:
        """Return the stored session, or None when signed out or unreadable."""
        data = self._read(self.session_file)
        if not data:
            return None
        try:
            return AuthSession.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed session file: {e}")
            return None

    def save_session(self, session: AuthSession) -> None:
        # An existing file keeps its old mode through os.open, so tighten it first
        if self.session_file.exists():
            self.session_file.chmod(0o600)
        self._write(self.session_file, session.to_dict(), mode=0o600)

    def clear(self) -> None:
        """Forget the session and everything tied to it."""
        for path in (self.session_file, self.search_file):
            if path.exists():
                path.unlink()

    def save_last_search(self, query: str, page: int, books: List[CatalogBookModel]) -> None:
        self._write(self.search_file, {
            "query": query,
            "page": page,
            "data": [b.model_dump() for b in books],
        })

    def load_last_search(self) -> List[CatalogBookModel]:
        data: Optional[Dict[str, Any]] = self._read(self.search_file)
        if not data:
            return []
        return [CatalogBookModel.model_validate(item) for item in data.get("data", [])]
