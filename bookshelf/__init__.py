"""Bookshelf - Core Application Package

This package contains the core application modules including:
- API endpoints (api.py)
- Saved-book repository (library.py)
- Accounts and session tokens (auth.py)
- Typed API client and CLI interface (client.py, main.py)
- Data models (book.py, schemas.py)
- Database layer (database.py)
"""

__version__ = "1.0.0"
