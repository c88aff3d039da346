import os
import json
from typing import Dict, List, Optional
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from bookshelf.book import READING_STATUSES
from bookshelf.schemas import SavedBookModel, SearchResponse, UserModel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "BOOKSHELF_OUTPUT"

_console = Console()

STATUS_ICONS = {
    "All": "📚",
    "Want to Read": "📖",
    "Reading": "📘",
    "Completed": "✅",
}


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _authors(authors: List[str]) -> str:
    return ", ".join(authors)


def count_by_status(books: List[SavedBookModel]) -> Dict[str, int]:
    counts = {"All": len(books)}
    for status in READING_STATUSES:
        counts[status] = sum(1 for b in books if b.status == status)
    return counts


def print_search_results(result: SearchResponse) -> None:
    """Print one page of catalog results.
    - plain: numbered 'Title by Authors [catalogId]' lines and a page footer
    - json: the response payload
    - rich: table
    """
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps(result.model_dump(), ensure_ascii=False))
        return

    if not result.data:
        print("No books found.")
        return

    footer = f"Page {result.currentPage} of {max(result.totalPages, 1)} ({result.totalItems} results)"
    if mode == "rich":
        table = Table(title="🔍 Search results", show_lines=True, header_style="bold cyan")
        table.add_column("#", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Authors", style="white")
        table.add_column("Catalog ID", style="dim")
        for i, b in enumerate(result.data, 1):
            title = f"{b.title}: {b.subtitle}" if b.subtitle else b.title
            table.add_row(str(i), title, _authors(b.authors), b.catalogId)
        _console.print(table)
        _console.print(f"[dim]{footer}[/]")
    else:
        for i, b in enumerate(result.data, 1):
            print(f"{i}. {b.title} by {_authors(b.authors)} [{b.catalogId}]")
        print(footer)


def print_library(books: List[SavedBookModel], counts: Dict[str, int], status: Optional[str] = None) -> None:
    """Print the personal library, optionally narrowed to one status."""
    mode = get_output_mode()

    if mode == "json":
        payload = {"counts": counts, "data": [b.model_dump() for b in books]}
        print(json.dumps(payload, ensure_ascii=False))
        return

    summary = " | ".join(f"{name}: {counts.get(name, 0)}" for name in ("All",) + READING_STATUSES)

    if not books:
        if status:
            print(f'You don\'t have any books with status "{status}" yet.')
        else:
            print("No books in your library.")
        print(summary)
        return

    if mode == "rich":
        table = Table(title="📚 My Library", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Authors", style="white")
        table.add_column("Status", style="green")
        table.add_column("Review", style="dim")
        for b in books:
            table.add_row(str(b.id), b.title, _authors(b.authors),
                          f"{STATUS_ICONS.get(b.status, '📚')} {b.status}", b.personalReview)
        _console.print(table)
        _console.print(Panel.fit(summary, title="📊 Status", border_style="blue"))
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {_authors(b.authors)} [{b.status}]")
        print(summary)


def print_book(book: SavedBookModel, heading: str) -> None:
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps(book.model_dump(), ensure_ascii=False))
    elif mode == "rich":
        content = (
            f"[bold]Title:[/] {book.title}\n"
            f"[bold]Authors:[/] {_authors(book.authors)}\n"
            f"[bold]Status:[/] {STATUS_ICONS.get(book.status, '📚')} {book.status}\n"
            f"[bold]Review:[/] {book.personalReview or '-'}"
        )
        _console.print(Panel.fit(content, title=heading, border_style="green"))
    else:
        print(heading)
        print(f"ID: {book.id}")
        print(f"Title: {book.title}")
        print(f"Authors: {_authors(book.authors)}")
        print(f"Status: {book.status}")
        print(f"Review: {book.personalReview}")


def print_user(user: UserModel) -> None:
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps(user.model_dump(), ensure_ascii=False))
    elif mode == "rich":
        _console.print(Panel.fit(f"[bold]{user.username}[/] <{user.email}>", title="👤 Account", border_style="blue"))
    else:
        print(f"{user.username} <{user.email}>")
