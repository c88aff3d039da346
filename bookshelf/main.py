import subprocess
import sys
from dataclasses import dataclass
from typing import NoReturn, Optional

import typer

from bookshelf.book import READING_STATUSES
from bookshelf.client import AuthSession, BookshelfClient, LibraryClient
from bookshelf.config import configure_logging, settings
from bookshelf.errors import BookshelfError
from bookshelf.session import SessionStore
from bookshelf.utils.ui_helpers import (
    count_by_status,
    print_book,
    print_library,
    print_search_results,
    print_user,
    set_output_mode,
)

APP_NAME = "Bookshelf CLI"

app = typer.Typer(help=APP_NAME, no_args_is_help=True)


def build_client() -> BookshelfClient:
    return BookshelfClient(settings.base_url)


@dataclass
class CliContext:
    """Everything a command needs, created once per invocation."""

    store: SessionStore
    client: BookshelfClient
    session: Optional[AuthSession]

    def library(self) -> LibraryClient:
        if self.session is None:
            print("You are not logged in.")
            raise typer.Exit(code=1)
        return self.client.authenticated(self.session)

    def sign_in(self, session: AuthSession) -> None:
        self.store.save_session(session)
        self.session = session

    def sign_out(self) -> None:
        self.store.clear()
        self.session = None


def _fail(error: BookshelfError) -> NoReturn:
    print(f"Error: {error.message}")
    raise typer.Exit(code=1)


def _normalize_status(raw: str) -> str:
    for status in READING_STATUSES:
        if raw.strip().lower() == status.lower():
            return status
    print('Error: Invalid status. Must be "Want to Read", "Reading", or "Completed"')
    raise typer.Exit(code=1)


@app.callback()
def _global_options(
    ctx: typer.Context,
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Output format: plain, json or rich"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Search Google Books and keep track of your reading."""
    configure_logging("DEBUG" if verbose else "WARNING")
    if output:
        set_output_mode(output)
    store = SessionStore(settings.home_dir)
    client = build_client()
    ctx.call_on_close(client.close)
    ctx.obj = CliContext(store=store, client=client, session=store.load_session())


@app.command("register")
def cli_register(
    ctx: typer.Context,
    username: str = typer.Argument(..., help="Username"),
    email: str = typer.Argument(..., help="Email address"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True, help="Password"),
):
    """Create an account and sign in."""
    cli: CliContext = ctx.obj
    try:
        session = cli.client.register(username, email, password)
    except BookshelfError as e:
        _fail(e)
    cli.sign_in(session)
    print(f"Welcome, {session.user.username}! You are now logged in.")


@app.command("login")
def cli_login(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="Email address"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True, help="Password"),
):
    """Sign in with email and password."""
    cli: CliContext = ctx.obj
    try:
        session = cli.client.login(email, password)
    except BookshelfError as e:
        _fail(e)
    cli.sign_in(session)
    print(f"Logged in as {session.user.username}.")


@app.command("logout")
def cli_logout(ctx: typer.Context):
    """Forget the stored session."""
    cli: CliContext = ctx.obj
    cli.sign_out()
    print("Logged out.")


@app.command("whoami")
def cli_whoami(ctx: typer.Context):
    """Show the signed-in account."""
    cli: CliContext = ctx.obj
    library = cli.library()
    try:
        user = library.me()
    except BookshelfError as e:
        _fail(e)
    print_user(user)


@app.command("search")
def cli_search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Search term"),
    page: int = typer.Option(1, "--page", help="Result page (10 books per page)"),
    free_only: bool = typer.Option(False, "--free-only", help="Only free ebooks"),
    ebook_filter: Optional[str] = typer.Option(
        None, "--filter", help="partial, full, free-ebooks, paid-ebooks or ebooks"
    ),
    print_type: Optional[str] = typer.Option(None, "--print-type", help="all, books or magazines"),
):
    """Search the Google Books catalog."""
    cli: CliContext = ctx.obj
    try:
        result = cli.client.search(
            query, page, free_only=free_only, ebook_filter=ebook_filter, print_type=print_type
        )
    except BookshelfError as e:
        _fail(e)
    cli.store.save_last_search(query, page, result.data)
    print_search_results(result)


@app.command("save")
def cli_save(
    ctx: typer.Context,
    index: int = typer.Argument(..., help="Result number from the last search"),
):
    """Save a result of the last search to your library."""
    cli: CliContext = ctx.obj
    library = cli.library()
    results = cli.store.load_last_search()
    if not 1 <= index <= len(results):
        print(f"No search result #{index}. Run `bookshelf search` first.")
        raise typer.Exit(code=1)
    try:
        book = library.save_book(results[index - 1])
    except BookshelfError as e:
        _fail(e)
    print(f"Saved: {book.title} (id {book.id}, {book.status})")


@app.command("library")
def cli_library(
    ctx: typer.Context,
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Want to Read, Reading or Completed"),
):
    """List the books in your library."""
    cli: CliContext = ctx.obj
    library = cli.library()
    wanted = _normalize_status(status) if status else None
    try:
        books = library.list_books()
    except BookshelfError as e:
        _fail(e)
    shown = [b for b in books if b.status == wanted] if wanted else books
    print_library(shown, count_by_status(books), wanted)


@app.command("status")
def cli_status(
    ctx: typer.Context,
    book_id: int = typer.Argument(..., help="Book id from `bookshelf library`"),
    status: str = typer.Argument(..., help="Want to Read, Reading or Completed"),
):
    """Change the reading status of a saved book."""
    cli: CliContext = ctx.obj
    library = cli.library()
    try:
        book = library.update_book(book_id, status=_normalize_status(status))
    except BookshelfError as e:
        _fail(e)
    print_book(book, "Status updated")


@app.command("review")
def cli_review(
    ctx: typer.Context,
    book_id: int = typer.Argument(..., help="Book id from `bookshelf library`"),
    text: str = typer.Argument(..., help="Your review (empty string clears it)"),
):
    """Write or replace the personal review of a saved book."""
    cli: CliContext = ctx.obj
    library = cli.library()
    try:
        book = library.update_book(book_id, personal_review=text)
    except BookshelfError as e:
        _fail(e)
    print_book(book, "Review saved")


@app.command("remove")
def cli_remove(
    ctx: typer.Context,
    book_id: int = typer.Argument(..., help="Book id from `bookshelf library`"),
):
    """Remove a book from your library."""
    cli: CliContext = ctx.obj
    library = cli.library()
    try:
        book = library.delete_book(book_id)
    except BookshelfError as e:
        _fail(e)
    print(f"Removed: {book.title}")


@app.command("serve")
def cli_serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
):
    """Run the API server with uvicorn."""
    host = host or settings.api_host
    port = port or settings.api_port
    print(f"Starting Bookshelf API on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "bookshelf.api:app",
        "--host", host,
        "--port", str(port),
    ]
    if reload:
        args.append("--reload")
    subprocess.run(args)


if __name__ == "__main__":
    app()
