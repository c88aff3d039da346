import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API settings
    api_host: str = field(default_factory=lambda: os.getenv("API_HOST", "127.0.0.1"))
    api_port: int = field(default_factory=lambda: int(os.getenv("API_PORT", "8000")))
    api_url: Optional[str] = field(default_factory=lambda: os.getenv("BOOKSHELF_API_URL"))
    client_url: str = field(default_factory=lambda: os.getenv("CLIENT_URL", "http://localhost:3000"))

    # Database settings
    database_file: str = field(default_factory=lambda: os.getenv("BOOKSHELF_DB_FILE", "bookshelf.db"))

    # Google Books API settings
    google_books_api_key: Optional[str] = field(default_factory=lambda: os.getenv("GOOGLE_BOOKS_API_KEY"))
    google_books_base_url: str = field(
        default_factory=lambda: os.getenv("GOOGLE_BOOKS_BASE_URL", "https://www.googleapis.com/books/v1")
    )
    google_books_timeout: float = field(default_factory=lambda: float(os.getenv("GOOGLE_BOOKS_TIMEOUT", "10")))

    # Security settings
    jwt_secret_key: str = field(
        default_factory=lambda: os.getenv("JWT_SECRET_KEY", "bookshelf-dev-secret-key-change-this-in-production")
    )
    jwt_algorithm: str = field(default_factory=lambda: os.getenv("JWT_ALGORITHM", "HS256"))
    jwt_expiration_minutes: int = field(
        default_factory=lambda: int(os.getenv("JWT_EXPIRATION_MINUTES", "43200"))  # 30 days
    )

    # Application settings
    app_name: str = field(default_factory=lambda: os.getenv("APP_NAME", "Bookshelf API"))
    app_version: str = field(default_factory=lambda: os.getenv("APP_VERSION", "1.0.0"))
    debug: bool = field(default_factory=lambda: _env_bool("DEBUG"))
    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # CLI state (session file, last search)
    home_dir: Path = field(
        default_factory=lambda: Path(os.getenv("BOOKSHELF_HOME", str(Path.home() / ".bookshelf")))
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def base_url(self) -> str:
        """Base URL the CLI client talks to."""
        if self.api_url:
            return self.api_url.rstrip("/")
        return f"http://{self.api_host}:{self.api_port}"


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the process-wide logging setup once."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


settings = Settings()
