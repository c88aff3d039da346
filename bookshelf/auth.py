"""Accounts and session tokens.

``CredentialStore`` owns the ``users`` table (registration, login, lookup);
``TokenIssuer`` signs and verifies the stateless JWT session tokens.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

import bookshelf.database as database
from bookshelf.config import settings
from bookshelf.database import get_db_connection, initialize_database
from bookshelf.errors import AuthError, ConflictError, NotFoundError, ValidationError
from bookshelf.utils.validators import AccountValidator, TextValidator

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
EMAIL_TAKEN = "Email already registered"
USERNAME_TAKEN = "Username already taken"

# Verified against when the email is unknown so both login failures cost the same
_DUMMY_HASH = generate_password_hash("bookshelf-timing-guard")


@dataclass
class User:
    id: int
    username: str
    email: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username, "email": self.email}


@dataclass
class AuthResult:
    user: User
    token: str

    def to_dict(self) -> Dict[str, Any]:
        return {**self.user.to_dict(), "token": self.token}


class TokenIssuer:
    """Issues and verifies signed, time-bounded session tokens."""

    def __init__(self, secret_key: Optional[str] = None, algorithm: Optional[str] = None,
                 expiration_minutes: Optional[int] = None) -> None:
        self.secret_key = secret_key or settings.jwt_secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        if expiration_minutes is None:
            expiration_minutes = settings.jwt_expiration_minutes
        self.expiration = timedelta(minutes=expiration_minutes)

    def issue(self, user_id: int, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + self.expiration,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: Optional[str]) -> int:
        """Return the user id embedded in a valid token."""
        if not token:
            raise AuthError("No token provided. Authorization denied.", reason=AuthError.MISSING)
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthError("Token expired. Please login again.", reason=AuthError.EXPIRED)
        except jwt.InvalidTokenError as e:
            logger.warning(f"Rejected session token: {e}")
            raise AuthError("Invalid token. Authorization denied.", reason=AuthError.INVALID)

        try:
            return int(payload["sub"])
        except (TypeError, ValueError):
            raise AuthError("Invalid token. Authorization denied.", reason=AuthError.INVALID)


class CredentialStore:
    """Registers users, checks passwords and resolves tokens to users."""

    def __init__(self, db_file: Optional[str] = None, tokens: Optional[TokenIssuer] = None) -> None:
        self.db_file = db_file or database.DATABASE_FILE
        self.tokens = tokens or TokenIssuer()
        initialize_database(self.db_file)

    def _connect(self) -> sqlite3.Connection:
        return get_db_connection(self.db_file)

    def register(self, username: Optional[str], email: Optional[str], password: Optional[str]) -> AuthResult:
        if TextValidator.is_blank(username) or TextValidator.is_blank(email) or not password:
            raise ValidationError("Please provide username, email, and password")

        username = AccountValidator.normalize_username(username)
        email = AccountValidator.normalize_email(email)
        for problem in (
            AccountValidator.check_username(username),
            AccountValidator.check_email(email),
            AccountValidator.check_password(password),
        ):
            if problem:
                raise ValidationError(problem)

        conn = self._connect()
        try:
            existing = conn.execute(
                "SELECT username, email FROM users WHERE email = ? OR username = ?",
                (email, username),
            ).fetchall()
            for row in existing:
                if row["email"] == email:
                    raise ConflictError(EMAIL_TAKEN, status_code=400)
            if existing:
                raise ConflictError(USERNAME_TAKEN, status_code=400)

            try:
                cursor = conn.execute(
                    "INSERT INTO users (username, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                    (username, email, generate_password_hash(password), datetime.now(timezone.utc).isoformat()),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                # Lost a race with a concurrent registration
                conn.rollback()
                if "users.email" in str(e):
                    raise ConflictError(EMAIL_TAKEN, status_code=400) from e
                raise ConflictError(USERNAME_TAKEN, status_code=400) from e
            user = User(id=cursor.lastrowid, username=username, email=email)
        finally:
            conn.close()

        logger.info(f"Registered user id={user.id} username={user.username}")
        return AuthResult(user=user, token=self.tokens.issue(user.id))

    def login(self, email: Optional[str], password: Optional[str]) -> AuthResult:
        if TextValidator.is_blank(email) or not password:
            raise ValidationError("Please provide email and password")

        email = AccountValidator.normalize_email(email)
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT id, username, email, password_hash FROM users WHERE email = ?",
                (email,),
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            check_password_hash(_DUMMY_HASH, password)
            logger.warning("Failed login attempt")
            raise AuthError(INVALID_CREDENTIALS, reason=AuthError.CREDENTIALS)
        if not check_password_hash(row["password_hash"], password):
            logger.warning("Failed login attempt")
            raise AuthError(INVALID_CREDENTIALS, reason=AuthError.CREDENTIALS)

        user = User(id=row["id"], username=row["username"], email=row["email"])
        return AuthResult(user=user, token=self.tokens.issue(user.id))

    def get_user(self, user_id: int) -> User:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT id, username, email FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFoundError("User not found")
        return User(id=row["id"], username=row["username"], email=row["email"])

    def verify_token(self, token: Optional[str]) -> User:
        """Resolve a session token to its user."""
        return self.get_user(self.tokens.verify(token))
