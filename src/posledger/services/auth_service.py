from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from posledger.domain.errors import AuthorizationError
from posledger.domain.models import Session, User
from posledger.repositories.ledger_repo import LedgerRepository

log = logging.getLogger(__name__)

ROLES = ("owner", "employee")

PERMISSIONS: dict[str, set[str]] = {
    "manage_products": {"owner"},
    "record_sale": {"owner", "employee"},
    "sync_sales": {"owner", "employee"},
    "delete_sale": {"owner"},
    "view_reports": {"owner"},
    "export_data": {"owner"},
    "manage_users": {"owner"},
}


@dataclass(frozen=True)
class CredentialPolicy:
    min_secret_length: int = 8
    hash_rounds: int = 200_000


def _validate_secret_strength(secret: str, *, min_len: int) -> None:
    if len(secret) < min_len:
        raise AuthorizationError(f"Password must have at least {min_len} characters.")
    if not re.search(r"[A-Za-z]", secret):
        raise AuthorizationError("Password must include at least one letter.")
    if not re.search(r"\d", secret):
        raise AuthorizationError("Password must include at least one number.")


def hash_secret(secret: str, *, rounds: int = 200_000, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), bytes.fromhex(salt), rounds).hex()
    return f"pbkdf2_sha256${rounds}${salt}${digest}"


def verify_secret(stored: str, provided: str) -> bool:
    if not stored.startswith("pbkdf2_sha256$"):
        return False
    try:
        _algo, rounds_s, salt, digest = stored.split("$", 3)
        candidate = hashlib.pbkdf2_hmac(
            "sha256",
            provided.encode("utf-8"),
            bytes.fromhex(salt),
            int(rounds_s),
        ).hex()
    except ValueError:
        return False
    return hmac.compare_digest(candidate, digest)


class AuthService:
    def __init__(
        self,
        repo: LedgerRepository,
        policy: CredentialPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.repo = repo
        self.policy = policy or CredentialPolicy()
        self.clock = clock or datetime.now

    def list_users(self) -> list[User]:
        return self.repo.load_users()

    def _find_user(self, username: str) -> Optional[User]:
        for u in self.repo.load_users():
            if u.username == username:
                return u
        return None

    def _store_user(self, username: str, name: str, secret: str, role: str) -> User:
        if role not in ROLES:
            raise AuthorizationError(f"Unknown role '{role}'.")
        _validate_secret_strength(secret, min_len=self.policy.min_secret_length)
        users = self.repo.load_users()
        if any(u.username == username for u in users):
            raise AuthorizationError(f"User '{username}' already exists.")
        user = User(
            username=username,
            name=name or username,
            role=role,
            secret_hash=hash_secret(secret, rounds=self.policy.hash_rounds),
        )
        self.repo.save_users([*users, user])
        log.info("user_created username=%s role=%s", username, role)
        return user

    def ensure_bootstrap_owner(self, username: str, secret: str, name: str | None = None) -> Optional[User]:
        """Creates the first owner when the credential store is empty."""
        if self.repo.load_users():
            return None
        return self._store_user(username.strip(), (name or username).strip(), secret.strip(), "owner")

    def create_user(self, actor: User | Session, username: str, secret: str, role: str, name: str | None = None) -> User:
        self.require_action(actor, "manage_users")
        user = username.strip()
        if not user:
            raise AuthorizationError("Username is required.")
        return self._store_user(user, (name or user).strip(), secret.strip(), role.strip().lower())

    def login(self, username: str, secret: str) -> Session:
        username_clean = username.strip()
        if not username_clean:
            raise AuthorizationError("Username is required.")

        user = self._find_user(username_clean)
        if not user or not verify_secret(user.secret_hash, secret.strip()):
            log.warning("login_failed username=%s", username_clean)
            raise AuthorizationError("Invalid username or password.")

        session = Session(
            token=secrets.token_urlsafe(24),
            username=user.username,
            name=user.name,
            role=user.role,
            issued_at=self.clock().replace(microsecond=0).isoformat(),
        )
        self.repo.save_session(session)
        log.info("login username=%s role=%s", user.username, user.role)
        return session

    def current_session(self) -> Optional[Session]:
        return self.repo.load_session()

    def logout(self) -> None:
        self.repo.clear_session()

    def can(self, user: User | Session, action: str) -> bool:
        allowed_roles = PERMISSIONS.get(action)
        if not allowed_roles:
            return False
        return user.role in allowed_roles

    def require_action(self, user: User | Session, action: str) -> None:
        if not self.can(user, action):
            raise AuthorizationError(f"Role '{user.role}' is not allowed to perform '{action}'.")
