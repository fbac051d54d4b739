from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from posledger.domain.errors import ValidationError


@dataclass(frozen=True)
class PendingAction:
    token: str
    action: str
    target_id: int
    expires_at: datetime
    payload: dict = field(default_factory=dict)


class ConfirmationService:
    """Single-use tokens for destructive actions (delete, restock).

    ``request`` issues a token; the action only runs when the same token is
    handed back to ``confirm`` before it expires.
    """

    def __init__(self, ttl_seconds: int = 120, clock: Callable[[], datetime] | None = None):
        if ttl_seconds <= 0:
            raise ValidationError("Confirmation TTL must be > 0.")
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or datetime.now
        self._pending: dict[str, PendingAction] = {}

    def request(self, action: str, target_id: int, **payload) -> PendingAction:
        self._purge_expired()
        pending = PendingAction(
            token=secrets.token_urlsafe(16),
            action=action,
            target_id=int(target_id),
            expires_at=self.clock() + self.ttl,
            payload=dict(payload),
        )
        self._pending[pending.token] = pending
        return pending

    def confirm(self, token: str, action: str) -> PendingAction:
        pending = self._pending.get(token)
        if pending is None:
            raise ValidationError("Unknown or already used confirmation token.")
        if pending.action != action:
            raise ValidationError(f"Token was issued for '{pending.action}', not '{action}'.")
        del self._pending[token]
        if self.clock() >= pending.expires_at:
            raise ValidationError("Confirmation token expired.")
        return pending

    def cancel(self, token: str) -> bool:
        return self._pending.pop(token, None) is not None

    def _purge_expired(self) -> None:
        now = self.clock()
        for token in [t for t, p in self._pending.items() if now >= p.expires_at]:
            del self._pending[token]
