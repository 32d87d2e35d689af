"""In-memory user repository.

Thread-safe and process-local; state is lost on restart.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone

from cardmarket.adapters.users.base import AbstractUserRepository, User


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class InMemoryUserRepository(AbstractUserRepository):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users_by_id: dict[str, User] = {}
        self._ids_by_email: dict[str, str] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._users_by_id)

    def get_by_id(self, user_id: str) -> User | None:
        with self._lock:
            return self._users_by_id.get(user_id)

    def get_by_email(self, email: str) -> User | None:
        with self._lock:
            user_id = self._ids_by_email.get(_normalize_email(email))
            return self._users_by_id.get(user_id) if user_id else None

    def create(
        self,
        *,
        email: str,
        password_hash: str,
        name: str | None = None,
        username: str | None = None,
    ) -> User:
        key = _normalize_email(email)
        now = datetime.now(timezone.utc)
        with self._lock:
            if key in self._ids_by_email:
                raise ValueError("user with email already exists")
            user = User(
                id=uuid.uuid4().hex,
                email=email.strip(),
                password_hash=password_hash,
                name=name,
                username=username,
                created_at=now,
                updated_at=now,
            )
            self._users_by_id[user.id] = user
            self._ids_by_email[key] = user.id
            return user

    def update_password(self, user_id: str, password_hash: str) -> User:
        with self._lock:
            user = self._users_by_id.get(user_id)
            if user is None:
                raise KeyError(user_id)
            updated = replace(
                user,
                password_hash=password_hash,
                updated_at=datetime.now(timezone.utc),
            )
            self._users_by_id[user_id] = updated
            return updated
