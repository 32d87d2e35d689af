"""User repository interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """Stored marketplace account."""

    id: str
    email: str
    password_hash: str
    name: str | None
    username: str | None
    created_at: datetime
    updated_at: datetime


class AbstractUserRepository(ABC):
    """Interface for user persistence."""

    @abstractmethod
    def get_by_id(self, user_id: str) -> User | None:
        raise NotImplementedError

    @abstractmethod
    def get_by_email(self, email: str) -> User | None:
        raise NotImplementedError

    @abstractmethod
    def create(
        self,
        *,
        email: str,
        password_hash: str,
        name: str | None = None,
        username: str | None = None,
    ) -> User:
        """Persist a new user.

        Raises:
            ValueError: If a user with the same email already exists.
        """
        raise NotImplementedError

    @abstractmethod
    def update_password(self, user_id: str, password_hash: str) -> User:
        """Replace a user's password hash.

        Raises:
            KeyError: If the user does not exist.
        """
        raise NotImplementedError
