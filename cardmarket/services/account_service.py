"""Account registration and password change.

Rate limiting happens in the routes before these methods run; the service
only enforces account rules and raises ``AppError`` subclasses that the
global exception handlers turn into HTTP responses.
"""

from __future__ import annotations

import logging

from cardmarket.adapters.users.base import AbstractUserRepository, User
from cardmarket.core.errors import NotFoundAppError, ValidationAppError
from cardmarket.core.logging import hash_for_log
from cardmarket.services.password_service import (
    PasswordValidationResult,
    hash_password,
    password_requirements_text,
    password_strength_label,
    validate_password,
    verify_password,
)

logger = logging.getLogger(__name__)


def _weak_password_error(message: str, validation: PasswordValidationResult) -> ValidationAppError:
    return ValidationAppError(
        code="weak_password",
        message=message,
        details={
            "password_errors": validation.errors,
            "password_strength": password_strength_label(validation.score),
            "password_requirements": password_requirements_text(),
        },
    )


class AccountService:
    """Creates accounts and rotates their passwords.

    Args:
        users: User persistence adapter.
        bcrypt_rounds: Cost factor for newly hashed passwords.
    """

    def __init__(self, users: AbstractUserRepository, *, bcrypt_rounds: int = 12) -> None:
        self._users = users
        self._bcrypt_rounds = bcrypt_rounds

    def register(
        self,
        *,
        email: str | None,
        password: str | None,
        name: str | None = None,
        username: str | None = None,
    ) -> User:
        """Create a new account.

        Raises:
            ValidationAppError: Missing credentials, weak password, or the
                email is already registered.
        """
        if not email or not password:
            raise ValidationAppError(
                code="missing_credentials",
                message="Email and password are required",
            )

        validation = validate_password(password)
        if not validation.is_valid:
            raise _weak_password_error("Password does not meet security requirements", validation)

        if self._users.get_by_email(email) is not None:
            raise ValidationAppError(code="user_exists", message="User already exists")

        try:
            user = self._users.create(
                email=email,
                password_hash=hash_password(password, self._bcrypt_rounds),
                name=name or None,
                username=username or None,
            )
        except ValueError as exc:
            # Lost a race with a concurrent registration for the same email
            raise ValidationAppError(code="user_exists", message="User already exists") from exc

        logger.info(
            "account.registered",
            extra={"user_id_hash": hash_for_log(user.id), "password_score": validation.score},
        )
        return user

    def change_password(
        self,
        *,
        user_id: str,
        current_password: str | None,
        new_password: str | None,
    ) -> User:
        """Replace the password of ``user_id`` after verifying the current one.

        Raises:
            ValidationAppError: Missing fields, wrong current password, reuse
                of the current password, or a weak new password.
            NotFoundAppError: The user does not exist.
        """
        if not current_password or not new_password:
            raise ValidationAppError(
                code="missing_passwords",
                message="Current password and new password are required",
            )

        user = self._users.get_by_id(user_id)
        if user is None or not user.password_hash:
            raise NotFoundAppError(
                code="user_not_found",
                message="User not found or no password set",
            )

        if not verify_password(current_password, user.password_hash):
            logger.warning(
                "account.password_change_rejected",
                extra={"user_id_hash": hash_for_log(user_id), "reason": "wrong_current_password"},
            )
            raise ValidationAppError(
                code="invalid_current_password",
                message="Current password is incorrect",
            )

        if verify_password(new_password, user.password_hash):
            raise ValidationAppError(
                code="password_unchanged",
                message="New password must be different from current password",
            )

        validation = validate_password(new_password)
        if not validation.is_valid:
            raise _weak_password_error("New password does not meet security requirements", validation)

        updated = self._users.update_password(
            user_id, hash_password(new_password, self._bcrypt_rounds)
        )
        logger.info("account.password_changed", extra={"user_id_hash": hash_for_log(user_id)})
        return updated
