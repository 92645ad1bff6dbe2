from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from vehiscan.core.bruteforce import normalize_identity
from vehiscan.core.exceptions import (
    AuthenticationFailed, EmailAlreadyRegistered, StorageUnavailable
)
from vehiscan.core.security import hash_password, verify_password
from vehiscan.db.models import User
from vehiscan.services.documents import new_document_id

USER_ID_LENGTH = 28


class SqlAuthProvider:
    """E-mail/password accounts stored in the ``users`` table."""

    def __init__(self, session_factory: sessionmaker, admin_emails: set[str] | None = None):
        self._session_factory = session_factory
        self.admin_emails = admin_emails or set()

    def sign_up(
        self,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        code: str = "",
    ) -> User:
        email = normalize_identity(email)
        user = User(
            id=new_document_id(USER_ID_LENGTH),
            email=email,
            password_hash=hash_password(password),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            code=code.strip(),
            is_admin=email in self.admin_emails,
        )
        try:
            with self._session_factory() as db:
                if db.scalar(select(User).where(User.email == email)):
                    raise EmailAlreadyRegistered("Email already in use.")
                db.add(user)
                db.commit()
        except IntegrityError as e:
            raise EmailAlreadyRegistered("Email already in use.") from e
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Sign-up failed: {e}") from e
        return user

    def sign_in(self, email: str, password: str) -> User:
        user = self.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationFailed()
        return user

    def get_by_email(self, email: str) -> User | None:
        try:
            with self._session_factory() as db:
                return db.scalar(select(User).where(User.email == normalize_identity(email)))
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"User lookup failed: {e}") from e

    def get_user(self, user_id: str) -> User | None:
        try:
            with self._session_factory() as db:
                return db.get(User, user_id)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"User lookup failed: {e}") from e

    def link_vehicle(self, user_id: str, chassis_number: str) -> User:
        """Remember ``chassis_number`` on the user; linking twice is a no-op."""
        try:
            with self._session_factory() as db:
                user = db.get(User, user_id)
                if user is None:
                    raise AuthenticationFailed("User not found")
                if chassis_number not in user.added_vehicles:
                    # reassign so the JSON column is flagged dirty
                    user.added_vehicles = [*user.added_vehicles, chassis_number]
                    db.commit()
                return user
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Vehicle link failed: {e}") from e
