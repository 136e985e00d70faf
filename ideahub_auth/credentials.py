"""Username and password authentication."""
from __future__ import annotations

from ideahub_auth.errors import UsernameTakenError
from ideahub_auth.orchestrator import AttemptResult
from ideahub_auth.passwords import PasswordHasher
from ideahub_auth.sessions import SessionManager
from ideahub_auth.store import CredentialStore, DuplicateUserError
from ideahub_auth.validators import validate_registration
from ideahub_ext.errors import AuthError
from ideahub_models.session import SessionToken
from ideahub_models.user import User


class CredentialAuthenticator:
    def __init__(self, store: CredentialStore, hasher: PasswordHasher, sessions: SessionManager) -> None:
        self.store = store
        self.hasher = hasher
        self.sessions = sessions

    def register(self, username: str, password: str) -> User:
        username, password = validate_registration(username, password)
        password_hash = self.hasher.hash(password)
        try:
            return self.store.create_user(username=username, password_hash=password_hash)
        except DuplicateUserError:
            raise UsernameTakenError() from None

    def attempt(self, username: str, password: str) -> AttemptResult:
        """Check credentials without raising on a mismatch.

        Every path performs exactly one hash comparison so response time does
        not reveal whether the username exists or has a password.
        """
        user = self.store.find_user_by_username(username)
        if user is None or not user.has_password:
            self.hasher.burn(password)
            return AttemptResult(user_id=user.id if user is not None else None)
        if not self.hasher.compare(password, user.password_hash):
            return AttemptResult(user_id=user.id)
        return AttemptResult(user_id=user.id, session=self.sessions.issue(user.id))

    def login(self, username: str, password: str) -> SessionToken:
        result = self.attempt(username, password)
        if result.session is None:
            raise AuthError()
        return result.session
