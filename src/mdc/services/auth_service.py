from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from mdc.domain.errors import AuthorizationError, ValidationError
from mdc.domain.models import Client, ClientStatus, UserRole
from mdc.repositories.contracts import IdentityProvider
from mdc.services.client_service import ClientService, check_self_service_role

log = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str
    role: UserRole
    profile: Optional[Client] = None


def _user_of(session: dict) -> dict:
    user = session.get("user") if isinstance(session.get("user"), dict) else session
    return user if isinstance(user, dict) else {}


class AuthService:
    """Session handling; passwords only ever travel to the identity provider."""

    def __init__(self, identity: IdentityProvider, clients: ClientService):
        self.identity = identity
        self.clients = clients

    def role_for(self, user_id: str = "", email: str = "") -> UserRole:
        profile = self._profile(user_id, email)
        return profile.role if profile else UserRole.CLIENT

    def _profile(self, user_id: str, email: str) -> Optional[Client]:
        if user_id:
            found = self.clients.repo.get(user_id)
            if found is not None:
                return found
        return self.clients.by_email(email) if email else None

    def _current(self, user: dict) -> CurrentUser:
        uid = str(user.get("id") or "")
        email = str(user.get("email") or "")
        profile = self._profile(uid, email)
        return CurrentUser(id=uid, email=email, role=profile.role if profile else UserRole.CLIENT, profile=profile)

    def sign_in(self, email: str, password: str) -> CurrentUser:
        email = (email or "").strip().lower()
        if not email or not password:
            raise ValidationError("Email and password are required.")
        session = self.identity.sign_in(email, password)
        current = self._current(_user_of(session))
        if current.profile is not None and current.profile.status is ClientStatus.PENDING:
            self.identity.sign_out()
            raise AuthorizationError("Your account is waiting for approval.")
        log.info("signed_in user=%s role=%s", current.id, current.role.value)
        return current

    def sign_up(self, email: str, password: str, profile: Client) -> Client:
        """Create the identity and a pending client profile linked to it."""
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        check_self_service_role(profile.role)
        email = (email or "").strip().lower()
        session = self.identity.sign_up(email, password, {"name": profile.name, "role": profile.role.value})
        user_id = str(_user_of(session).get("id") or "")
        return self.clients.register(replace(profile, id=user_id or profile.id, email=email))

    def change_password(self, new_password: str) -> None:
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        self.identity.update_user({"password": new_password})
        log.info("password_changed")

    def sign_out(self) -> None:
        self.identity.sign_out()
        log.info("signed_out")

    def current_user(self) -> Optional[CurrentUser]:
        user = self.identity.get_current_user()
        if not user:
            return None
        return self._current(user)
