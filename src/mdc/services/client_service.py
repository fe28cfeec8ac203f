from __future__ import annotations

import logging
from dataclasses import fields, replace
from datetime import datetime
from typing import Iterable, Optional

from mdc.config import BusinessRules
from mdc.domain.errors import NotFoundError, ValidationError
from mdc.domain.models import Client, ClientStatus, PetDetails, UserRole, new_id

log = logging.getLogger(__name__)

# roles a visitor may request when registering; admins are added by an admin
SELF_SERVICE_ROLES = (UserRole.CLIENT, UserRole.DISTRIBUTOR)


def check_self_service_role(role: UserRole) -> None:
    if role not in SELF_SERVICE_ROLES:
        raise ValidationError("Registration is open to clients and distributors only.")


class ClientService:
    def __init__(self, repo, rules: BusinessRules | None = None):
        self.repo = repo
        self.rules = rules or BusinessRules()

    def _validate(self, client: Client) -> Client:
        name = (client.name or "").strip()
        email = (client.email or "").strip().lower()
        if not name or not email:
            raise ValidationError("Name and email are required.")
        if "@" not in email:
            raise ValidationError("Invalid email address.")
        pets = tuple(client.pets) if client.role is UserRole.CLIENT else ()
        return replace(client, name=name, email=email, pets=pets)

    def _require_unique_email(self, email: str, own_id: str = "") -> None:
        if any(c.email == email and c.id != own_id for c in self.repo.find("email", email)):
            raise ValidationError("A client with this email already exists.")

    def _new(self, client: Client, status: ClientStatus) -> Client:
        client = self._validate(client)
        self._require_unique_email(client.email)
        return replace(
            client,
            id=client.id or new_id(),
            status=status,
            created_at=client.created_at or datetime.now().isoformat(timespec="seconds"),
        )

    def register(self, client: Client) -> Client:
        """Self-registration: stored as a pending request until an admin approves it."""
        check_self_service_role(client.role)
        if client.role is UserRole.CLIENT and len(client.pets) > self.rules.max_pets_per_registration:
            raise ValidationError(f"At most {self.rules.max_pets_per_registration} pets per registration.")
        saved = self.repo.add(self._new(client, ClientStatus.PENDING))
        log.info("registration_received id=%s role=%s", saved.id, saved.role.value)
        return saved

    def add_client(self, client: Client) -> Client:
        saved = self.repo.add(self._new(client, ClientStatus.APPROVED))
        log.info("client_added id=%s role=%s", saved.id, saved.role.value)
        return saved

    def _require(self, client_id: str) -> Client:
        client = self.repo.get(client_id)
        if client is None:
            raise NotFoundError("Client not found.")
        return client

    def approve(self, client_id: str) -> Client:
        self._require(client_id)
        approved = self.repo.update(client_id, status=ClientStatus.APPROVED)
        log.info("registration_approved id=%s", client_id)
        return approved

    def reject(self, client_id: str) -> None:
        client = self._require(client_id)
        if client.status is not ClientStatus.PENDING:
            raise ValidationError("Only pending registrations can be rejected.")
        self.repo.delete(client_id)
        log.info("registration_rejected id=%s", client_id)

    def update_profile(self, client_id: str, **changes) -> Client:
        current = self._require(client_id)
        updated = self._validate(replace(current, **changes))
        if updated.email != current.email:
            self._require_unique_email(updated.email, client_id)
        stored = {f.name: getattr(updated, f.name) for f in fields(Client) if f.name != "id"}
        return self.repo.update(client_id, **stored)

    def add_pet(self, client_id: str, pet: PetDetails) -> Client:
        current = self._require(client_id)
        return self.update_profile(client_id, pets=tuple(current.pets) + (pet,))

    def delete_client(self, client_id: str) -> None:
        self._require(client_id)
        self.repo.delete(client_id)

    def list_clients(self, status: Optional[ClientStatus] = ClientStatus.APPROVED) -> list[Client]:
        clients = self.repo.get_all()
        return [c for c in clients if status is None or c.status is status]

    def pending(self) -> list[Client]:
        return self.list_clients(ClientStatus.PENDING)

    def by_email(self, email: str) -> Optional[Client]:
        email = (email or "").strip().lower()
        found = [c for c in self.repo.find("email", email) if c.email.lower() == email]
        return found[0] if found else None

    def search(self, text: str, clients: Iterable[Client] | None = None) -> list[Client]:
        q = (text or "").strip().lower()
        pool = self.list_clients() if clients is None else list(clients)
        return [
            c for c in pool
            if q in c.name.lower() or q in c.email.lower() or q in (c.business_name or "").lower()
        ]
