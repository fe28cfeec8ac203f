from __future__ import annotations

from typing import Any, Callable, Optional, Protocol


class RemoteStore(Protocol):
    def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> list[dict]: ...
    def insert(self, table: str, row: dict) -> dict: ...
    def update(self, table: str, row_id: str, fields: dict) -> dict: ...
    def upsert(self, table: str, row: dict) -> dict: ...
    def delete(self, table: str, row_id: str) -> None: ...


class LocalCache(Protocol):
    def get_json(self, key: str, default: Any = None) -> Any: ...
    def set_json(self, key: str, value: Any) -> None: ...
    def delete(self, key: str) -> None: ...


class IdentityProvider(Protocol):
    def get_current_user(self) -> Optional[dict]: ...
    def sign_in(self, email: str, password: str) -> dict: ...
    def sign_up(self, email: str, password: str, profile: dict) -> dict: ...
    def sign_out(self) -> None: ...
    def update_user(self, fields: dict) -> dict: ...


class BlobStorage(Protocol):
    def upload(self, bucket: str, path: str, data: bytes, content_type: str = "application/octet-stream") -> str: ...
    def get_public_url(self, bucket: str, path: str) -> str: ...


class RealtimeFeed(Protocol):
    def subscribe_inserts(self, table: str, column: str, value: Any, callback: Callable[[dict], None]) -> Callable[[], None]: ...


class PaymentGateway(Protocol):
    def tokenize(self, amount: Any, billing_name: str) -> str:
        """Returns a payment-method id; raises PaymentError with a user-facing message."""
        ...
