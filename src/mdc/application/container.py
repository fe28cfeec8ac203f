from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from mdc.config import AppPaths, BusinessRules, RemoteSettings, get_business_rules, get_remote_settings
from mdc.domain.catalog import DEFAULT_CATALOG
from mdc.repositories.collections import CollectionRepository
from mdc.repositories.local_cache import SqliteLocalCache
from mdc.repositories.mappers import (
    CLIENT_MAPPER,
    EXPENSE_MAPPER,
    INVENTORY_MAPPER,
    INVOICE_MAPPER,
    MESSAGE_MAPPER,
    NOTIFICATION_MAPPER,
    ORDER_MAPPER,
)
from mdc.repositories.supabase_rest import SupabaseAuthClient, SupabaseConnection, SupabaseRestStore, SupabaseStorage
from mdc.repositories.unit_of_work import CommandLog
from mdc.services import (
    AuthService,
    ChangeBus,
    CheckoutService,
    ClientService,
    ExpenseService,
    InventoryService,
    InvoiceService,
    MessagingService,
    NotificationService,
    OrderService,
    PricingService,
    ReportingService,
    StorageService,
    TaxService,
)


@dataclass(frozen=True)
class AppContainer:
    cache: SqliteLocalCache
    bus: ChangeBus
    command_log: CommandLog
    pricing: PricingService
    tax: TaxService
    orders: OrderService
    invoices: InvoiceService
    inventory: InventoryService
    expenses: ExpenseService
    clients: ClientService
    notifications: NotificationService
    messages: MessagingService
    reporting: ReportingService
    checkout: CheckoutService
    # identity and blob storage exist only with a configured remote
    auth: Optional[AuthService] = None
    storage: Optional[StorageService] = None


def build_container(
    paths: AppPaths,
    settings: RemoteSettings | None = None,
    rules: BusinessRules | None = None,
    remote=None,
) -> AppContainer:
    """Wire the app. ``remote`` overrides the store built from ``settings`` (tests pass fakes)."""
    settings = settings or get_remote_settings()
    rules = rules or get_business_rules()

    cache = SqliteLocalCache(paths.cache_db_path)
    cache.init_db()
    bus = ChangeBus()

    identity = blobs = None
    if remote is None and settings.enabled:
        connection = SupabaseConnection(settings.url, settings.api_key, settings.timeout_seconds)
        remote = SupabaseRestStore(connection)
        identity = SupabaseAuthClient(connection)
        blobs = SupabaseStorage(connection)

    def collection(mapper):
        return CollectionRepository(mapper, remote, cache, bus)

    command_log = CommandLog(paths.cache_db_path)
    pricing = PricingService(DEFAULT_CATALOG, rules=rules)
    invoices_repo = collection(INVOICE_MAPPER)
    expenses_repo = collection(EXPENSE_MAPPER)

    orders = OrderService(collection(ORDER_MAPPER))
    inventory = InventoryService(collection(INVENTORY_MAPPER), rules)
    clients = ClientService(collection(CLIENT_MAPPER), rules)
    notifications = NotificationService(collection(NOTIFICATION_MAPPER), bus)

    return AppContainer(
        cache=cache,
        bus=bus,
        command_log=command_log,
        pricing=pricing,
        tax=TaxService(rules),
        orders=orders,
        invoices=InvoiceService(invoices_repo, pricing, rules),
        inventory=inventory,
        expenses=ExpenseService(expenses_repo),
        clients=clients,
        notifications=notifications,
        messages=MessagingService(collection(MESSAGE_MAPPER), bus),
        reporting=ReportingService(invoices_repo, expenses_repo, DEFAULT_CATALOG, rules),
        checkout=CheckoutService(pricing, orders, invoices_repo, inventory, notifications, command_log),
        auth=AuthService(identity, clients) if identity is not None else None,
        storage=StorageService(blobs) if blobs is not None else None,
    )
