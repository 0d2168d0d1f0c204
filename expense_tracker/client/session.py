"""
Expense Client

One object wiring the API client, the query cache, the mutation engine and
the upload orchestrator together. This is what a UI holds on to.

Usage:
    async with create_client() as client:
        await client.login("alice", "secret")
        outcome = await client.add_expense("Coffee", 5)
        view = await client.load_expenses()
"""

from typing import Any, Optional

import httpx
import structlog

from expense_tracker.client.api import ExpenseApiClient
from expense_tracker.client.cache import QueryCache
from expense_tracker.client.keys import EXPENSES_KEY, expense_key
from expense_tracker.client.mutations import MutationEngine, MutationOutcome
from expense_tracker.client.upload import UploadOrchestrator, UploadOutcome
from expense_tracker.config import ClientSettings, get_settings
from expense_tracker.models.expense import ExpenseList, UploadFile, User


logger = structlog.get_logger(__name__)


class ExpenseClient:
    """Cached, optimistic access to the expenses API."""

    def __init__(
        self,
        api: ExpenseApiClient,
        serialize_mutations: bool = False,
        optimistic_patch: bool = False,
    ):
        self.api = api
        self.cache = QueryCache(
            self._fetch,
            stale_after_seconds=api.settings.stale_after_seconds,
        )
        self.mutations = MutationEngine(
            api,
            self.cache,
            serialize=serialize_mutations,
            optimistic_patch=optimistic_patch,
        )
        self.uploads = UploadOrchestrator(api, self.cache)

    async def _fetch(self, key: tuple) -> Any:
        """Resolve a query key to the API call that loads it."""
        if key == EXPENSES_KEY:
            return await self.api.list_expenses()
        if len(key) == 2 and key[0] == EXPENSES_KEY[0]:
            return await self.api.get_expense(key[1])
        raise ValueError(f"No fetcher for query key {key!r}")

    # =========================================================================
    # QUERIES
    # =========================================================================

    def expenses(self) -> Any:
        """The cached collection view, or PENDING while it loads."""
        return self.cache.read(EXPENSES_KEY)

    def expense(self, expense_id: int) -> Any:
        """The cached expense, or PENDING while it loads."""
        return self.cache.read(expense_key(expense_id))

    async def load_expenses(self) -> ExpenseList:
        return await self.cache.fetch(EXPENSES_KEY)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    async def add_expense(self, title: str, amount: int) -> MutationOutcome:
        return await self.mutations.create(title, amount)

    async def delete_expense(self, expense_id: int) -> MutationOutcome:
        return await self.mutations.delete(expense_id)

    async def update_expense(self, expense_id: int, **changes: Any) -> MutationOutcome:
        return await self.mutations.patch(expense_id, **changes)

    async def attach_receipt(self, expense_id: int, file: UploadFile) -> UploadOutcome:
        return await self.uploads.upload(expense_id, file)

    # =========================================================================
    # SESSION
    # =========================================================================

    async def login(self, username: str, password: str) -> User:
        user = await self.api.login(username, password)
        logger.info("client_logged_in", user=user.id)
        return user

    async def logout(self) -> None:
        await self.api.logout()

    async def me(self) -> User:
        return await self.api.me()

    async def aclose(self) -> None:
        await self.cache.drain()
        await self.api.aclose()

    async def __aenter__(self) -> "ExpenseClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def create_client(
    settings: Optional[ClientSettings] = None,
    http: Optional[httpx.AsyncClient] = None,
    transfer_http: Optional[httpx.AsyncClient] = None,
    optimistic_patch: bool = False,
) -> ExpenseClient:
    """
    Factory function to create a configured client.

    Args:
        settings: Client settings. Loaded from the environment if None.
        http: Client for API calls
        transfer_http: Client for direct object-store uploads
        optimistic_patch: Apply patches to the cached view before the server answers
    """
    settings = settings or get_settings().client
    api = ExpenseApiClient(settings=settings, http=http, transfer_http=transfer_http)
    return ExpenseClient(
        api,
        serialize_mutations=settings.serialize_mutations,
        optimistic_patch=optimistic_patch,
    )
