"""
Mutation Engine

Optimistic create, delete and patch of expenses against the query cache.

Every mutation follows the same protocol:
1. Cancel any fetch in flight for the collection, so it cannot overwrite
   the optimistic view
2. Snapshot the collection view
3. Apply the optimistic delta (only when a view is cached)
4. Call the API
5. On success, keep nothing from the optimistic view; the refetch in
   step 7 brings the server's version
6. On failure, restore the snapshot exactly and report a message
7. Always invalidate the collection, exactly once

`mutate` never raises for API or network failures; the outcome says what
happened.
"""

import asyncio
import itertools
from enum import Enum
from typing import Any, Optional

import structlog
from pydantic import BaseModel

from expense_tracker.client.api import ExpenseApiClient
from expense_tracker.client.cache import QueryCache
from expense_tracker.client.errors import ClientError
from expense_tracker.client.keys import EXPENSES_KEY, expense_key
from expense_tracker.models.expense import Expense, ExpenseList


logger = structlog.get_logger(__name__)


class MutationOperation(str, Enum):
    CREATE = "create"
    DELETE = "delete"
    PATCH = "patch"


DEFAULT_MESSAGES = {
    MutationOperation.CREATE: "Failed to add expense",
    MutationOperation.DELETE: "Failed to delete expense",
    MutationOperation.PATCH: "Failed to update expense",
}


class MutationOutcome(BaseModel):
    """Result of one mutation."""

    operation: MutationOperation
    ok: bool
    expense: Optional[Expense] = None
    message: Optional[str] = None
    error_kind: Optional[str] = None
    rolled_back: bool = False
    optimistic_id: Optional[int] = None


def failure_message(error: Exception, operation: MutationOperation) -> str:
    """User-facing message for a failed mutation."""
    if isinstance(error, ClientError):
        message = error.message
    else:
        message = str(error)
    return message or DEFAULT_MESSAGES[operation]


class MutationEngine:
    """
    Runs expense mutations with optimistic updates and rollback.

    Temporary ids of optimistic entries are negative and never repeat
    within one engine, so they cannot collide with server ids.
    """

    def __init__(
        self,
        api: ExpenseApiClient,
        cache: QueryCache,
        serialize: bool = False,
        optimistic_patch: bool = False,
    ):
        """
        Args:
            api: Client the mutations are sent through
            cache: Cache holding the collection view
            serialize: Run mutations one at a time per query key, so that
                       overlapping mutations cannot restore each other's
                       optimistic state
            optimistic_patch: Also apply title and amount changes to the
                              cached view before the server answers
        """
        self._api = api
        self._cache = cache
        self._serialize = serialize
        self._optimistic_patch = optimistic_patch
        self._temp_ids = itertools.count(-1, -1)
        self._locks: dict[tuple, asyncio.Lock] = {}

    def next_temp_id(self) -> int:
        return next(self._temp_ids)

    async def create(self, title: str, amount: int) -> MutationOutcome:
        return await self.mutate(MutationOperation.CREATE, {"title": title, "amount": amount})

    async def delete(self, expense_id: int) -> MutationOutcome:
        return await self.mutate(MutationOperation.DELETE, {"expense_id": expense_id})

    async def patch(self, expense_id: int, **changes: Any) -> MutationOutcome:
        return await self.mutate(
            MutationOperation.PATCH,
            {"expense_id": expense_id, "changes": changes},
        )

    async def mutate(self, operation: MutationOperation, payload: dict) -> MutationOutcome:
        """
        Run one mutation.

        Payloads:
            CREATE: {"title", "amount"}
            DELETE: {"expense_id"}
            PATCH:  {"expense_id", "changes"}
        """
        if not self._serialize:
            return await self._run(operation, payload)
        lock = self._locks.setdefault(EXPENSES_KEY, asyncio.Lock())
        async with lock:
            return await self._run(operation, payload)

    async def _run(self, operation: MutationOperation, payload: dict) -> MutationOutcome:
        self._cache.cancel(EXPENSES_KEY)
        snapshot: Optional[ExpenseList] = self._cache.get_data(EXPENSES_KEY)

        optimistic_id = None
        if snapshot is not None:
            view, optimistic_id = self._apply_delta(operation, payload, snapshot)
            if view is not None:
                self._cache.set_data(EXPENSES_KEY, view)

        try:
            expense = await self._dispatch(operation, payload)
        except asyncio.CancelledError:
            self._restore(snapshot)
            self._settle(operation, payload)
            raise
        except Exception as e:
            rolled_back = self._restore(snapshot)
            message = failure_message(e, operation)
            logger.warning(
                "mutation_failed",
                operation=operation.value,
                error_kind=type(e).__name__,
                message=message,
                rolled_back=rolled_back,
            )
            outcome = MutationOutcome(
                operation=operation,
                ok=False,
                message=message,
                error_kind=type(e).__name__,
                rolled_back=rolled_back,
                optimistic_id=optimistic_id,
            )
        else:
            logger.info("mutation_succeeded", operation=operation.value, expense_id=expense.id)
            outcome = MutationOutcome(
                operation=operation,
                ok=True,
                expense=expense,
                optimistic_id=optimistic_id,
            )

        self._settle(operation, payload)
        return outcome

    def _apply_delta(
        self,
        operation: MutationOperation,
        payload: dict,
        view: ExpenseList,
    ) -> tuple[Optional[ExpenseList], Optional[int]]:
        """The optimistic view, and the temporary id of any entry added."""
        if operation == MutationOperation.CREATE:
            temp_id = self.next_temp_id()
            # Built unvalidated: the server decides whether the payload is valid
            placeholder = Expense.model_construct(
                id=temp_id,
                title=payload["title"],
                amount=payload["amount"],
                file_url=None,
            )
            return ExpenseList(expenses=[*view.expenses, placeholder]), temp_id

        if operation == MutationOperation.DELETE:
            expense_id = payload["expense_id"]
            return ExpenseList(
                expenses=[e for e in view.expenses if e.id != expense_id]
            ), None

        if self._optimistic_patch:
            expense_id = payload["expense_id"]
            changes = {
                name: value
                for name, value in payload["changes"].items()
                if name in ("title", "amount")
            }
            return ExpenseList(expenses=[
                e.model_copy(update=changes) if e.id == expense_id else e
                for e in view.expenses
            ]), None

        return None, None

    async def _dispatch(self, operation: MutationOperation, payload: dict) -> Expense:
        if operation == MutationOperation.CREATE:
            return await self._api.create_expense(payload["title"], payload["amount"])
        if operation == MutationOperation.DELETE:
            return await self._api.delete_expense(payload["expense_id"])
        return await self._api.patch_expense(payload["expense_id"], **payload["changes"])

    def _restore(self, snapshot: Optional[ExpenseList]) -> bool:
        if snapshot is None:
            return False
        self._cache.set_data(EXPENSES_KEY, snapshot)
        return True

    def _settle(self, operation: MutationOperation, payload: dict) -> None:
        self._cache.invalidate(EXPENSES_KEY)
        if operation == MutationOperation.PATCH:
            self._cache.invalidate(expense_key(payload["expense_id"]))
        elif operation == MutationOperation.DELETE:
            self._cache.remove(expense_key(payload["expense_id"]))
