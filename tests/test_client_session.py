"""Tests for the ExpenseClient facade."""

import pytest

from expense_tracker.client import (
    PENDING,
    EXPENSES_KEY,
    ExpenseApiClient,
    ExpenseClient,
    NotFoundError,
    Unauthorized,
    create_client,
)
from expense_tracker.config import ClientSettings
from expense_tracker.models.expense import UploadFile
from tests.conftest import API_BASE, accept_all_transfers, asgi_client, transfer_client


def secured_client(secured_app, client_settings) -> ExpenseClient:
    api = ExpenseApiClient(
        settings=client_settings,
        http=asgi_client(secured_app),
        transfer_http=transfer_client(accept_all_transfers),
    )
    return ExpenseClient(api)


class TestQueries:
    """Tests for cached reads through the facade."""

    @pytest.mark.asyncio
    async def test_expenses_pending_then_loaded(self, expense_client, storage):
        """Test the first read followed by the background load."""
        await expense_client.api.create_expense("Coffee", 5)

        assert expense_client.expenses() is PENDING
        await expense_client.cache.drain()

        view = expense_client.expenses()
        assert [e.title for e in view.expenses] == ["Coffee"]

    @pytest.mark.asyncio
    async def test_expense_detail(self, expense_client):
        """Test reading one expense by id."""
        created = await expense_client.api.create_expense("Lunch", 12)

        assert expense_client.expense(created.id) is PENDING
        await expense_client.cache.drain()
        assert expense_client.expense(created.id).title == "Lunch"

    @pytest.mark.asyncio
    async def test_missing_expense_records_error(self, expense_client):
        """Test a detail read for an unknown id."""
        with pytest.raises(NotFoundError):
            await expense_client.cache.fetch(("expenses", 99))

    @pytest.mark.asyncio
    async def test_unknown_key_rejected(self, expense_client):
        """Test that only expense keys can be fetched."""
        with pytest.raises(ValueError):
            await expense_client.cache.fetch(("receipts",))


class TestMutationsEndToEnd:
    """Tests for mutations against the in-process API."""

    @pytest.mark.asyncio
    async def test_add_then_refetch(self, expense_client, storage):
        """Test that the settle refetch replaces the placeholder."""
        await expense_client.load_expenses()

        outcome = await expense_client.add_expense("Coffee", 5)
        await expense_client.cache.drain()

        assert outcome.ok
        assert len(await storage.list_all()) == 1
        view = expense_client.cache.get_data(EXPENSES_KEY)
        assert [(e.id, e.title) for e in view.expenses] == [(1, "Coffee")]

    @pytest.mark.asyncio
    async def test_update_and_delete(self, expense_client, storage):
        """Test the remaining mutations."""
        created = await expense_client.api.create_expense("Coffee", 5)

        assert (await expense_client.update_expense(created.id, amount=7)).expense.amount == 7
        assert (await expense_client.delete_expense(created.id)).ok
        assert await storage.list_all() == []

    @pytest.mark.asyncio
    async def test_attach_receipt(self, expense_client, storage, object_store):
        """Test the upload through the facade."""
        created = await expense_client.api.create_expense("Coffee", 5)
        file = UploadFile(filename="r.pdf", content_type="application/pdf", data=b"%PDF")

        outcome = await expense_client.attach_receipt(created.id, file)

        assert outcome.ok
        assert (await storage.get(created.id)).file_key == outcome.key
        assert object_store.uploads[0][:2] == (outcome.key, "application/pdf")


class TestSession:
    """Tests for login, logout and me."""

    @pytest.mark.asyncio
    async def test_login_sets_session_cookie(self, secured_app, client_settings):
        """Test that later calls ride the cookie."""
        client = secured_client(secured_app, client_settings)
        try:
            user = await client.login("alice", "hunter2")
            assert user.id == "alice"
            assert (await client.me()).id == "alice"
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_wrong_password(self, secured_app, client_settings):
        """Test rejected credentials."""
        client = secured_client(secured_app, client_settings)
        try:
            with pytest.raises(Unauthorized) as exc_info:
                await client.login("alice", "wrong")
            assert exc_info.value.message == "Invalid credentials"
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_logout_ends_session(self, secured_app, client_settings):
        """Test that me() fails after logout."""
        client = secured_client(secured_app, client_settings)
        try:
            await client.login("alice", "hunter2")
            await client.logout()
            with pytest.raises(Unauthorized):
                await client.me()
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_upload_after_login(self, secured_app, client_settings, storage):
        """Test that signing succeeds with a session."""
        client = secured_client(secured_app, client_settings)
        try:
            await client.login("alice", "hunter2")
            created = await client.api.create_expense("Coffee", 5)
            file = UploadFile(filename="r.png", content_type="image/png", data=b"png")

            outcome = await client.attach_receipt(created.id, file)
            assert outcome.ok
        finally:
            await client.aclose()


class TestFactory:
    """Tests for create_client."""

    @pytest.mark.asyncio
    async def test_settings_flow_through(self, app):
        """Test that client settings configure the engine."""
        settings = ClientSettings(base_url=API_BASE, serialize_mutations=True, stale_after_seconds=120)
        async with create_client(settings, http=asgi_client(app), optimistic_patch=True) as client:
            assert client.mutations._serialize
            assert client.mutations._optimistic_patch
            assert client.cache._stale_after == 120
            assert (await client.add_expense("Coffee", 5)).ok
