"""Shared pytest fixtures for chattree tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from chattree.conversations.router import get_conversation_service
from chattree.conversations.service import ConversationService
from chattree.main import app
from tests.fixtures import make_context


@pytest.fixture
def context():
    return make_context()


@pytest.fixture
def service(context):
    """ConversationService with deterministic ids and clock."""
    return ConversationService(context=context, history_limit=10)


@pytest.fixture
async def client():
    """Async test client with a fresh service wired into the app."""
    service = ConversationService()
    app.dependency_overrides[get_conversation_service] = lambda: service
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
