"""Shared test helpers."""

from datetime import UTC, datetime, timedelta
from itertools import count
from typing import Literal

from httpx import AsyncClient

from chattree.models import MessageNode, TreeSnapshot
from chattree.tree.context import TreeContext
from chattree.tree.operations import insert_node

BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def make_context(prefix: str = "n") -> TreeContext:
    """Deterministic ids (n1, n2, ...) and a clock that ticks one second per call."""
    ids = count(1)
    ticks = count(0)
    return TreeContext(
        new_id=lambda: f"{prefix}{next(ids)}",
        now=lambda: BASE_TIME + timedelta(seconds=next(ticks)),
    )


def make_node(
    node_id: str,
    role: Literal["user", "assistant", "system"] = "user",
    content: str | None = None,
    model: str = "",
) -> MessageNode:
    return MessageNode(
        id=node_id,
        role=role,
        content=content if content is not None else f"Message {node_id}",
        timestamp=BASE_TIME,
        model=model,
    )


def build_snapshot(*edges: tuple[str, str | None]) -> TreeSnapshot:
    """Insert (node_id, parent_id) pairs in order. Roles alternate by depth."""
    snapshot = TreeSnapshot()
    for node_id, parent_id in edges:
        depth = 0
        current = parent_id
        while current is not None:
            depth += 1
            current = snapshot.nodes[current].parent_id
        role = "user" if depth % 2 == 0 else "assistant"
        snapshot = insert_node(snapshot, make_node(node_id, role), parent_id)
    return snapshot


def build_branching_snapshot() -> TreeSnapshot:
    """root -> [A, B]; A -> [A1, A2].

    Inserting B last leaves root pointing at B; inserting A2 last leaves A
    pointing at A2.
    """
    return build_snapshot(
        ("root", None),
        ("A", "root"),
        ("A1", "A"),
        ("A2", "A"),
        ("B", "root"),
    )


def path_ids(nodes: list) -> list[str]:
    """Ids from MessageNodes, NodeResponses, or response JSON dicts."""
    ids = []
    for n in nodes:
        if isinstance(n, dict):
            ids.append(n["node_id"])
        elif hasattr(n, "node_id"):
            ids.append(n.node_id)
        else:
            ids.append(n.id)
    return ids


# -- API-level helpers --


async def create_test_conversation(
    client: AsyncClient, title: str = "Test Conversation",
) -> dict:
    resp = await client.post("/api/conversations", json={"title": title})
    assert resp.status_code == 201
    return resp.json()


async def create_conversation_with_messages(
    client: AsyncClient, n_messages: int = 4,
) -> dict:
    """Create a conversation with N alternating user/assistant messages.

    Returns {"conversation_id": str, "node_ids": [str, ...]} in creation order.
    """
    conv = await create_test_conversation(client)
    conversation_id = conv["conversation_id"]
    node_ids: list[str] = []
    for i in range(n_messages):
        role = "user" if i % 2 == 0 else "assistant"
        resp = await client.post(
            f"/api/conversations/{conversation_id}/messages",
            json={"content": f"Message {i + 1}", "role": role},
        )
        assert resp.status_code == 201
        node_ids.append(resp.json()["node_id"])
    return {"conversation_id": conversation_id, "node_ids": node_ids}
