"""Conversation service: the chat feature layer over the tree engine.

Owns conversations in memory. Every mutating call applies one pure tree
operation to the current snapshot and, on success, replaces the snapshot as a
single value, appends an event to the conversation's log, and pushes the
previous snapshot onto the undo stack. A failing operation raises before the
conversation is touched.

Branching policy lives here, not in the tree: editing a message always
creates a sibling, and regenerating always creates a new assistant
alternative.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from chattree.conversations.schemas import (
    ConversationDetailResponse,
    ConversationSummary,
    NodeResponse,
)
from chattree.importer.nested import flatten_nested_tree
from chattree.models import (
    ROOT_KEY,
    ActiveBranchSwitchedPayload,
    BranchInfo,
    ConversationCreatedPayload,
    EventEnvelope,
    MessageNode,
    NodeContentUpdatedPayload,
    NodeInsertedPayload,
    NodePatch,
    Role,
    SnapshotRestoredPayload,
    SubtreeDeletedPayload,
    TreeSnapshot,
    TreeStats,
)
from chattree.tree.codec import load_snapshot, snapshot_to_dict
from chattree.tree.context import DEFAULT_CONTEXT, TreeContext
from chattree.tree.inspector import get_branch_info, get_branch_point_info, get_tree_stats
from chattree.tree.operations import (
    create_message_node,
    delete_subtree,
    insert_node,
    update_content,
)
from chattree.tree.path import get_visible_path
from chattree.tree.pool import get_node, iter_subtree
from chattree.tree.registry import active_child_index, switch_active_branch

logger = logging.getLogger(__name__)

# Node fields written by streaming. Undo and redo keep their latest values.
_STREAMED_FIELDS = ("content", "timestamp", "is_streaming", "is_editing")


@dataclass
class Conversation:
    """One conversation's state. The snapshot is only ever replaced, never edited."""

    conversation_id: str
    title: str | None
    model: str | None
    created_at: datetime
    updated_at: datetime
    snapshot: TreeSnapshot = field(default_factory=TreeSnapshot)
    undo_stack: list[TreeSnapshot] = field(default_factory=list)
    redo_stack: list[TreeSnapshot] = field(default_factory=list)
    events: list[EventEnvelope] = field(default_factory=list)
    # Nodes whose latest content change bypassed the undo stack
    streamed_ids: set[str] = field(default_factory=set)


class ConversationService:
    """Applies tree operations to in-memory conversations."""

    def __init__(
        self, context: TreeContext = DEFAULT_CONTEXT, history_limit: int = 100,
    ) -> None:
        self._context = context
        self._history_limit = history_limit
        self._conversations: dict[str, Conversation] = {}

    # -- Conversations --

    def create_conversation(
        self, title: str | None = None, model: str | None = None,
    ) -> ConversationDetailResponse:
        now = self._context.now()
        conv = Conversation(
            conversation_id=self._context.new_id(),
            title=title,
            model=model,
            created_at=now,
            updated_at=now,
        )
        self._conversations[conv.conversation_id] = conv
        self._record(conv, "ConversationCreated", ConversationCreatedPayload(title=title, model=model))
        logger.info("Created conversation %s", conv.conversation_id)
        return self._detail(conv)

    def list_conversations(self) -> list[ConversationSummary]:
        """All conversations, most recently updated first."""
        convs = sorted(
            self._conversations.values(), key=lambda c: c.updated_at, reverse=True,
        )
        return [self._summary(c) for c in convs]

    def get_conversation(self, conversation_id: str) -> ConversationDetailResponse:
        return self._detail(self._get(conversation_id))

    def get_snapshot(self, conversation_id: str) -> TreeSnapshot:
        return self._get(conversation_id).snapshot

    def delete_conversation(self, conversation_id: str) -> None:
        self._get(conversation_id)
        del self._conversations[conversation_id]
        logger.info("Deleted conversation %s", conversation_id)

    # -- Messages --

    def add_message(
        self,
        conversation_id: str,
        content: str,
        *,
        role: Role = "user",
        model: str = "",
        parent_id: str | None = None,
        top_level: bool = False,
    ) -> NodeResponse:
        """Insert a message under parent_id, after the visible leaf, or at the top level."""
        conv = self._get(conversation_id)
        if parent_id is None and not top_level:
            path = get_visible_path(conv.snapshot)
            parent_id = path[-1].id if path else None
        node = create_message_node(role, content, model=model, context=self._context)
        return self._insert(conv, node, parent_id, reason="message")

    def edit_message(self, conversation_id: str, node_id: str, content: str) -> NodeResponse:
        """Create an edited copy of node_id as its newest sibling."""
        conv = self._get(conversation_id)
        original = get_node(conv.snapshot, node_id)
        node = create_message_node(
            original.role, content, model=original.model, context=self._context,
        )
        return self._insert(conv, node, original.parent_id, reason="edit")

    def regenerate(
        self, conversation_id: str, node_id: str, *, model: str = "", content: str = "",
    ) -> NodeResponse:
        """Start a new assistant alternative.

        For an assistant node the alternative is its sibling; for any other
        node it is a new reply beneath it. The node starts out streaming; the
        generation collaborator fills it through update_content.
        """
        conv = self._get(conversation_id)
        target = get_node(conv.snapshot, node_id)
        parent_id = target.parent_id if target.role == "assistant" else target.id
        node = create_message_node(
            "assistant",
            content,
            model=model or target.model or (conv.model or ""),
            context=self._context,
        ).model_copy(update={"is_streaming": True})
        return self._insert(conv, node, parent_id, reason="regenerate")

    def update_content(
        self, conversation_id: str, node_id: str, patch: NodePatch,
    ) -> NodeResponse | None:
        """Patch a node's content or flags. Returns None if the node no longer exists.

        Stream chunks (node streaming before and after) are not recorded in
        the event log or undo history, and neither is the update that ends
        the stream. Undo and redo keep such nodes at their latest content.
        """
        conv = self._get(conversation_id)
        before = conv.snapshot.nodes.get(node_id)
        snapshot = update_content(conv.snapshot, node_id, patch, now=self._context.now)
        if before is None:
            return None
        if snapshot is conv.snapshot:
            return self._node_response(snapshot, before)

        after = snapshot.nodes[node_id]
        changed = sorted(
            name for name in ("content", "is_streaming", "is_editing")
            if getattr(before, name) != getattr(after, name)
        )
        undoable = not before.is_streaming and not after.is_streaming
        if undoable:
            conv.streamed_ids.discard(node_id)
        else:
            conv.streamed_ids.add(node_id)
        if after.is_streaming:
            conv.redo_stack.clear()
            conv.snapshot = snapshot
            conv.updated_at = self._context.now()
        else:
            self._commit(
                conv, snapshot, "NodeContentUpdated",
                NodeContentUpdatedPayload(node_id=node_id, fields=changed),
                undoable=undoable,
            )
        return self._node_response(snapshot, after)

    def switch_branch(
        self, conversation_id: str, branch_point_id: str, branch_index: int,
    ) -> ConversationDetailResponse:
        conv = self._get(conversation_id)
        old_index = (
            active_child_index(conv.snapshot, branch_point_id)
            if branch_point_id == ROOT_KEY or branch_point_id in conv.snapshot.nodes
            else None
        )
        snapshot = switch_active_branch(conv.snapshot, branch_point_id, branch_index)
        if snapshot is not conv.snapshot:
            self._commit(
                conv, snapshot, "ActiveBranchSwitched",
                ActiveBranchSwitchedPayload(
                    branch_point_id=branch_point_id,
                    old_index=old_index,
                    new_index=branch_index,
                ),
            )
        return self._detail(conv)

    def delete_subtree(self, conversation_id: str, node_id: str) -> ConversationDetailResponse:
        conv = self._get(conversation_id)
        removed = iter_subtree(conv.snapshot, node_id)
        snapshot = delete_subtree(conv.snapshot, node_id)
        self._commit(
            conv, snapshot, "SubtreeDeleted",
            SubtreeDeletedPayload(node_id=node_id, deleted_node_ids=removed),
        )
        return self._detail(conv)

    # -- Queries --

    def get_visible_path(self, conversation_id: str) -> list[NodeResponse]:
        snapshot = self._get(conversation_id).snapshot
        return [self._node_response(snapshot, n) for n in get_visible_path(snapshot)]

    def get_branch_info(self, conversation_id: str, node_id: str) -> BranchInfo | None:
        return get_branch_info(self._get(conversation_id).snapshot, node_id)

    def get_stats(self, conversation_id: str) -> TreeStats:
        return get_tree_stats(self._get(conversation_id).snapshot)

    def get_events(self, conversation_id: str) -> list[EventEnvelope]:
        return list(self._get(conversation_id).events)

    # -- History --

    def undo(self, conversation_id: str) -> ConversationDetailResponse:
        conv = self._get(conversation_id)
        if not conv.undo_stack:
            raise NothingToUndoError(conversation_id)
        conv.redo_stack.append(conv.snapshot)
        conv.snapshot = self._carry_streamed(conv, conv.undo_stack.pop())
        conv.updated_at = self._context.now()
        self._record(conv, "SnapshotRestored", SnapshotRestoredPayload(direction="undo"))
        return self._detail(conv)

    def redo(self, conversation_id: str) -> ConversationDetailResponse:
        conv = self._get(conversation_id)
        if not conv.redo_stack:
            raise NothingToRedoError(conversation_id)
        conv.undo_stack.append(conv.snapshot)
        conv.snapshot = self._carry_streamed(conv, conv.redo_stack.pop())
        conv.updated_at = self._context.now()
        self._record(conv, "SnapshotRestored", SnapshotRestoredPayload(direction="redo"))
        return self._detail(conv)

    # -- Export / import --

    def export_conversation(self, conversation_id: str) -> dict[str, Any]:
        conv = self._get(conversation_id)
        return {
            "conversation_id": conv.conversation_id,
            "title": conv.title,
            "model": conv.model,
            "snapshot": snapshot_to_dict(conv.snapshot),
        }

    def import_conversation(
        self,
        data: dict | list,
        *,
        format: str = "snapshot",
        title: str | None = None,
        model: str | None = None,
    ) -> tuple[ConversationDetailResponse, list[str]]:
        """Create a conversation from an exported snapshot or a nested tree.

        Decoding happens before the conversation is created, so a bad
        document leaves the service unchanged.
        """
        warnings: list[str] = []
        if format == "nested":
            result = flatten_nested_tree(data, context=self._context)
            snapshot, warnings = result.snapshot, result.warnings
        else:
            source = data.get("snapshot", data) if isinstance(data, dict) else data
            snapshot = load_snapshot(source)

        detail = self.create_conversation(title=title, model=model)
        conv = self._get(detail.conversation_id)
        conv.snapshot = snapshot
        self._record(conv, "SnapshotRestored", SnapshotRestoredPayload(direction="import"))
        return self._detail(conv), warnings

    # -- Internals --

    def _get(self, conversation_id: str) -> Conversation:
        conv = self._conversations.get(conversation_id)
        if conv is None:
            raise ConversationNotFoundError(conversation_id)
        return conv

    def _carry_streamed(self, conv: Conversation, restored: TreeSnapshot) -> TreeSnapshot:
        """Copy streamed content from the current snapshot into one being restored.

        Stream chunks never reach the undo stack, so a restored snapshot would
        otherwise bring back a half-written message. Only nodes present in
        both snapshots are touched; structure comes from `restored`.
        """
        nodes: dict[str, MessageNode] | None = None
        for node_id in conv.streamed_ids:
            current = conv.snapshot.nodes.get(node_id)
            old = restored.nodes.get(node_id)
            if current is None or old is None or current is old:
                continue
            if nodes is None:
                nodes = dict(restored.nodes)
            nodes[node_id] = old.model_copy(
                update={name: getattr(current, name) for name in _STREAMED_FIELDS}
            )
        if nodes is None:
            return restored
        return restored.model_copy(update={"nodes": nodes})

    def _insert(
        self, conv: Conversation, node: MessageNode, parent_id: str | None, *, reason: str,
    ) -> NodeResponse:
        snapshot = insert_node(conv.snapshot, node, parent_id)
        self._commit(
            conv, snapshot, "NodeInserted",
            NodeInsertedPayload(
                node_id=node.id,
                parent_id=parent_id,
                role=node.role,
                content=node.content,
                model=node.model,
                reason=reason,
            ),
        )
        return self._node_response(snapshot, snapshot.nodes[node.id])

    def _commit(
        self,
        conv: Conversation,
        snapshot: TreeSnapshot,
        event_type: str,
        payload: BaseModel,
        *,
        undoable: bool = True,
    ) -> None:
        if undoable:
            conv.undo_stack.append(conv.snapshot)
            if len(conv.undo_stack) > self._history_limit:
                del conv.undo_stack[: len(conv.undo_stack) - self._history_limit]
            conv.redo_stack.clear()
        conv.snapshot = snapshot
        conv.updated_at = self._context.now()
        self._record(conv, event_type, payload)

    def _record(self, conv: Conversation, event_type: str, payload: BaseModel) -> None:
        conv.events.append(EventEnvelope(
            event_id=self._context.new_id(),
            conversation_id=conv.conversation_id,
            timestamp=self._context.now(),
            event_type=event_type,
            payload=payload.model_dump(mode="json"),
            sequence_num=len(conv.events) + 1,
        ))

    def _summary(self, conv: Conversation) -> ConversationSummary:
        return ConversationSummary(
            conversation_id=conv.conversation_id,
            title=conv.title,
            model=conv.model,
            created_at=conv.created_at,
            updated_at=conv.updated_at,
            message_count=len(conv.snapshot.nodes),
        )

    def _detail(self, conv: Conversation) -> ConversationDetailResponse:
        snapshot = conv.snapshot
        return ConversationDetailResponse(
            **self._summary(conv).model_dump(),
            root_node_id=snapshot.root_node_id,
            root_branch_info=get_branch_point_info(snapshot, ROOT_KEY),
            visible_path=[
                self._node_response(snapshot, n) for n in get_visible_path(snapshot)
            ],
            can_undo=bool(conv.undo_stack),
            can_redo=bool(conv.redo_stack),
        )

    @staticmethod
    def _node_response(snapshot: TreeSnapshot, node: MessageNode) -> NodeResponse:
        return NodeResponse(
            node_id=node.id,
            parent_id=node.parent_id,
            role=node.role,
            content=node.content,
            model=node.model,
            timestamp=node.timestamp,
            child_ids=list(node.child_ids),
            branch_index=node.branch_index,
            is_streaming=node.is_streaming,
            is_editing=node.is_editing,
            branch_info=get_branch_info(snapshot, node.id),
        )


class ConversationNotFoundError(Exception):
    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found: {conversation_id}")


class NothingToUndoError(Exception):
    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Nothing to undo in conversation {conversation_id}")


class NothingToRedoError(Exception):
    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Nothing to redo in conversation {conversation_id}")
