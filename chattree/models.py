"""Canonical data structures and event types for chattree.

Defined once here, referenced everywhere else. A conversation is a flat pool
of MessageNodes keyed by id plus a registry of active branch indices; the
TreeSnapshot bundles both so they are always replaced together. Event
payloads describe the operations applied to a conversation; the
EventEnvelope wraps them with metadata.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Registry key for the branch point above the top-level messages.
ROOT_KEY = "__root__"

Role = Literal["user", "assistant", "system"]

# ---------------------------------------------------------------------------
# Canonical data structures
# ---------------------------------------------------------------------------


class MessageNode(BaseModel):
    """One message version. Replaced, never mutated."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    content: str
    timestamp: datetime
    model: str = ""
    parent_id: str | None = None
    child_ids: tuple[str, ...] = ()
    branch_index: int = 0

    # Transient UI flags, not part of the tree structure
    is_streaming: bool = False
    is_editing: bool = False


class TreeSnapshot(BaseModel):
    """Node pool + branch registry, versioned together.

    root_ids holds the top-level siblings in creation order, i.e. the
    children of the ROOT_KEY branch point. root_node_id is the first of them.
    """

    model_config = ConfigDict(frozen=True)

    nodes: dict[str, MessageNode] = Field(default_factory=dict)
    active_branches: dict[str, int] = Field(default_factory=dict)
    root_node_id: str | None = None
    root_ids: tuple[str, ...] = ()


class NodePatch(BaseModel):
    """Mutable fields of a node. Only fields present in the patch are applied."""

    content: str | None = None
    is_streaming: bool | None = None
    is_editing: bool | None = None


class BranchInfo(BaseModel):
    total: int
    current: int  # 1-based
    has_previous: bool
    has_next: bool


class ModelTokenStats(BaseModel):
    model: str  # "unknown" for assistant messages without a model
    input_tokens: int
    output_tokens: int
    total_tokens: int
    estimated_cost: float
    message_count: int


class TreeStats(BaseModel):
    message_count: int
    user_message_count: int
    assistant_message_count: int
    system_message_count: int
    total_branches: int  # sum of children over every point with 2+ children
    max_branches_per_node: int
    visible_path_length: int
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    average_tokens_per_message: int = 0
    model_breakdown: list[ModelTokenStats] = Field(default_factory=list)  # by total_tokens, descending


# ---------------------------------------------------------------------------
# Event payloads, one per event type
# ---------------------------------------------------------------------------


class ConversationCreatedPayload(BaseModel):
    title: str | None = None
    model: str | None = None


class NodeInsertedPayload(BaseModel):
    node_id: str
    parent_id: str | None = None
    role: Role
    content: str
    model: str = ""
    reason: Literal["message", "edit", "regenerate", "import"] = "message"


class NodeContentUpdatedPayload(BaseModel):
    node_id: str
    fields: list[str]


class ActiveBranchSwitchedPayload(BaseModel):
    branch_point_id: str
    old_index: int | None = None
    new_index: int


class SubtreeDeletedPayload(BaseModel):
    node_id: str
    deleted_node_ids: list[str]


class SnapshotRestoredPayload(BaseModel):
    direction: Literal["undo", "redo", "import"]


# ---------------------------------------------------------------------------
# Event type registry
# ---------------------------------------------------------------------------

EVENT_TYPES: dict[str, type[BaseModel]] = {
    "ConversationCreated": ConversationCreatedPayload,
    "NodeInserted": NodeInsertedPayload,
    "NodeContentUpdated": NodeContentUpdatedPayload,
    "ActiveBranchSwitched": ActiveBranchSwitchedPayload,
    "SubtreeDeleted": SubtreeDeletedPayload,
    "SnapshotRestored": SnapshotRestoredPayload,
}


# ---------------------------------------------------------------------------
# Event envelope
# ---------------------------------------------------------------------------


class EventEnvelope(BaseModel):
    """Wraps every event with metadata. Kept in the conversation's event log."""

    event_id: str
    conversation_id: str
    timestamp: datetime
    event_type: str
    payload: dict[str, Any]
    sequence_num: int | None = None  # assigned on append

    def typed_payload(self) -> BaseModel:
        """Deserialize payload into the correct Pydantic model based on event_type."""
        payload_cls = EVENT_TYPES[self.event_type]
        return payload_cls.model_validate(self.payload)
