"""Request and response schemas for conversation endpoints."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from chattree.models import BranchInfo, NodePatch, Role

# -- Requests --


class CreateConversationRequest(BaseModel):
    title: str | None = None
    model: str | None = None


class AddMessageRequest(BaseModel):
    """Add a message.

    With parent_id, the message is attached under that node. Without it, it
    continues the visible path, or starts a new top-level alternative when
    top_level is set.
    """

    content: str
    role: Role = "user"
    model: str = ""
    parent_id: str | None = None
    top_level: bool = False


class EditMessageRequest(BaseModel):
    """Request body for POST /api/conversations/{id}/messages/{node_id}/edit."""

    content: str


class RegenerateRequest(BaseModel):
    model: str = ""
    content: str = ""


class PatchMessageRequest(NodePatch):
    """Request body for PATCH /api/conversations/{id}/messages/{node_id}."""


class SwitchBranchRequest(BaseModel):
    branch_index: int


class ImportConversationRequest(BaseModel):
    title: str | None = None
    model: str | None = None
    format: Literal["snapshot", "nested"] = "snapshot"
    data: dict[str, Any] | list[Any]


# -- Responses --


class NodeResponse(BaseModel):
    node_id: str
    parent_id: str | None = None
    role: str
    content: str
    model: str = ""
    timestamp: datetime
    child_ids: list[str] = Field(default_factory=list)
    branch_index: int = 0
    is_streaming: bool = False
    is_editing: bool = False
    branch_info: BranchInfo | None = None


class ConversationSummary(BaseModel):
    conversation_id: str
    title: str | None = None
    model: str | None = None
    created_at: datetime
    updated_at: datetime
    message_count: int = 0


class ConversationDetailResponse(ConversationSummary):
    root_node_id: str | None = None
    root_branch_info: BranchInfo | None = None
    visible_path: list[NodeResponse] = Field(default_factory=list)
    can_undo: bool = False
    can_redo: bool = False


class ImportWarningsResponse(BaseModel):
    conversation: ConversationDetailResponse
    warnings: list[str] = Field(default_factory=list)
