"""FastAPI routes for conversations, messages, and branch navigation."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from chattree.conversations.schemas import (
    AddMessageRequest,
    ConversationDetailResponse,
    ConversationSummary,
    CreateConversationRequest,
    EditMessageRequest,
    ImportConversationRequest,
    ImportWarningsResponse,
    NodeResponse,
    PatchMessageRequest,
    RegenerateRequest,
    SwitchBranchRequest,
)
from chattree.conversations.service import (
    ConversationNotFoundError,
    ConversationService,
    NothingToRedoError,
    NothingToUndoError,
)
from chattree.models import BranchInfo, EventEnvelope, NodePatch, TreeStats
from chattree.tree.errors import (
    BranchIndexOutOfRangeError,
    InvariantViolation,
    NodeNotFoundError,
    SnapshotDecodeError,
)

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


def get_conversation_service() -> ConversationService:
    """Dependency placeholder, overridden in the app lifespan."""
    raise RuntimeError("ConversationService not initialized")


def _not_found(conversation_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Conversation not found: {conversation_id}")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_conversation(
    request: CreateConversationRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationDetailResponse:
    return service.create_conversation(title=request.title, model=request.model)


@router.get("")
async def list_conversations(
    service: ConversationService = Depends(get_conversation_service),
) -> list[ConversationSummary]:
    return service.list_conversations()


@router.post("/import", status_code=status.HTTP_201_CREATED)
async def import_conversation(
    request: ImportConversationRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> ImportWarningsResponse:
    try:
        detail, warnings = service.import_conversation(
            request.data, format=request.format, title=request.title, model=request.model,
        )
    except (SnapshotDecodeError, InvariantViolation) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ImportWarningsResponse(conversation=detail, warnings=warnings)


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationDetailResponse:
    try:
        return service.get_conversation(conversation_id)
    except ConversationNotFoundError:
        raise _not_found(conversation_id)


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> None:
    try:
        service.delete_conversation(conversation_id)
    except ConversationNotFoundError:
        raise _not_found(conversation_id)


@router.post("/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
async def add_message(
    conversation_id: str,
    request: AddMessageRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> NodeResponse:
    try:
        return service.add_message(
            conversation_id,
            request.content,
            role=request.role,
            model=request.model,
            parent_id=request.parent_id,
            top_level=request.top_level,
        )
    except ConversationNotFoundError:
        raise _not_found(conversation_id)
    except NodeNotFoundError as e:
        raise HTTPException(status_code=400, detail=f"Invalid parent node: {e.node_id}")


@router.patch("/{conversation_id}/messages/{node_id}")
async def update_message(
    conversation_id: str,
    node_id: str,
    request: PatchMessageRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> NodeResponse | None:
    """Apply a content/flag patch. Returns null when the node no longer exists."""
    patch = NodePatch.model_validate(request.model_dump(exclude_unset=True))
    try:
        return service.update_content(conversation_id, node_id, patch)
    except ConversationNotFoundError:
        raise _not_found(conversation_id)


@router.delete("/{conversation_id}/messages/{node_id}")
async def delete_message(
    conversation_id: str,
    node_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationDetailResponse:
    try:
        return service.delete_subtree(conversation_id, node_id)
    except ConversationNotFoundError:
        raise _not_found(conversation_id)
    except NodeNotFoundError:
        raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")


@router.post("/{conversation_id}/messages/{node_id}/edit", status_code=status.HTTP_201_CREATED)
async def edit_message(
    conversation_id: str,
    node_id: str,
    request: EditMessageRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> NodeResponse:
    try:
        return service.edit_message(conversation_id, node_id, request.content)
    except ConversationNotFoundError:
        raise _not_found(conversation_id)
    except NodeNotFoundError:
        raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")


@router.post(
    "/{conversation_id}/messages/{node_id}/regenerate", status_code=status.HTTP_201_CREATED,
)
async def regenerate(
    conversation_id: str,
    node_id: str,
    request: RegenerateRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> NodeResponse:
    try:
        return service.regenerate(
            conversation_id, node_id, model=request.model, content=request.content,
        )
    except ConversationNotFoundError:
        raise _not_found(conversation_id)
    except NodeNotFoundError:
        raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")


@router.get("/{conversation_id}/messages/{node_id}/branch-info")
async def get_branch_info(
    conversation_id: str,
    node_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> BranchInfo | None:
    try:
        return service.get_branch_info(conversation_id, node_id)
    except ConversationNotFoundError:
        raise _not_found(conversation_id)


@router.put("/{conversation_id}/branches/{branch_point_id}")
async def switch_branch(
    conversation_id: str,
    branch_point_id: str,
    request: SwitchBranchRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationDetailResponse:
    try:
        return service.switch_branch(conversation_id, branch_point_id, request.branch_index)
    except ConversationNotFoundError:
        raise _not_found(conversation_id)
    except NodeNotFoundError:
        raise HTTPException(status_code=404, detail=f"Node not found: {branch_point_id}")
    except BranchIndexOutOfRangeError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{conversation_id}/path")
async def get_visible_path(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> list[NodeResponse]:
    try:
        return service.get_visible_path(conversation_id)
    except ConversationNotFoundError:
        raise _not_found(conversation_id)


@router.get("/{conversation_id}/stats")
async def get_stats(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> TreeStats:
    try:
        return service.get_stats(conversation_id)
    except ConversationNotFoundError:
        raise _not_found(conversation_id)


@router.get("/{conversation_id}/events")
async def get_events(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> list[EventEnvelope]:
    try:
        return service.get_events(conversation_id)
    except ConversationNotFoundError:
        raise _not_found(conversation_id)


@router.post("/{conversation_id}/undo")
async def undo(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationDetailResponse:
    try:
        return service.undo(conversation_id)
    except ConversationNotFoundError:
        raise _not_found(conversation_id)
    except NothingToUndoError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/{conversation_id}/redo")
async def redo(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationDetailResponse:
    try:
        return service.redo(conversation_id)
    except ConversationNotFoundError:
        raise _not_found(conversation_id)
    except NothingToRedoError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/{conversation_id}/export")
async def export_conversation(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    try:
        return service.export_conversation(conversation_id)
    except ConversationNotFoundError:
        raise _not_found(conversation_id)
