from typing import List

from fastapi import APIRouter, Depends, Request, WebSocket
from fastapi.responses import JSONResponse

from chat_service.core.dependencies import get_container, get_store, get_user_service
from chat_service.core.errors import (
    ConversationNotFoundError,
    InvalidCredentialsError,
    PersistenceError,
    UserAlreadyExistsError,
)
from chat_service.infrastructure.persistence import ConversationStore
from chat_service.models.rest import (
    AuthResponse,
    CreateConversationRequest,
    HealthResponse,
    LoginRequest,
    RegisterRequest,
)
from chat_service.services import UserService

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    return HealthResponse(
        status="healthy",
        service="chat-service",
        version=get_container(request).config.version,
    )


# ==================== Identity ====================

@router.post("/api/register", response_model=AuthResponse)
async def register(data: RegisterRequest, users: UserService = Depends(get_user_service)):
    try:
        return await users.register(data)
    except UserAlreadyExistsError as e:
        return JSONResponse(status_code=400, content={"error": e.message})


@router.post("/api/login", response_model=AuthResponse)
async def login(data: LoginRequest, users: UserService = Depends(get_user_service)):
    try:
        return await users.login(data)
    except InvalidCredentialsError as e:
        return JSONResponse(status_code=400, content={"error": e.message})


# ==================== Conversations ====================

@router.get("/api/conversations")
async def list_conversations(request: Request, store: ConversationStore = Depends(get_store)) -> List[dict]:
    conversations = await store.list_for_owner(request.state.user_id)
    return [conversation.to_wire() for conversation in conversations]


@router.post("/api/conversations")
async def create_conversation(
    request: Request,
    data: CreateConversationRequest | None = None,
    store: ConversationStore = Depends(get_store),
):
    title = data.title if data else None
    try:
        conversation = await store.create(request.state.user_id, title)
    except PersistenceError as e:
        return JSONResponse(status_code=500, content={"error": e.message})
    return conversation.to_wire()


@router.get("/api/conversations/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    request: Request,
    store: ConversationStore = Depends(get_store),
):
    try:
        conversation = await store.load(conversation_id)
    except ConversationNotFoundError as e:
        return JSONResponse(status_code=404, content={"error": e.message})

    if conversation.owner_user_id != request.state.user_id:
        # Do not reveal foreign conversations
        return JSONResponse(status_code=404, content={"error": "Conversation not found"})
    return conversation.to_wire()


# ==================== WebSocket ====================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.app.state.container.gateway.handle_connection(websocket)
