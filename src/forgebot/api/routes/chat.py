"""Chat endpoints.

Every endpoint takes the same JSON envelope and reaches the same
dispatcher; the endpoint name is only the default command when the
envelope carries neither a callback nor typed input.
"""

import logging
import secrets
from typing import Any, Optional

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from forgebot.bot.events import Button, Callback, Command, Event, FreeformText
from forgebot.config import get_settings
from forgebot.services.chat_service import ChatService, Identity

logger = logging.getLogger(__name__)

router = APIRouter()

COMMAND_ENDPOINTS = (
    "start",
    "help",
    "wallet",
    "create",
    "import",
    "export",
    "balance",
    "history",
    "buy",
    "sell",
    "settings",
    "deposit",
    "withdraw",
    "cancel",
)


class ChatRequest(BaseModel):
    """Inbound chat envelope."""

    model_config = ConfigDict(populate_by_name=True)

    command: Optional[str] = None
    callback: Optional[str] = None
    args: Optional[Any] = None
    fid: Optional[Any] = None
    username: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")

    def to_event(self, default_command: Optional[str] = None) -> Optional[Event]:
        """Map the envelope to an event.

        Precedence: callback, explicit command, typed input, then the
        endpoint's own command.
        """
        args = None if self.args is None else str(self.args)
        if self.callback:
            return Callback(data=self.callback, args=args)
        if self.command:
            return Command(name=self.command, args=args)
        if args is not None and args.strip():
            return FreeformText(value=args)
        if default_command:
            return Command(name=default_command)
        return None

    def identity(self) -> Identity:
        return Identity(
            fid=str(self.fid) if self.fid not in (None, "") else None,
            username=self.username,
            display_name=self.display_name,
        )


class ChatResponse(BaseModel):
    """Reply envelope."""

    response: str
    buttons: Optional[list[list[Button]]] = None


def _chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def _session_id(request: Request) -> str:
    settings = get_settings()
    sid = request.cookies.get(settings.session_cookie_name)
    if sid and 16 <= len(sid) <= 128:
        return sid
    return secrets.token_urlsafe(32)


def _set_cookie(response: Response, session_id: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session_id,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


async def _handle(
    request: Request,
    response: Response,
    payload: ChatRequest,
    default_command: Optional[str],
):
    session_id = _session_id(request)
    event = payload.to_event(default_command)
    if event is None:
        _set_cookie(response, session_id)
        return ChatResponse(response="❌ Invalid request. Please try again.")

    try:
        reply = await _chat_service(request).handle(session_id, event, payload.identity())
    except Exception:
        logger.exception(f"Error processing {type(event).__name__}")
        error = JSONResponse(status_code=500, content={"response": "Error processing command."})
        _set_cookie(error, session_id)
        return error

    _set_cookie(response, session_id)
    return ChatResponse(response=reply.response, buttons=reply.buttons)


def _command_endpoint(name: str):
    async def endpoint(request: Request, response: Response, payload: ChatRequest):
        return await _handle(request, response, payload, name)

    endpoint.__name__ = f"chat_{name}"
    endpoint.__doc__ = f"/{name} and its follow-up input."
    return endpoint


for _name in COMMAND_ENDPOINTS:
    router.add_api_route(
        f"/{_name}",
        _command_endpoint(_name),
        methods=["POST"],
        response_model=ChatResponse,
        response_model_exclude_none=True,
    )


@router.post("/input", response_model=ChatResponse, response_model_exclude_none=True)
async def chat_input(request: Request, response: Response, payload: ChatRequest):
    """Typed text for the active step."""
    return await _handle(request, response, payload, None)


@router.post("/callback", response_model=ChatResponse, response_model_exclude_none=True)
async def chat_callback(request: Request, response: Response, payload: ChatRequest):
    """Button press."""
    return await _handle(request, response, payload, None)


@router.post("/chat/command", response_model=ChatResponse, response_model_exclude_none=True)
async def chat_command(request: Request, response: Response, payload: ChatRequest):
    """Generic envelope: command, callback or typed input."""
    return await _handle(request, response, payload, None)
