"""Inbound events and outbound replies."""

from dataclasses import dataclass
from typing import Optional, Union

from pydantic import BaseModel


@dataclass(frozen=True)
class Command:
    """Explicit top-level command, e.g. /buy."""

    name: str
    args: Optional[str] = None


@dataclass(frozen=True)
class Callback:
    """Button press."""

    data: str
    args: Optional[str] = None


@dataclass(frozen=True)
class FreeformText:
    """Typed text: an amount, an address, a private key..."""

    value: str


Event = Union[Command, Callback, FreeformText]


def normalize_command(name: str) -> str:
    """Strip a leading slash and lowercase."""
    return name.strip().lstrip("/").lower()


class Button(BaseModel):
    label: str
    callback: str


class Reply(BaseModel):
    """Response returned to the chat client."""

    response: str
    buttons: Optional[list[list[Button]]] = None
