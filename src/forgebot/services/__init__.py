"""Application services."""

from forgebot.services.chat_service import ChatService, Identity, build_services

__all__ = ["ChatService", "Identity", "build_services"]
