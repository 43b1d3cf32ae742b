"""Action dispatcher.

Routes one inbound event to a handler using a fixed rule order:

0. an idle-expired workflow is discarded first; typed "/name" text
   naming a known command is treated as that command
1. the active step, if the event matches what that step expects
2. a global callback (resets any in-flight workflow)
3. an explicit command (resets any in-flight workflow)
4. a bare address typed while idle starts a custom-token buy
5. fallback help

Handler exceptions never escape; the session is saved exactly once per
dispatch, after all mutations, on every path.
"""

import logging
import time
from typing import Optional

from forgebot.bot.context import HandlerContext, Services
from forgebot.bot.events import Callback, Command, Event, FreeformText, Reply
from forgebot.bot.keyboards import main_menu_keyboard
from forgebot.bot.router import Router
from forgebot.bot.states import WorkflowState, load_state
from forgebot.errors import (
    AuthError,
    DuplicateOperationError,
    SessionStateError,
    UpstreamError,
    UserInputError,
)
from forgebot.sessions.models import Session
from forgebot.sessions.store import SessionStore
from forgebot.utils.validators import is_valid_address

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "❌ An error occurred. Please try again later."
WORKFLOW_EXPIRED = "⌛ Your previous operation timed out. Please start again."
STEP_MISMATCH = (
    "🤔 That doesn't fit the current step. Use the buttons above, "
    "or type /cancel to abort."
)
FALLBACK = (
    "🤔 I didn't understand that.\n\n"
    "Use the buttons below or type /help to see what I can do."
)


class Dispatcher:
    """Resolves events to handlers and persists the session."""

    def __init__(self, router: Router, services: Services, store: SessionStore):
        self.router = router
        self.services = services
        self.store = store

    async def dispatch(self, event: Event, session: Session) -> Reply:
        """Handle one event and save the session exactly once."""
        ctx = HandlerContext(session=session, services=self.services)

        try:
            reply = await self._route(ctx, event)
        except UserInputError as e:
            reply = Reply(response=e.user_message)
        except AuthError as e:
            reply = Reply(response=e.user_message)
        except SessionStateError as e:
            logger.warning(f"Incoherent workflow state {session.current_action!r}, resetting")
            session.reset()
            reply = Reply(response=e.user_message)
        except DuplicateOperationError as e:
            session.reset()
            reply = Reply(response=e.user_message)
        except UpstreamError as e:
            logger.warning(f"Upstream failure in {session.current_action!r}: {e}")
            session.reset()
            reply = Reply(response=e.user_message)
        except Exception:
            logger.exception(f"Unhandled error dispatching {event!r}")
            session.reset()
            reply = Reply(response=GENERIC_FAILURE)

        await self.store.set(session.id, session, self.services.settings.session_ttl_seconds)
        return reply

    async def _route(self, ctx: HandlerContext, event: Event) -> Reply:
        session = ctx.session
        state, expired, broken = self._resume(session)

        # "/cancel" typed into a text step is a command, not step input
        if isinstance(event, FreeformText) and event.value.strip().startswith("/"):
            name, _, args = event.value.strip().partition(" ")
            if self.router.resolve_command(name) is not None:
                event = Command(name=name, args=args or None)

        # 1. Active step
        if state is not None:
            handler = self.router.resolve_step(state, event)
            if handler is not None:
                return await handler(ctx, event, state)

        # 2. Global callback
        if isinstance(event, Callback):
            handler = self.router.resolve_callback(event.data)
            if handler is not None:
                session.reset()
                return await handler(ctx, event, None)
            if event.data.startswith("/"):
                event = Command(name=event.data, args=event.args)

        # 3. Explicit command
        if isinstance(event, Command):
            handler = self.router.resolve_command(event.name)
            if handler is not None:
                session.reset()
                return await handler(ctx, event, None)

        # 4. Bare address while idle
        if (
            isinstance(event, FreeformText)
            and session.is_idle
            and is_valid_address(event.value)
            and self.router.address_handler is not None
        ):
            return await self.router.address_handler(ctx, event, None)

        # 5. Fallback
        if broken:
            raise SessionStateError()
        if expired:
            return Reply(response=WORKFLOW_EXPIRED, buttons=main_menu_keyboard())
        if state is not None:
            return Reply(response=STEP_MISMATCH)
        return Reply(response=FALLBACK, buttons=main_menu_keyboard())

    def _resume(self, session: Session) -> tuple[Optional[WorkflowState], bool, bool]:
        """Load the active step.

        Returns:
            (state, expired, broken). Expired and broken workflows are reset
            and reported so the fallback can explain what happened.
        """
        try:
            state = load_state(session)
        except SessionStateError:
            logger.warning(f"Discarding unreadable state for {session.current_action!r}")
            session.reset()
            return None, False, True

        if state is None:
            return None, False, False

        timeout = self.services.settings.workflow_timeout_seconds
        if timeout and time.time() - state.touched_at > timeout:
            logger.info(f"Workflow {state.action} expired after {timeout}s idle")
            session.reset()
            return None, True, False

        return state, False, False
