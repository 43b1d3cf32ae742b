"""Handler registry.

Handler modules declare what they respond to with decorators:

    router = Router("buy")

    @router.command("buy")
    @router.callback("buy_token")
    async def cmd_buy(ctx, event, state): ...

    @router.step(BuyAmount, accepts=text)
    async def handle_buy_amount(ctx, event, state): ...

The dispatcher decides which registry to consult, in a fixed order.
"""

import logging
from typing import Awaitable, Callable, Optional

from forgebot.bot.events import Callback, Event, FreeformText, Reply, normalize_command
from forgebot.bot.states import WorkflowState, action_of

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[Reply]]
Predicate = Callable[[Event], bool]


def text(event: Event) -> bool:
    """Matches non-empty typed text."""
    return isinstance(event, FreeformText) and bool(event.value.strip())


def callbacks(*ids: str) -> Predicate:
    """Matches a button press with one of the given ids."""

    def predicate(event: Event) -> bool:
        return isinstance(event, Callback) and event.data in ids

    return predicate


def callback_prefix(*prefixes: str) -> Predicate:
    """Matches a button press starting with one of the prefixes."""

    def predicate(event: Event) -> bool:
        return isinstance(event, Callback) and event.data.startswith(prefixes)

    return predicate


def any_of(*predicates: Predicate) -> Predicate:
    def predicate(event: Event) -> bool:
        return any(p(event) for p in predicates)

    return predicate


class Router:
    """Registry of step, callback, command and address handlers."""

    def __init__(self, name: str = "router"):
        self.name = name
        self._steps: dict[str, list[tuple[Predicate, Handler]]] = {}
        self._callbacks: dict[str, Handler] = {}
        self._prefixes: list[tuple[str, Handler]] = []
        self._commands: dict[str, Handler] = {}
        self._address: Optional[Handler] = None

    # Registration
    def step(self, state_cls: type[WorkflowState], accepts: Predicate):
        """Handle events matching `accepts` while `state_cls` is active."""
        action = action_of(state_cls)

        def decorator(handler: Handler) -> Handler:
            self._steps.setdefault(action, []).append((accepts, handler))
            return handler

        return decorator

    def callback(self, *ids: str):
        """Handle global button presses with the given ids."""

        def decorator(handler: Handler) -> Handler:
            for callback_id in ids:
                self._register(self._callbacks, callback_id, handler, "callback")
            return handler

        return decorator

    def callback_prefix(self, prefix: str):
        """Handle global button presses starting with `prefix`."""

        def decorator(handler: Handler) -> Handler:
            self._prefixes.append((prefix, handler))
            return handler

        return decorator

    def command(self, *names: str):
        """Handle explicit commands."""

        def decorator(handler: Handler) -> Handler:
            for name in names:
                self._register(self._commands, normalize_command(name), handler, "command")
            return handler

        return decorator

    def address(self):
        """Handle a bare address typed while idle."""

        def decorator(handler: Handler) -> Handler:
            if self._address is not None:
                raise ValueError(f"Address handler already registered on {self.name}")
            self._address = handler
            return handler

        return decorator

    def include_router(self, router: "Router") -> None:
        """Merge another router's registrations into this one."""
        for action, entries in router._steps.items():
            self._steps.setdefault(action, []).extend(entries)
        for callback_id, handler in router._callbacks.items():
            self._register(self._callbacks, callback_id, handler, "callback")
        for name, handler in router._commands.items():
            self._register(self._commands, name, handler, "command")
        self._prefixes.extend(router._prefixes)
        if router._address is not None:
            if self._address is not None:
                raise ValueError(f"Address handler already registered on {self.name}")
            self._address = router._address
        logger.debug(f"Included router {router.name} into {self.name}")

    @staticmethod
    def _register(registry: dict, key: str, handler: Handler, kind: str) -> None:
        if key in registry and registry[key] is not handler:
            raise ValueError(f"Duplicate {kind} handler: {key}")
        registry[key] = handler

    # Resolution
    def resolve_step(self, state: WorkflowState, event: Event) -> Optional[Handler]:
        for accepts, handler in self._steps.get(state.action, []):
            if accepts(event):
                return handler
        return None

    def resolve_callback(self, data: str) -> Optional[Handler]:
        if data in self._callbacks:
            return self._callbacks[data]

        best: Optional[tuple[str, Handler]] = None
        for prefix, handler in self._prefixes:
            if data.startswith(prefix) and (best is None or len(prefix) > len(best[0])):
                best = (prefix, handler)
        return best[1] if best else None

    def resolve_command(self, name: str) -> Optional[Handler]:
        return self._commands.get(normalize_command(name))

    @property
    def address_handler(self) -> Optional[Handler]:
        return self._address
