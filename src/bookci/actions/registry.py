# actions/registry.py
from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict, Iterator, Optional

from ..errors import CIError
from ..model import Step

if TYPE_CHECKING:
    from ..steps import StepContext

ActionHandler = Callable[["StepContext"], None]


class ActionRegistry:
    """
    Maps action names ("owner/repo", no @version) to handlers.

    Usage:
        registry = ActionRegistry()

        @registry.register("actions/checkout")
        def checkout(sc: StepContext) -> None: ...
    """

    def __init__(self, handlers: Optional[Dict[str, ActionHandler]] = None):
        self._handlers: Dict[str, ActionHandler] = dict(handlers or {})

    def register(self, name: str, handler: Optional[ActionHandler] = None):
        if handler is None:
            def decorator(fn: ActionHandler) -> ActionHandler:
                self._handlers[name] = fn
                return fn
            return decorator
        self._handlers[name] = handler
        return handler

    def __contains__(self, name: str) -> bool:
        return name in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._handlers))

    def copy(self) -> "ActionRegistry":
        return ActionRegistry(self._handlers)

    def resolve(self, step: Step, *, job: str) -> ActionHandler:
        name = step.action
        handler = self._handlers.get(name or "")
        if handler is None:
            raise CIError(
                kind="UnknownAction",
                job=job,
                step=step.label,
                message=f"No handler registered for action {step.uses!r}",
                details={"known_actions": list(self)},
            )
        return handler
