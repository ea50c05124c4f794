"""
=============================================================================
LIFECYCLE HANDLERS
=============================================================================

The two endpoints a scheduler uses to end a task:

    POST /quitquitquit       "Please wind down."
                             Runs the process's on_quit hook and answers
                             200 "OK". The admin server keeps running; the
                             process decides when to exit.

    GET|POST /abortabortabort
                             "Stop now."
                             Runs on_abort, answers 200 "OK" with
                             Connection: close, then shuts the admin
                             server down on a background thread.

=============================================================================
HOOKS
=============================================================================

A Hook is an optional zero-argument action:

    Hook(flush_and_exit)     present: calling the hook runs the action
    Hook.none()              absent: calling the hook does nothing

Nothing stops a scheduler from sending quitquitquit twice; the hook runs
each time. Actions that must only happen once have to guard themselves.

If a hook raises, the request gets 500 and, for abort, the server is NOT
shut down: the process was asked to stop and couldn't, and the scheduler
should see that.

=============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, ok


logger = logging.getLogger(__name__)


Action = Callable[[], None]


class Hook:
    """
    An optional lifecycle action.

        hook = Hook(lambda: print("bye"))
        hook.present   # True
        hook()         # prints "bye"

        Hook.none()()  # does nothing
    """

    __slots__ = ("_action",)

    def __init__(self, action: Optional[Action] = None):
        if action is not None and not callable(action):
            raise TypeError(f"Hook action must be callable, got {action!r}")
        self._action = action

    @classmethod
    def none(cls) -> "Hook":
        return cls(None)

    @classmethod
    def of(cls, action: "Optional[Action | Hook]") -> "Hook":
        """Wrap a callable (or pass a Hook through)."""
        if isinstance(action, Hook):
            return action
        return cls(action)

    @property
    def present(self) -> bool:
        return self._action is not None

    def __call__(self) -> None:
        if self._action is not None:
            self._action()

    def __repr__(self) -> str:
        if self._action is None:
            return "Hook.none()"
        return f"Hook({getattr(self._action, '__name__', self._action)!r})"


@dataclass(frozen=True)
class LifecycleHooks:
    """The process's quit and abort actions. Either may be absent."""

    on_quit: Hook = field(default_factory=Hook.none)
    on_abort: Hook = field(default_factory=Hook.none)

    @classmethod
    def of(
        cls,
        on_quit: "Optional[Action | Hook]" = None,
        on_abort: "Optional[Action | Hook]" = None,
    ) -> "LifecycleHooks":
        return cls(on_quit=Hook.of(on_quit), on_abort=Hook.of(on_abort))


class QuitHandler:
    """POST /quitquitquit"""

    def __init__(self, hook: Hook):
        self.hook = hook

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        logger.info(f"Quit requested by {request.client_address[0] or 'unknown client'}")
        self.hook()
        return ok()


class AbortHandler:
    """
    /abortabortabort

    shutdown is called after the hook and must not block: the admin server
    passes HTTPServer.close_async, so the worker running this handler can
    still write the response while the server drains.
    """

    def __init__(self, hook: Hook, shutdown: Callable[[], object]):
        self.hook = hook
        self.shutdown = shutdown

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        logger.warning(f"Abort requested by {request.client_address[0] or 'unknown client'}")
        self.hook()
        self.shutdown()
        return ResponseBuilder().text("OK").close_connection().build()
