"""
Confined execution context.

Every call into the access control implementation runs inside a confined
context: a frame pushed on a per-thread stack for the duration of the call.
Leaving the context truncates the stack back to its depth at entry, on
every exit path, so a failure inside can never leak a frame to the caller.

Usage:
    with ConfinedContext("check_can_drop_table"):
        assert is_confined()
        ...
    assert not is_confined()
"""

import threading
from dataclasses import dataclass
from typing import Any

PLUGIN_CONTEXT = "sqlwarden"

_local = threading.local()


@dataclass(frozen=True)
class ExecutionContext:
    """
    One frame of the confined context stack.

    Attributes:
        owner: Who established the context (the plugin)
        operation: The entry point being executed, if any
    """

    owner: str = PLUGIN_CONTEXT
    operation: str | None = None

    @property
    def name(self) -> str:
        if self.operation is None:
            return self.owner
        return f"{self.owner}:{self.operation}"


def _stack() -> list[ExecutionContext]:
    stack: list[ExecutionContext] | None = getattr(_local, "stack", None)
    if stack is None:
        stack = []
        _local.stack = stack
    return stack


def current_context() -> ExecutionContext | None:
    """The innermost active frame on this thread, or None."""
    stack = _stack()
    return stack[-1] if stack else None


def is_confined() -> bool:
    return bool(_stack())


def context_depth() -> int:
    return len(_stack())


class ConfinedContext:
    """
    Scoped guard that pushes an ExecutionContext frame.

    Nestable and re-entrant: each guard remembers the depth it saw on entry
    and restores exactly that depth on exit. Entry depths are kept per
    thread, so one guard may be entered from several threads at once.
    """

    def __init__(self, operation: str | None = None, owner: str = PLUGIN_CONTEXT) -> None:
        self.frame = ExecutionContext(owner=owner, operation=operation)
        self._local = threading.local()

    def _depths(self) -> list[int]:
        depths: list[int] | None = getattr(self._local, "depths", None)
        if depths is None:
            depths = []
            self._local.depths = depths
        return depths

    def __enter__(self) -> ExecutionContext:
        stack = _stack()
        self._depths().append(len(stack))
        stack.append(self.frame)
        return self.frame

    def __exit__(self, *args: Any) -> None:
        depth = self._depths().pop()
        del _stack()[depth:]
