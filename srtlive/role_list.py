"""A thread-safe queue of roles waiting to be taken over."""

from __future__ import annotations

import logging
import threading
from collections import deque

from .role import Role

logger = logging.getLogger(__name__)


class RoleList:
    """First-in first-out list of roles, safe to share between threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._roles: deque[Role] = deque()

    def __len__(self) -> int:
        with self._lock:
            return len(self._roles)

    def push(self, role: Role | None) -> None:
        """Append ``role``; None is ignored."""
        if role is None:
            return
        with self._lock:
            self._roles.append(role)

    def pop(self) -> Role | None:
        """Remove and return the oldest role, or None when empty."""
        with self._lock:
            return self._roles.popleft() if self._roles else None

    def erase(self) -> None:
        """Uninitialise every role and empty the list."""
        with self._lock:
            logger.debug("erase, count=%d", len(self._roles))
            for role in self._roles:
                role.uninit()
            self._roles.clear()