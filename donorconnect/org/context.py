"""
Organisation context for DonorConnect.

Every call to the AI endpoint carries the organisation it acts for, both
as an ``orgId`` parameter and as the ``x-org-id`` header.  The id comes
from, in order:

    1. an explicit argument,
    2. the current context (``OrgContext`` / ``set_current_org``),
    3. the org id persisted by the last ``donorconnect org set``,
    4. ``settings.DEFAULT_ORG_ID``.

Example:
    from donorconnect.org.context import OrgContext, resolve_org_id

    with OrgContext("org_12345"):
        resolve_org_id()  # "org_12345"

    resolve_org_id("org_999")  # explicit always wins
"""

from __future__ import annotations

import logging
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Any

from donorconnect.config.settings import settings

logger = logging.getLogger(__name__)

ORG_HEADER = "x-org-id"

_current_org: ContextVar[str | None] = ContextVar("current_org", default=None)


def get_current_org() -> str | None:
    """Get the org id set for the current execution context, if any."""
    return _current_org.get()


def set_current_org(org_id: str | None) -> Token[str | None]:
    """Set the org id for the current context.

    Returns:
        A Token that can be passed to ``_current_org.reset``.
    """
    logger.debug("Setting current org to: %s", org_id)
    return _current_org.set(org_id)


def clear_current_org() -> None:
    _current_org.set(None)


def load_persisted_org(path: str | Path | None = None) -> str | None:
    """Read the org id saved by the last ``save_persisted_org`` call.

    Returns None when nothing usable is stored.
    """
    path = Path(path) if path is not None else settings.ORG_ID_FILE
    try:
        value = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("Could not read persisted org id from %s: %s", path, exc)
        return None
    return value or None


def save_persisted_org(org_id: str, path: str | Path | None = None) -> None:
    """Persist *org_id* so later sessions default to it."""
    if not org_id.strip():
        raise ValueError("org_id must not be empty")
    path = Path(path) if path is not None else settings.ORG_ID_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(org_id.strip() + "\n", encoding="utf-8")
    logger.info("Persisted current org %s to %s", org_id, path)


def resolve_org_id(explicit: str | None = None, *, path: str | Path | None = None) -> str:
    """Resolve the organisation id for an outgoing call."""
    if explicit:
        return explicit
    current = get_current_org()
    if current:
        return current
    return load_persisted_org(path) or settings.DEFAULT_ORG_ID


class OrgContext:
    """Context manager for org-scoped operations.

    Usable both as a synchronous and an asynchronous context manager;
    the previous org is restored on exit, so contexts nest.
    """

    def __init__(self, org_id: str) -> None:
        self._org_id = org_id
        self._token: Token[str | None] | None = None

    @property
    def org_id(self) -> str:
        return self._org_id

    def __enter__(self) -> "OrgContext":
        self._token = _current_org.set(self._org_id)
        logger.debug("Entered org context: %s", self._org_id)
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any | None,
    ) -> None:
        if self._token is not None:
            _current_org.reset(self._token)
            self._token = None
        logger.debug("Exited org context: %s", self._org_id)

    async def __aenter__(self) -> "OrgContext":
        return self.__enter__()

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any | None,
    ) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)
