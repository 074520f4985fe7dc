"""Organisation identity for RPC calls."""

from .context import (
    ORG_HEADER,
    OrgContext,
    clear_current_org,
    get_current_org,
    load_persisted_org,
    resolve_org_id,
    save_persisted_org,
    set_current_org,
)

__all__ = [
    "ORG_HEADER",
    "OrgContext",
    "clear_current_org",
    "get_current_org",
    "load_persisted_org",
    "resolve_org_id",
    "save_persisted_org",
    "set_current_org",
]
