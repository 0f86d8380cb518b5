"""Merge policy shared by the sync engine and the local import path.

The policy is a pure function of the local record, the remote listing entry
and (once fetched) the remote content. Merging works on the camelCase
storage documents: nested mappings are merged key by key, every other value,
lists included, is replaced wholesale.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from .contracts import Decision, RemoteEntry, WorkflowRecord

_KEY_ALIASES = {"drawflow": "graph"}


def decide(
    local: Optional[WorkflowRecord],
    entry: Optional[RemoteEntry] = None,
    *,
    remote_fingerprint: Optional[str] = None,
    remote_updated_at: Optional[int] = None,
    check_update_date: bool = False,
) -> Decision:
    """Decide what to do with a remote workflow.

    Args:
        local: Current local record, ``None`` when the id is unknown locally.
        entry: Listing entry; its ``fingerprint`` is only a hint.
        remote_fingerprint: Fingerprint recomputed from fetched content. When
            given it is authoritative and the listing hint is ignored.
        remote_updated_at: Update time reported with the content. Falls back
            to the listing entry's ``updated_at``.
        check_update_date: Apply the recency gate.

    Returns:
        ``Decision.FETCH`` when content is needed before a final decision.
    """
    if local is None:
        return Decision.INSERT

    if remote_fingerprint is None:
        hint = entry.fingerprint if entry is not None else None
        if hint is not None and hint == local.fingerprint:
            return Decision.SKIP
        return Decision.FETCH

    if remote_fingerprint == local.fingerprint:
        return Decision.SKIP

    if remote_updated_at is None and entry is not None:
        remote_updated_at = entry.updated_at
    if (
        check_update_date
        and remote_updated_at is not None
        and not local.updated_at < remote_updated_at
    ):
        return Decision.SKIP

    if local.diverged:
        return Decision.UPDATE_WITH_GRAPH_MERGE
    return Decision.UPDATE


def _is_unset(value: Any) -> bool:
    return value is None or value == ""


def deep_merge(base: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Return ``base`` overlaid with ``patch``; lists are replaced, not joined."""
    merged = copy.deepcopy(dict(base))
    for key, value in patch.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def fill_missing(base: Mapping[str, Any], extra: Mapping[str, Any]) -> Dict[str, Any]:
    """Return ``base`` with absent or unset values taken from ``extra``."""
    merged = copy.deepcopy(dict(base))
    for key, value in extra.items():
        current = merged.get(key)
        if key not in merged or _is_unset(current):
            merged[key] = copy.deepcopy(value)
        elif isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = fill_missing(current, value)
    return merged


def normalize_patch(patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate a patch to storage keys (camelCase, ``graph`` for ``drawflow``)."""
    normalized: Dict[str, Any] = {}
    for key, value in patch.items():
        key = _KEY_ALIASES.get(key, key)
        if "_" in key:
            key = to_camel(key)
        if isinstance(value, BaseModel):
            value = value.model_dump(by_alias=True, mode="json")
        normalized[key] = value
    return normalized


def _provided_fields(model: BaseModel) -> Dict[str, Any]:
    data = model.model_dump(by_alias=True, mode="json", exclude_unset=True)
    for key, value in (model.model_extra or {}).items():
        data.setdefault(key, value)
    return data


def remote_fields(remote: WorkflowRecord) -> Dict[str, Any]:
    """Fields actually supplied by a remote payload, in storage form.

    Derived values (``fingerprint``, ``syncedFingerprint``) are never taken
    from the remote side.
    """
    data = _provided_fields(remote)
    if "graph" in remote.model_fields_set:
        data["graph"] = remote.graph.model_dump(mode="json")
    if "settings" in remote.model_fields_set:
        data["settings"] = _provided_fields(remote.settings)
    data.pop("fingerprint", None)
    data.pop("syncedFingerprint", None)
    return data


def merge_records(
    local: WorkflowRecord, remote: WorkflowRecord, decision: Decision
) -> WorkflowRecord:
    """Apply an admitted remote version onto ``local``.

    ``UPDATE`` overlays every field the remote supplied. With
    ``UPDATE_WITH_GRAPH_MERGE`` (both sides changed) local values win
    wherever they are set and the remote only fills gaps, except ``graph``
    which always comes from the remote. The local ``id`` and ``createdAt``
    are kept in both cases.
    """
    local_data = local.to_storage()
    incoming = remote_fields(remote)

    if decision is Decision.UPDATE:
        merged = deep_merge(local_data, incoming)
    elif decision is Decision.UPDATE_WITH_GRAPH_MERGE:
        merged = fill_missing(local_data, incoming)
        if "graph" in incoming:
            merged["graph"] = copy.deepcopy(incoming["graph"])
    else:
        raise ValueError(f"Cannot merge with decision {decision.value!r}")

    merged["id"] = local.id
    merged["createdAt"] = local.created_at
    return WorkflowRecord.from_storage(merged)
