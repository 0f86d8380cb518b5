"""Core data contracts for the flowsync engine."""

from __future__ import annotations

import json
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .constants import DEFAULT_GLOBAL_DATA, TRIGGER_LABEL, VERSION
from .fingerprint import fingerprint as compute_fingerprint


def now_ms() -> int:
    """Current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def to_millis(value: Any) -> Optional[int]:
    """Coerce a timestamp (epoch ms, ISO string or datetime) to epoch ms."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("timestamp must not be a boolean")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
        return to_millis(datetime.fromisoformat(text.replace("Z", "+00:00")))
    raise ValueError(f"Unsupported timestamp value: {value!r}")


class WorkflowGraph(BaseModel):
    """Node/edge content of a workflow as produced by the editor."""

    model_config = ConfigDict(extra="allow")

    nodes: List[Dict[str, Any]] = Field(default_factory=list)
    edges: List[Dict[str, Any]] = Field(default_factory=list)
    zoom: float = 1.3


class WorkflowSettings(BaseModel):
    """Execution options of a workflow. Unrecognized options are preserved."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    public_id: str = ""
    block_delay: int = 0
    save_log: bool = True
    debug_mode: bool = False
    restart_times: int = 3
    notification: bool = True
    exec_context: str = "popup"
    reuse_last_state: bool = False
    input_autocomplete: bool = True
    on_error: str = "stop-workflow"
    executed_block_on_web: bool = False
    insert_default_column: bool = False
    default_column_name: str = "column"


class WorkflowRecord(BaseModel):
    """A locally stored workflow definition, the unit of synchronization.

    ``fingerprint`` is derived from ``graph`` whenever a record is built and
    is never taken from input. ``synced_fingerprint`` remembers the graph
    last admitted from the remote catalog, so a record whose fingerprint has
    moved away from it was edited locally since the last sync.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    id: str
    name: str = ""
    icon: str = "riGlobalLine"
    folder_id: Optional[str] = None
    description: str = ""
    content: Optional[Any] = None
    connected_table: Optional[Any] = None
    graph: WorkflowGraph = Field(
        default_factory=WorkflowGraph,
        validation_alias=AliasChoices("graph", "drawflow"),
    )
    table: List[Any] = Field(default_factory=list)
    data_columns: List[Any] = Field(default_factory=list)
    trigger: Optional[Any] = None
    settings: WorkflowSettings = Field(default_factory=WorkflowSettings)
    global_data: str = DEFAULT_GLOBAL_DATA
    version: str = VERSION
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    is_disabled: bool = False
    fingerprint: str = ""
    synced_fingerprint: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _drop_legacy_hash(cls, data: Any) -> Any:
        if isinstance(data, dict) and "contentHash" in data:
            data = {k: v for k, v in data.items() if k != "contentHash"}
        return data

    @field_validator("graph", mode="before")
    @classmethod
    def _decode_graph(cls, value: Any) -> Any:
        if value is None or value == "":
            return WorkflowGraph()
        if isinstance(value, str):
            return json.loads(value)
        return value

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Any:
        millis = to_millis(value)
        return now_ms() if millis is None else millis

    @model_validator(mode="after")
    def _derive_fingerprint(self) -> "WorkflowRecord":
        self.refresh_fingerprint()
        return self

    def refresh_fingerprint(self) -> str:
        """Recompute and store the fingerprint of the current graph."""
        self.fingerprint = compute_fingerprint(self.graph)
        return self.fingerprint

    @property
    def diverged(self) -> bool:
        """``True`` when the graph changed locally since the last sync."""
        return (
            self.synced_fingerprint is not None
            and self.synced_fingerprint != self.fingerprint
        )

    def trigger_node(self) -> Optional[Dict[str, Any]]:
        """Return the designated trigger node of the graph, if any."""
        return next(
            (node for node in self.graph.nodes if node.get("label") == TRIGGER_LABEL),
            None,
        )

    def to_storage(self) -> Dict[str, Any]:
        """Serialize to the camelCase document kept in durable storage."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_storage(cls, data: Dict[str, Any]) -> "WorkflowRecord":
        return cls.model_validate(data)


class RemoteEntry(BaseModel):
    """One item of the remote catalog listing."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    content_location: str = Field(
        validation_alias=AliasChoices(
            "contentLocation", "content_location", "url", "name"
        )
    )
    fingerprint: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("fingerprint", "contentHash")
    )
    updated_at: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("updatedAt", "updated_at")
    )

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("updated_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Any:
        return to_millis(value)


class Decision(str, Enum):
    """Outcome of the merge policy for one remote entry."""

    SKIP = "skip"
    INSERT = "insert"
    UPDATE = "update"
    UPDATE_WITH_GRAPH_MERGE = "update_with_graph_merge"
    # The listing hint was not conclusive; fetch content and decide again.
    FETCH = "fetch"


class SyncReport(BaseModel):
    """Outcome of one reconciliation pass."""

    reason: str = "manual"
    started_at: int = Field(default_factory=now_ms)
    finished_at: Optional[int] = None
    inserted: List[str] = Field(default_factory=list)
    updated: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
    trigger_failures: Dict[str, str] = Field(default_factory=dict)
    fetches: int = 0
    listing_error: Optional[str] = None
    persist_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not (
            self.failed
            or self.trigger_failures
            or self.listing_error
            or self.persist_error
        )

    def summary(self) -> str:
        return (
            f"inserted={len(self.inserted)} updated={len(self.updated)} "
            f"skipped={len(self.skipped)} failed={len(self.failed)}"
        )
