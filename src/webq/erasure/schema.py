"""Static relationship graphs of the data each target kind owns.

Each collection names the collection its owning foreign key references.
The planner derives deletion order from these edges alone, so adding a
table to the portal means adding one entry here.
"""

from dataclasses import dataclass, field

from webq.erasure.types import BucketRef, TargetKind

BRAND_FILES = "brand-files"
DESIGN_FILES = "design-files"
PROJECT_FILES = "project-files"


@dataclass(frozen=True)
class CollectionSpec:
    """One collection and the edge that ties it to its owner."""

    name: str
    """Table name."""

    parent: str | None
    """Collection referenced by ``column``; None only for the root."""

    column: str = "id"
    """Column holding the parent's key (the target id for root children)."""

    key: str = "id"
    """Primary key other collections reference."""

    bucket_refs: tuple[BucketRef, ...] = ()
    """Columns pointing at binary objects that must go before the row."""


@dataclass(frozen=True)
class RelationshipGraph:
    """Ownership graph rooted at the target's identity."""

    target_kind: TargetKind
    root: str
    collections: tuple[CollectionSpec, ...]
    virtual_root: bool = False
    """True when the root has no backing table (anonymous sessions)."""

    _by_name: dict[str, CollectionSpec] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", {c.name: c for c in self.collections})

    def get(self, name: str) -> CollectionSpec | None:
        return self._by_name.get(name)

    def children_of(self, name: str) -> list[CollectionSpec]:
        return [c for c in self.collections if c.parent == name]


ACCOUNT_GRAPH = RelationshipGraph(
    target_kind=TargetKind.ACCOUNT,
    root="accounts",
    collections=(
        CollectionSpec("accounts", parent=None),
        CollectionSpec("profiles", parent="accounts", column="user_id"),
        CollectionSpec("user_roles", parent="accounts", column="user_id"),
        CollectionSpec("notifications", parent="accounts", column="user_id"),
        CollectionSpec(
            "client_onboarding",
            parent="accounts",
            column="user_id",
            bucket_refs=(BucketRef(column="logo_url", buckets=(BRAND_FILES,)),),
        ),
        CollectionSpec("timeline_messages", parent="accounts", column="client_id"),
        CollectionSpec("client_projects", parent="accounts", column="client_id"),
        CollectionSpec("project_tickets", parent="client_projects", column="project_id"),
        CollectionSpec("ticket_messages", parent="project_tickets", column="ticket_id"),
        CollectionSpec("project_credentials", parent="client_projects", column="project_id"),
        CollectionSpec(
            "project_files",
            parent="client_projects",
            column="project_id",
            bucket_refs=(BucketRef(column="file_url", buckets=(PROJECT_FILES,)),),
        ),
        CollectionSpec("design_orders", parent="accounts", column="client_id"),
        CollectionSpec("design_deliveries", parent="design_orders", column="order_id"),
        CollectionSpec(
            "design_delivery_files",
            parent="design_deliveries",
            column="delivery_id",
            bucket_refs=(BucketRef(column="file_url", buckets=(DESIGN_FILES, BRAND_FILES)),),
        ),
        CollectionSpec("design_feedback", parent="design_deliveries", column="delivery_id"),
    ),
)

SESSION_GRAPH = RelationshipGraph(
    target_kind=TargetKind.SESSION,
    root="consent_sessions",
    virtual_root=True,
    collections=(
        CollectionSpec("consent_sessions", parent=None),
        CollectionSpec("cookie_consent_logs", parent="consent_sessions", column="session_id"),
    ),
)

GRAPHS: dict[TargetKind, RelationshipGraph] = {
    TargetKind.ACCOUNT: ACCOUNT_GRAPH,
    TargetKind.SESSION: SESSION_GRAPH,
}
