"""Dependency-ordered deletion planning.

A collection's tier is its height in the ownership graph: collections
nothing references are tier 0, and every other collection sits one tier
above the highest of the collections that reference it. Deleting tier by
tier therefore never removes a row while a dependent row still exists,
and the identity record ends up alone in the final tier.
"""

import structlog

from webq.erasure.schema import GRAPHS, CollectionSpec, RelationshipGraph
from webq.erasure.types import (
    DeletionPlan,
    DeletionStep,
    DeletionTier,
    RelationshipGraphError,
    RowSelector,
    SelectorLink,
    SessionTarget,
    TargetKind,
    TenantTarget,
)

logger = structlog.get_logger()


class DependencyPlanner:
    """Turns a target into a tiered deletion plan.

    Planning is pure: the same target always yields the same plan.
    """

    def __init__(self, graphs: dict[TargetKind, RelationshipGraph] | None = None):
        self._graphs = graphs or GRAPHS

    def plan(self, target: TenantTarget | SessionTarget) -> DeletionPlan:
        """Build the deletion plan for ``target``.

        Args:
            target: Account or session to erase

        Returns:
            Plan whose tiers must run in order

        Raises:
            RelationshipGraphError: If the graph for the target kind is malformed
        """
        graph = self._graphs.get(target.kind)
        if graph is None:
            raise RelationshipGraphError(f"No relationship graph for {target.kind.value}")

        heights = compute_heights(graph)

        by_height: dict[int, list[DeletionStep]] = {}
        for spec in graph.collections:
            if spec.name == graph.root and graph.virtual_root:
                continue
            step = DeletionStep(
                collection=spec.name,
                selector=RowSelector(
                    links=self._selector_links(graph, spec),
                    target_value=target.target_id,
                ),
                bucket_refs=spec.bucket_refs,
                identity=spec.name == graph.root,
            )
            by_height.setdefault(heights[spec.name], []).append(step)

        tiers = tuple(
            DeletionTier(
                index=index,
                steps=tuple(sorted(by_height[height], key=lambda s: s.collection)),
            )
            for index, height in enumerate(sorted(by_height))
        )

        logger.debug(
            "deletion_plan_built",
            target_kind=target.kind.value,
            tiers=len(tiers),
            steps=sum(len(t.steps) for t in tiers),
        )
        return DeletionPlan(target_kind=target.kind, target_id=target.target_id, tiers=tiers)

    def _selector_links(
        self, graph: RelationshipGraph, spec: CollectionSpec
    ) -> tuple[SelectorLink, ...]:
        if spec.parent is None:
            return (SelectorLink(collection=spec.name, column=spec.key, key=spec.key),)

        links: list[SelectorLink] = []
        current: CollectionSpec | None = spec
        while current is not None and current.parent is not None:
            links.append(SelectorLink(collection=current.name, column=current.column, key=current.key))
            current = graph.get(current.parent)
        return tuple(links)


def compute_heights(graph: RelationshipGraph) -> dict[str, int]:
    """Height of every collection in the ownership graph.

    Raises:
        RelationshipGraphError: On duplicate names, a missing or extra root,
            a dangling parent, a cycle, or a collection cut off from the root
    """
    names = [c.name for c in graph.collections]
    if len(names) != len(set(names)):
        raise RelationshipGraphError("Duplicate collection names in relationship graph")

    roots = [c.name for c in graph.collections if c.parent is None]
    if roots != [graph.root]:
        raise RelationshipGraphError(
            f"Relationship graph must have exactly one root '{graph.root}', found {roots}"
        )

    for spec in graph.collections:
        if spec.parent is not None and graph.get(spec.parent) is None:
            raise RelationshipGraphError(
                f"Collection '{spec.name}' references unknown collection '{spec.parent}'"
            )

    for spec in graph.collections:
        seen = {spec.name}
        current = spec
        while current.parent is not None:
            if current.parent in seen:
                raise RelationshipGraphError(f"Cycle through '{current.parent}'")
            seen.add(current.parent)
            current = graph.get(current.parent)
        if current.name != graph.root:
            raise RelationshipGraphError(f"Collection '{spec.name}' does not reach the root")

    heights: dict[str, int] = {}

    def height(name: str) -> int:
        if name not in heights:
            children = graph.children_of(name)
            heights[name] = 1 + max(height(c.name) for c in children) if children else 0
        return heights[name]

    for spec in graph.collections:
        height(spec.name)
    return heights
