"""
Node-level diffs between two versions of an itinerary.

Diffs are computed purely from document content and list items in day and
node order, so the same pair of documents always yields the same diff.
"""

from itinerary_planner.data.models import (
    DiffItem,
    ItineraryDiff,
    NormalizedItinerary,
    NormalizedNode,
)

# Node fields compared by the diff, with the names used on the wire
_COMPARED_FIELDS = {
    name: (info.alias or name)
    for name, info in NormalizedNode.model_fields.items()
    if name != "id"
}


def changed_fields(before: NormalizedNode, after: NormalizedNode) -> list[str]:
    """Return the wire names of node fields that differ."""
    old = before.model_dump(mode="json")
    new = after.model_dump(mode="json")
    return [wire for name, wire in _COMPARED_FIELDS.items() if old[name] != new[name]]


def _index(itinerary: NormalizedItinerary) -> dict[str, tuple[int, int, NormalizedNode]]:
    return {
        node.id: (day.day_number, index, node)
        for day in itinerary.days
        for index, node in enumerate(day.nodes)
    }


def compute_diff(
    before: NormalizedItinerary, after: NormalizedItinerary
) -> ItineraryDiff:
    """
    Compute the node-level difference between two itinerary versions.

    Args:
        before: Earlier version
        after: Later version

    Returns:
        Added, removed and updated nodes
    """
    old = _index(before)
    new = _index(after)
    diff = ItineraryDiff()

    for node_id, (day, index, node) in old.items():
        if node_id not in new:
            diff.removed.append(
                DiffItem(node_id=node_id, day=day, index=index, before=node.model_copy(deep=True))
            )

    for node_id, (day, index, node) in new.items():
        previous = old.get(node_id)
        if previous is None:
            diff.added.append(
                DiffItem(node_id=node_id, day=day, index=index, after=node.model_copy(deep=True))
            )
            continue

        fields = changed_fields(previous[2], node)
        if fields:
            diff.updated.append(
                DiffItem(
                    node_id=node_id,
                    day=day,
                    index=index,
                    fields=fields,
                    before=previous[2].model_copy(deep=True),
                    after=node.model_copy(deep=True),
                )
            )

    return diff


def summarize_diff(diff: ItineraryDiff) -> str:
    """One-line human summary of a diff."""
    parts = []
    if diff.added:
        parts.append(f"{len(diff.added)} added")
    if diff.removed:
        parts.append(f"{len(diff.removed)} removed")
    if diff.updated:
        parts.append(f"{len(diff.updated)} updated")
    return ", ".join(parts) or "no changes"
