"""
Change engine for itinerary edits.

The engine validates and applies ChangeSets to an in-memory itinerary. It
performs no I/O and is deterministic: `propose` and `apply` run the same
transformation on a deep copy, so for identical inputs they produce
identical documents and identical diffs. A ChangeSet is all-or-nothing;
any failing operation raises before the caller's document is touched.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from itinerary_planner.changes.diff import compute_diff
from itinerary_planner.changes.node_ids import all_node_ids, allocate_node_id
from itinerary_planner.data.models import (
    ChangeOperation,
    ChangeScope,
    ChangeSet,
    Edge,
    ItineraryDiff,
    NodeTiming,
    NormalizedDay,
    NormalizedItinerary,
    NormalizedNode,
    OperationKind,
)
from itinerary_planner.utils.error_handling import (
    LockedNodeError,
    NotFoundError,
    ValidationError,
)
from itinerary_planner.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProposeResult:
    """Dry-run outcome of a ChangeSet."""

    proposed: NormalizedItinerary
    diff: ItineraryDiff
    preview_version: int


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of applying a ChangeSet."""

    itinerary: NormalizedItinerary
    diff: ItineraryDiff
    from_version: int
    to_version: int


@dataclass(frozen=True)
class UndoResult:
    """Outcome of restoring an earlier version."""

    itinerary: NormalizedItinerary
    diff: ItineraryDiff
    from_version: int
    to_version: int
    restored_version: int


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _validate_timing(node_id: str, start: datetime | None, end: datetime | None) -> None:
    if start is not None and end is not None and end <= start:
        raise ValidationError(
            f"Node '{node_id}' must start before it ends "
            f"({start.isoformat()} >= {end.isoformat()})"
        )


def _timing(
    start: datetime | None, end: datetime | None, duration_min: int | None = None
) -> NodeTiming:
    if start is not None and end is not None:
        duration_min = None
    return NodeTiming(start_time=start, end_time=end, duration_min=duration_min)


# --- Day primitives shared by apply and apply_diff ---


def insert_node(day: NormalizedDay, node: NormalizedNode, index: int) -> None:
    """
    Insert a node at a position, splitting the transit edge it lands on.

    Days without edges stay without edges.
    """
    previous = day.nodes[index - 1] if index > 0 else None
    following = day.nodes[index] if index < len(day.nodes) else None
    day.nodes.insert(index, node)

    if not day.edges:
        return
    if previous is not None and following is not None:
        day.edges = [
            e for e in day.edges if not (e.from_id == previous.id and e.to_id == following.id)
        ]
    if previous is not None:
        day.edges.append(Edge(from_id=previous.id, to_id=node.id))
    if following is not None:
        day.edges.append(Edge(from_id=node.id, to_id=following.id))
    _sort_edges(day)


def remove_node(day: NormalizedDay, node_id: str) -> NormalizedNode:
    """
    Remove a node and every edge touching it, relinking its neighbours.
    """
    index = day.node_index(node_id)
    node = day.nodes.pop(index)

    incoming = [e for e in day.edges if e.to_id == node_id]
    outgoing = [e for e in day.edges if e.from_id == node_id]
    day.edges = [e for e in day.edges if node_id not in (e.from_id, e.to_id)]

    if incoming and outgoing:
        source, target = incoming[0].from_id, outgoing[0].to_id
        if not any(e.from_id == source and e.to_id == target for e in day.edges):
            day.edges.append(Edge(from_id=source, to_id=target))
            _sort_edges(day)
    return node


def _sort_edges(day: NormalizedDay) -> None:
    order = {node.id: i for i, node in enumerate(day.nodes)}
    day.edges.sort(key=lambda e: (order.get(e.from_id, -1), order.get(e.to_id, -1)))


def apply_diff(itinerary: NormalizedItinerary, diff: ItineraryDiff) -> NormalizedItinerary:
    """
    Apply a node-level diff to a copy of an itinerary.

    Removed nodes are unlinked, updated nodes take their `after` content and
    added nodes are inserted at their recorded day and index.

    Raises:
        NotFoundError: If the diff references a day or node that is missing
    """
    result = itinerary.model_copy(deep=True)

    for item in diff.removed:
        day = result.find_day(item.day)
        if day is None or day.node_index(item.node_id) < 0:
            raise NotFoundError(f"Node '{item.node_id}' not found on day {item.day}")
        remove_node(day, item.node_id)

    for item in diff.updated:
        day = result.find_day(item.day)
        index = day.node_index(item.node_id) if day else -1
        if day is None or index < 0 or item.after is None:
            raise NotFoundError(f"Node '{item.node_id}' not found on day {item.day}")
        day.nodes[index] = item.after.model_copy(deep=True)

    for item in sorted(diff.added, key=lambda i: (i.day, i.index)):
        day = result.find_day(item.day)
        if day is None or item.after is None:
            raise NotFoundError(f"Day {item.day} not found")
        insert_node(day, item.after.model_copy(deep=True), min(item.index, len(day.nodes)))

    for day in result.days:
        day.recompute_totals()
    return result


class ChangeEngine:
    """Validates and applies ChangeSets; undoes to retained revisions."""

    def propose(
        self, itinerary: NormalizedItinerary, change_set: ChangeSet
    ) -> ProposeResult:
        """
        Compute what a ChangeSet would do without committing anything.

        Raises:
            ValidationError, NotFoundError, LockedNodeError: As for `apply`
        """
        proposed, diff = self._transform(itinerary, change_set)
        return ProposeResult(proposed=proposed, diff=diff, preview_version=proposed.version)

    def apply(
        self, itinerary: NormalizedItinerary, change_set: ChangeSet
    ) -> ApplyResult:
        """
        Apply a ChangeSet, producing the next version of the itinerary.

        Args:
            itinerary: Current version (left untouched)
            change_set: Operations to apply, in order

        Returns:
            The new itinerary at version + 1 and the diff

        Raises:
            ValidationError: If an operation is malformed
            NotFoundError: If a referenced day or node does not exist
            LockedNodeError: If an operation targets a locked node while
                locks are respected
        """
        updated, diff = self._transform(itinerary, change_set)
        logger.debug(
            f"Applied {len(change_set.ops)} ops to {itinerary.itinerary_id} "
            f"(v{itinerary.version} -> v{updated.version})"
        )
        return ApplyResult(
            itinerary=updated,
            diff=diff,
            from_version=itinerary.version,
            to_version=updated.version,
        )

    def undo(
        self, current: NormalizedItinerary, target: NormalizedItinerary
    ) -> UndoResult:
        """
        Restore the content of an earlier version as a new version.

        Args:
            current: Latest version
            target: Retained snapshot of the version to restore

        Returns:
            The restored content at current.version + 1

        Raises:
            ValidationError: If target is not an earlier version of current
        """
        if target.itinerary_id != current.itinerary_id:
            raise ValidationError("Cannot restore a revision of another itinerary")
        if target.version >= current.version:
            raise ValidationError(
                f"Can only undo to an earlier version (current {current.version}, "
                f"requested {target.version})"
            )

        restored = target.model_copy(deep=True)
        restored.version = current.version + 1
        restored.agents = {
            name: status.model_copy(deep=True) for name, status in current.agents.items()
        }
        restored.generation = current.generation.model_copy(deep=True)
        restored.created_at = current.created_at
        restored.updated_at = current.updated_at

        # Keep id counters ahead of anything ever allocated
        current_seq = {day.day_number: day.node_seq for day in current.days}
        for day in restored.days:
            day.node_seq = max(day.node_seq, current_seq.get(day.day_number, 0))

        diff = compute_diff(current, restored)
        return UndoResult(
            itinerary=restored,
            diff=diff,
            from_version=current.version,
            to_version=restored.version,
            restored_version=target.version,
        )

    # --- Transformation ---

    def _transform(
        self, itinerary: NormalizedItinerary, change_set: ChangeSet
    ) -> tuple[NormalizedItinerary, ItineraryDiff]:
        if not change_set.ops:
            raise ValidationError("ChangeSet has no operations")
        if change_set.scope == ChangeScope.DAY:
            if change_set.day is None:
                raise ValidationError("A day-scoped ChangeSet needs a day number")
            if itinerary.find_day(change_set.day) is None:
                raise NotFoundError(f"Day {change_set.day} not found")

        working = itinerary.model_copy(deep=True)
        taken = all_node_ids(working)
        for position, op in enumerate(change_set.ops):
            try:
                self._apply_op(working, change_set, op, taken)
            except (ValidationError, NotFoundError, LockedNodeError):
                logger.debug(f"Operation {position} ({op.op.value}) rejected")
                raise

        for day in working.days:
            day.recompute_totals()
        working.version = itinerary.version + 1
        return working, compute_diff(itinerary, working)

    def _locate(
        self, working: NormalizedItinerary, change_set: ChangeSet, node_id: str | None
    ) -> tuple[NormalizedDay, int]:
        if not node_id:
            raise ValidationError("Operation is missing a node id")

        if change_set.scope == ChangeScope.DAY:
            day = working.find_day(change_set.day)
            index = day.node_index(node_id) if day else -1
            if day is None or index < 0:
                raise NotFoundError(
                    f"Node '{node_id}' not found on day {change_set.day}"
                )
            return day, index

        found = working.find_node(node_id)
        if found is None:
            raise NotFoundError(f"Node '{node_id}' not found")
        day = found[0]
        return day, day.node_index(node_id)

    @staticmethod
    def _check_lock(node: NormalizedNode, op: ChangeOperation, change_set: ChangeSet) -> None:
        if node.locked and change_set.preferences.respect_locks:
            raise LockedNodeError(node.id, op.op.value)

    def _apply_op(
        self,
        working: NormalizedItinerary,
        change_set: ChangeSet,
        op: ChangeOperation,
        taken: set[str],
    ) -> None:
        if op.op == OperationKind.INSERT:
            self._insert(working, change_set, op, taken)
        elif op.op == OperationKind.DELETE:
            self._delete(working, change_set, op)
        elif op.op == OperationKind.MOVE:
            self._move(working, change_set, op)
        elif op.op == OperationKind.REPLACE:
            self._replace(working, change_set, op)
        else:
            raise ValidationError(f"Unsupported operation '{op.op}'")

    def _insert(
        self,
        working: NormalizedItinerary,
        change_set: ChangeSet,
        op: ChangeOperation,
        taken: set[str],
    ) -> None:
        if op.node is None:
            raise ValidationError("Insert requires a node payload")
        if op.after and op.at_day_start:
            raise ValidationError("Insert takes either 'after' or 'atDayStart', not both")

        if op.after:
            day, anchor = self._locate(working, change_set, op.after)
            index = anchor + 1
        elif op.at_day_start:
            day = working.find_day(change_set.day) if change_set.day is not None else None
            if day is None:
                raise ValidationError("Inserting at day start needs an existing day")
            index = 0
        else:
            raise ValidationError("Insert requires an anchor ('after' or 'atDayStart')")

        node = op.node.model_copy(deep=True)
        start = _as_utc(node.timing.start_time)
        end = _as_utc(node.timing.end_time)
        _validate_timing(node.title or "new node", start, end)
        node.timing = _timing(start, end, node.timing.duration_min)
        node.id = allocate_node_id(day, taken)
        node.updated_by = change_set.agent
        taken.add(node.id)
        insert_node(day, node, index)

    def _delete(
        self, working: NormalizedItinerary, change_set: ChangeSet, op: ChangeOperation
    ) -> None:
        day, index = self._locate(working, change_set, op.id)
        self._check_lock(day.nodes[index], op, change_set)
        remove_node(day, day.nodes[index].id)

    def _move(
        self, working: NormalizedItinerary, change_set: ChangeSet, op: ChangeOperation
    ) -> None:
        if op.start_time is None and op.end_time is None:
            raise ValidationError("Move requires a new start or end time")

        day, index = self._locate(working, change_set, op.id)
        node = day.nodes[index]
        self._check_lock(node, op, change_set)

        old_start = _as_utc(node.timing.start_time)
        old_end = _as_utc(node.timing.end_time)
        start = _as_utc(op.start_time) or old_start
        end = _as_utc(op.end_time)
        if end is None:
            if op.start_time is not None and old_start is not None and old_end is not None:
                end = start + (old_end - old_start)
            elif op.start_time is not None and node.timing.duration_min is not None:
                end = start + timedelta(minutes=node.timing.duration_min)
            else:
                end = old_end

        _validate_timing(node.id, start, end)
        node.timing = _timing(start, end)
        node.updated_by = change_set.agent

    def _replace(
        self, working: NormalizedItinerary, change_set: ChangeSet, op: ChangeOperation
    ) -> None:
        if op.node is None:
            raise ValidationError("Replace requires a node payload")

        day, index = self._locate(working, change_set, op.id)
        existing = day.nodes[index]
        self._check_lock(existing, op, change_set)

        node = op.node.model_copy(deep=True)
        start = _as_utc(node.timing.start_time)
        end = _as_utc(node.timing.end_time)
        _validate_timing(existing.id, start, end)
        node.timing = _timing(start, end, node.timing.duration_min)
        node.id = existing.id
        node.updated_by = change_set.agent
        day.nodes[index] = node
