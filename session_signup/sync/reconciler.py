"""
Row reconciler: keeps one external resource per table row.

For every row the stored resource id is resolved against the external
service. Rows without a live resource get a new one and the new id is
written back into the row; rows with a live resource have it updated in
place. Resources are never deleted, so removing a row from the table leaves
its resource alone.

Each row is committed as soon as it is processed, so a pass that aborts on
row k leaves rows before k with their ids stored, and re-running only
updates them.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, Protocol, TypeVar

from session_signup.api.base import ResourceNotFound

logger = logging.getLogger(__name__)


class SyncRow(Protocol):
    """A table row carrying the id of its external resource."""

    resource_id: Optional[str]


R = TypeVar("R", bound=SyncRow)

Resource = dict[str, Any]


class RowOutcome(str, Enum):
    """What happened (or would happen, in a dry run) to one row."""

    CREATED = "created"
    UPDATED = "updated"
    RECREATED = "recreated"


@dataclass
class RowResult:
    """Outcome for one row."""

    index: int
    outcome: RowOutcome
    resource_id: Optional[str]
    previous_id: Optional[str] = None


@dataclass
class ReconcileStats:
    """Counts of the operations performed during a pass."""

    rows: int = 0
    created: int = 0
    updated: int = 0
    recreated: int = 0

    def count(self, outcome: RowOutcome) -> None:
        self.rows += 1
        if outcome == RowOutcome.CREATED:
            self.created += 1
        elif outcome == RowOutcome.UPDATED:
            self.updated += 1
        else:
            self.recreated += 1


@dataclass
class ReconcileResult:
    """
    Result of a reconcile pass.

    Attributes:
        rows: Per-row outcomes in table order
        stats: Counts by outcome
        dry_run: True if nothing was created, updated or committed
    """

    rows: list[RowResult] = field(default_factory=list)
    stats: ReconcileStats = field(default_factory=ReconcileStats)
    dry_run: bool = False

    def add(self, row_result: RowResult) -> None:
        self.rows.append(row_result)
        self.stats.count(row_result.outcome)

    def has_changes(self) -> bool:
        """True if any resource was (or would be) created."""
        return bool(self.stats.created or self.stats.recreated)

    def summary(self, label: str = "Rows") -> str:
        """
        Generate a human-readable summary of the pass.

        Args:
            label: Name of what the rows represent (e.g. "Events")
        """
        prefix = "Planned" if self.dry_run else "Reconciled"
        lines = [
            f"{prefix} {self.stats.rows} {label.lower()}:",
            f"  Created: {self.stats.created}",
            f"  Updated: {self.stats.updated}",
        ]
        if self.stats.recreated:
            lines.append(f"  Recreated (stale id): {self.stats.recreated}")
        return "\n".join(lines)


class RowSyncReconciler(Generic[R]):
    """
    Create-or-update reconciler for rows bound to external resources.

    The external service is given as three callables so the reconciler does
    not depend on any particular API:

    - ``resolve(resource_id)`` returns the live resource, or None (raising
      ResourceNotFound counts as None)
    - ``create(payload)`` returns the new resource
    - ``update(resource, payload)`` overwrites the resource's fields

    TransientUnavailable (and any other error) from these callables is not
    caught: it aborts the pass after the rows already committed.

    Usage:
        reconciler = RowSyncReconciler(
            resolve=lambda rid: calendar.resolve_event(cal_id, rid),
            create=lambda payload: calendar.create_event(cal_id, payload),
            update=lambda event, payload: calendar.update_event(cal_id, event, payload),
            create_payload=lambda s: s.create_payload(tz),
            update_payload=lambda s: s.update_payload(tz),
        )
        result = reconciler.reconcile(sessions, on_commit=write_id_cell)
    """

    def __init__(
        self,
        resolve: Callable[[str], Optional[Resource]],
        create: Callable[[Any], Resource],
        update: Callable[[Resource, Any], Any],
        create_payload: Callable[[R], Any],
        update_payload: Optional[Callable[[R], Any]] = None,
        id_of: Callable[[Resource], str] = lambda resource: resource["id"],
    ):
        """
        Initialize the reconciler.

        Args:
            resolve: Look up a resource by stored id
            create: Create a resource from a payload
            update: Update an existing resource with a payload
            create_payload: Build the creation payload for a row
            update_payload: Build the update payload for a row
                            (defaults to create_payload)
            id_of: Extract the id from a created resource
        """
        self._resolve = resolve
        self._create = create
        self._update = update
        self._create_payload = create_payload
        self._update_payload = update_payload or create_payload
        self._id_of = id_of
        self.last_result: Optional[ReconcileResult] = None

    def resolve(self, resource_id: Optional[str]) -> Optional[Resource]:
        """Resolve a stored id, treating a missing id or resource as None."""
        if not resource_id:
            return None
        try:
            return self._resolve(resource_id)
        except ResourceNotFound:
            return None

    def reconcile(
        self,
        rows: Iterable[R],
        on_commit: Optional[Callable[[int, R], None]] = None,
        dry_run: bool = False,
    ) -> ReconcileResult:
        """
        Reconcile every row with its external resource, in order.

        Args:
            rows: Data rows (header excluded); ids are updated in place
            on_commit: Called with (index, row) right after a row received a
                       new id, to persist it back into the table
            dry_run: Resolve only; report what would be created or updated

        Returns:
            ReconcileResult with one entry per row

        Raises:
            TransientUnavailable: If the service stays unavailable; rows
                                  committed so far keep their ids and
                                  ``last_result`` holds their outcomes
        """
        result = ReconcileResult(dry_run=dry_run)
        self.last_result = result

        for index, row in enumerate(rows):
            stored_id = row.resource_id
            resource = self.resolve(stored_id)

            if resource is not None:
                if not dry_run:
                    self._update(resource, self._update_payload(row))
                logger.debug(f"Row {index}: updated {stored_id}")
                result.add(RowResult(index, RowOutcome.UPDATED, stored_id))
                continue

            outcome = RowOutcome.RECREATED if stored_id else RowOutcome.CREATED
            if dry_run:
                result.add(RowResult(index, outcome, None, previous_id=stored_id))
                continue

            created = self._create(self._create_payload(row))
            row.resource_id = self._id_of(created)
            if stored_id:
                logger.info(
                    f"Row {index}: {stored_id} no longer exists, "
                    f"replaced by {row.resource_id}"
                )
            else:
                logger.debug(f"Row {index}: created {row.resource_id}")

            if on_commit is not None:
                on_commit(index, row)

            result.add(
                RowResult(index, outcome, row.resource_id, previous_id=stored_id)
            )

        logger.info(
            f"Reconcile {'plan' if dry_run else 'pass'} complete: "
            f"{result.stats.created} created, {result.stats.updated} updated, "
            f"{result.stats.recreated} recreated"
        )
        return result
