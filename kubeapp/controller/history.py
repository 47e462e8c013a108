"""Revision history for Application resources.

Every distinct resource-template set an Application has declared is kept as
a ControllerRevision.  Snapshots are identified by content (canonical payload
hashed with FNV-1a) and ordered by a monotonically increasing ``revision``
number, so re-applying an older template set moves its snapshot back to the
head of the history instead of creating a copy.

Concurrent writers can leave more than one snapshot holding the current
content.  ``ensure_current_revision`` converges them to a single survivor and
``cleanup`` trims old snapshots to the retention limit.  Both are idempotent:
objects that vanish underneath them (NotFound) count as already handled.
"""

from __future__ import annotations

from typing import Any

import structlog

from kubeapp.errors import AlreadyExistsError, NotFoundError, RevisionCollisionError
from kubeapp.hashing import content_hash, revision_name, template_payload
from kubeapp.models.application import Application
from kubeapp.models.revision import (
    OWNER_LABEL,
    REVISION_API_VERSION,
    REVISION_KIND,
    UNIQUE_LABEL,
    RevisionSnapshot,
)
from kubeapp.observability.metrics import (
    revisions_created_total,
    revisions_deduplicated_total,
    revisions_pruned_total,
)
from kubeapp.store.base import ObjectStore

_logger = structlog.get_logger(component="controller.history")


def max_revision(snapshots: list[RevisionSnapshot]) -> int:
    return max((s.revision for s in snapshots), default=0)


def _keeper_order(snapshot: RevisionSnapshot) -> tuple[int, str]:
    # Highest revision wins; on a tie the lexicographically smallest name.
    return (-snapshot.revision, snapshot.name)


def _age_order(snapshot: RevisionSnapshot) -> tuple[int, str]:
    return (snapshot.revision, snapshot.name)


class HistoryManager:
    """Maintains the ControllerRevision history of Applications."""

    def __init__(self, store: ObjectStore) -> None:
        self._store = store

    async def list_revisions(self, app: Application) -> list[RevisionSnapshot]:
        """All snapshots controlled by *app*."""
        objs = await self._store.list(
            REVISION_API_VERSION,
            REVISION_KIND,
            namespace=app.namespace,
            label_selector={OWNER_LABEL: app.name},
        )
        snapshots = [RevisionSnapshot.from_object(obj) for obj in objs]
        # A recreated Application with the same name must not adopt the
        # history of its predecessor.
        return [s for s in snapshots if not app.uid or s.owner_uid == app.uid]

    async def ensure_current_revision(
        self,
        app: Application,
        log: Any = None,
    ) -> tuple[RevisionSnapshot, list[RevisionSnapshot]]:
        """Make sure exactly one snapshot holds the current template set.

        Returns:
            ``(current, olds)`` where *olds* are every other snapshot of the
            Application, as candidates for ``cleanup``.

        Raises:
            CanonicalizationError: the template set cannot be serialized.
            RevisionCollisionError: the computed name is taken by different content.
            StoreError: the store failed.
        """
        log = log or _logger
        payload = template_payload(app.spec.resources)

        matches: list[RevisionSnapshot] = []
        olds: list[RevisionSnapshot] = []
        for snapshot in await self.list_revisions(app):
            snapshot = await self._ensure_unique_label(snapshot, log)
            if snapshot.payload == payload:
                matches.append(snapshot)
            else:
                olds.append(snapshot)

        next_revision = max_revision(olds) + 1
        if not matches:
            current = await self._snapshot(app, payload, next_revision, log)
        else:
            current = await self._dedup(matches, log)
            if current.revision < next_revision:
                current = await self._bump(current, next_revision, log)
        return current, olds

    async def cleanup(
        self,
        olds: list[RevisionSnapshot],
        limit: int,
        log: Any = None,
    ) -> list[str]:
        """Delete the oldest snapshots beyond *limit*.

        The current snapshot is never in *olds*, so it does not count toward
        the limit.  Returns the names that were deleted (or already gone).
        """
        log = log or _logger
        to_kill = len(olds) - max(limit, 0)
        if to_kill <= 0:
            return []

        deleted: list[str] = []
        for snapshot in sorted(olds, key=_age_order)[:to_kill]:
            await self._delete(snapshot)
            deleted.append(snapshot.name)
            log.info("revision_pruned", revision=snapshot.name, sequence=snapshot.revision)
        revisions_pruned_total.inc(len(deleted))
        return deleted

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _snapshot(self, app: Application, payload: bytes, revision: int, log: Any) -> RevisionSnapshot:
        hash_value = content_hash(payload)
        name = revision_name(app.name, hash_value)
        snapshot = RevisionSnapshot.build(app, name, hash_value, payload, revision)
        try:
            created = await self._store.create(snapshot.to_object(app))
        except AlreadyExistsError:
            # Another writer got there first; accept its object if it holds
            # the same content.
            existing = RevisionSnapshot.from_object(
                await self._store.get(REVISION_API_VERSION, REVISION_KIND, app.namespace, name)
            )
            if existing.payload == payload:
                log.info("revision_already_created", revision=name, sequence=existing.revision)
                return existing
            raise RevisionCollisionError(name) from None
        revisions_created_total.inc()
        log.info("revision_created", revision=name, sequence=revision, hash=hash_value)
        return RevisionSnapshot.from_object(created)

    async def _dedup(self, matches: list[RevisionSnapshot], log: Any) -> RevisionSnapshot:
        if len(matches) == 1:
            return matches[0]
        ordered = sorted(matches, key=_keeper_order)
        keep, duplicates = ordered[0], ordered[1:]
        for duplicate in duplicates:
            await self._delete(duplicate)
            revisions_deduplicated_total.inc()
            log.info(
                "duplicate_revision_deleted",
                revision=duplicate.name,
                sequence=duplicate.revision,
                kept=keep.name,
            )
        return keep

    async def _bump(self, snapshot: RevisionSnapshot, revision: int, log: Any) -> RevisionSnapshot:
        obj = dict(snapshot.raw)
        obj["revision"] = revision
        updated = await self._store.update(obj)
        log.info("revision_bumped", revision=snapshot.name, previous=snapshot.revision, sequence=revision)
        return RevisionSnapshot.from_object(updated)

    async def _ensure_unique_label(self, snapshot: RevisionSnapshot, log: Any) -> RevisionSnapshot:
        if UNIQUE_LABEL in snapshot.labels:
            return snapshot
        obj = dict(snapshot.raw)
        metadata = dict(obj.get("metadata") or {})
        labels = dict(metadata.get("labels") or {})
        labels[UNIQUE_LABEL] = snapshot.name
        metadata["labels"] = labels
        obj["metadata"] = metadata
        updated = await self._store.update(obj)
        log.debug("revision_labelled", revision=snapshot.name)
        return RevisionSnapshot.from_object(updated)

    async def _delete(self, snapshot: RevisionSnapshot) -> None:
        try:
            await self._store.delete(REVISION_API_VERSION, REVISION_KIND, snapshot.namespace, snapshot.name)
        except NotFoundError:
            pass
