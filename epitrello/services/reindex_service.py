"""Two-phase reindexing of ordered siblings under per-parent unique positions.

Lists are unique on (board_id, position) and cards on (list_id, position).
Rewriting a whole order in place would collide with the constraint on the
first swap, so every reorder runs in two phases:

1. Staging: every affected row is moved to a distinct negative position.
   Committed positions are never negative, so staging cannot collide with
   rows that are not part of the operation.
2. Final: rows get their dense, non-negative ranks.

Each per-row write runs in its own savepoint. A write that violates the
constraint rolls back alone and is reported, its siblings still apply.
IDs that match no row (deleted or moved elsewhere concurrently) are
skipped. Any failure in the final phase, or a failed write of the moved
row itself, raises PositionConflictError; the caller's transaction is then
rolled back so no staging value is ever committed.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings

logger = logging.getLogger(__name__)


class PositionConflictError(Exception):
    """A position write collided with the unique constraint."""

    def __init__(self, message: str = "Position conflict", failed_ids: Sequence[UUID] = ()):
        super().__init__(message)
        self.failed_ids = list(failed_ids)


class ReorderTimeoutError(Exception):
    """The reindex did not finish within the configured deadline."""


@dataclass
class PositionWrite:
    """
    One independent position update.

    Attributes:
        entity_id: Row to update
        position: New position
        match_parent: Only update the row if it currently has this parent
        new_parent: Parent to assign along with the position
    """

    entity_id: UUID
    position: int
    match_parent: Optional[UUID] = None
    new_parent: Optional[UUID] = None


@dataclass
class BulkWriteResult:
    """Outcome of a batch of independent writes, in submission order."""

    matched: list[UUID] = field(default_factory=list)
    missing: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)


@dataclass
class MoveResult:
    """Rows re-read after a move, each side sorted by position."""

    entity: object
    source_siblings: list
    target_siblings: list


def unique_ids(ids: Iterable[UUID]) -> list[UUID]:
    """De-duplicate IDs, keeping the first occurrence."""
    seen = set()
    ordered = []
    for entity_id in ids:
        if entity_id not in seen:
            seen.add(entity_id)
            ordered.append(entity_id)
    return ordered


def dense_ranks(ids: Sequence[UUID]) -> list[PositionWrite]:
    return [PositionWrite(entity_id, rank) for rank, entity_id in enumerate(ids)]


def ranks_around(siblings: Sequence[UUID], entity_id: UUID, position: int) -> list[PositionWrite]:
    """
    Rank siblings around an entity pinned at `position`.

    The entity is inserted into the sibling order at min(position, len).
    Siblings before it get 0..k-1, those after it position+1, position+2...
    """
    index = min(position, len(siblings))
    writes = [PositionWrite(entity_id, position)]
    writes.extend(PositionWrite(sibling_id, rank) for rank, sibling_id in enumerate(siblings[:index]))
    writes.extend(
        PositionWrite(sibling_id, position + 1 + offset)
        for offset, sibling_id in enumerate(siblings[index:])
    )
    return writes


async def bulk_write_positions(
    db: AsyncSession,
    model,
    writes: Sequence[PositionWrite],
    parent_attr: str,
) -> BulkWriteResult:
    """
    Apply independent per-row position writes.

    Every write runs in its own savepoint so a unique violation rolls back
    that write only. Zero-row updates are reported as missing.

    Args:
        db: Database session (a transaction is opened if none is active)
        model: Mapped class with `id`, `position` and the parent column
        writes: Writes to apply, in order
        parent_attr: Name of the parent foreign key column

    Returns:
        BulkWriteResult with matched, missing and failed IDs
    """
    parent_column = getattr(model, parent_attr)
    result = BulkWriteResult()

    for write in writes:
        values = {"position": write.position}
        if write.new_parent is not None:
            values[parent_attr] = write.new_parent

        stmt = update(model).where(model.id == write.entity_id).values(**values)
        if write.match_parent is not None:
            stmt = stmt.where(parent_column == write.match_parent)

        try:
            async with db.begin_nested():
                outcome = await db.execute(stmt.execution_options(synchronize_session=False))
        except IntegrityError:
            logger.debug(f"Position write {write.entity_id} -> {write.position} violated uniqueness")
            result.failed.append(write.entity_id)
            continue

        if outcome.rowcount == 0:
            result.missing.append(write.entity_id)
        else:
            result.matched.append(write.entity_id)

    if result.missing:
        logger.debug(f"Skipped {len(result.missing)} stale {model.__name__} id(s)")
    return result


async def next_position(db: AsyncSession, model, parent_attr: str, parent_id: UUID) -> int:
    """Position after the current maximum under a parent, 0 when empty."""
    result = await db.execute(
        select(func.max(model.position)).where(getattr(model, parent_attr) == parent_id)
    )
    current = result.scalar()
    return 0 if current is None else current + 1


class TwoPhaseReindexer:
    """
    Reorders and moves rows of one ordered model.

    Usage:
        reindexer = TwoPhaseReindexer(db, Card, "list_id")
        cards = await reindexer.reorder(list_id, [c3, c1, c2])
    """

    def __init__(
        self,
        db: AsyncSession,
        model,
        parent_attr: str,
        timeout: Optional[float] = None,
    ):
        self.db = db
        self.model = model
        self.parent_attr = parent_attr
        self.timeout = settings.reorder_timeout_seconds if timeout is None else timeout

    async def _write(self, writes: Sequence[PositionWrite]) -> BulkWriteResult:
        return await bulk_write_positions(self.db, self.model, writes, self.parent_attr)

    async def _run(self, operation):
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.warning(f"{self.model.__name__} reindex exceeded {self.timeout}s")
            raise ReorderTimeoutError("Reorder timed out, retry") from exc

    async def siblings(self, parent_id: UUID) -> list:
        """Re-read every row under a parent, sorted by position."""
        result = await self.db.execute(
            select(self.model)
            .where(getattr(self.model, self.parent_attr) == parent_id)
            .order_by(self.model.position)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def reorder(self, parent_id: UUID, ordered_ids: Sequence[UUID]) -> list:
        """
        Give the listed siblings of `parent_id` dense ranks in the given order.

        IDs that do not belong to the parent are skipped. Reordering to the
        current order is a no-op in effect.

        Returns:
            All rows under the parent, sorted by position
        """
        return await self._run(self._reorder(parent_id, unique_ids(ordered_ids)))

    async def _reorder(self, parent_id: UUID, ids: list[UUID]) -> list:
        staged = await self._write(
            [PositionWrite(entity_id, -(index + 1), match_parent=parent_id) for index, entity_id in enumerate(ids)]
        )
        if staged.failed:
            logger.warning(f"Staging failed for {len(staged.failed)} {self.model.__name__} row(s)")

        final = dense_ranks(staged.matched)
        for write in final:
            write.match_parent = parent_id
        applied = await self._write(final)
        if applied.failed:
            raise PositionConflictError(failed_ids=applied.failed)

        return await self.siblings(parent_id)

    async def move(
        self,
        entity_id: UUID,
        source_parent_id: UUID,
        target_parent_id: UUID,
        position: int,
        source_ids: Sequence[UUID],
        target_ids: Sequence[UUID],
    ) -> MoveResult:
        """
        Move one row to `position` under `target_parent_id`.

        Args:
            entity_id: Row being moved
            source_parent_id: Its current parent
            target_parent_id: Destination parent (may equal the source)
            position: Exact final position of the moved row
            source_ids: Source order after the move (moved row excluded)
            target_ids: Target order after the move (moved row included)

        Raises:
            PositionConflictError: The moved row could not be written, or a
                final rank collided with an unlisted sibling
            ReorderTimeoutError: The deadline elapsed
        """
        return await self._run(
            self._move(
                entity_id,
                source_parent_id,
                target_parent_id,
                position,
                unique_ids(source_ids),
                unique_ids(target_ids),
            )
        )

    async def _move(
        self,
        entity_id: UUID,
        source_parent_id: UUID,
        target_parent_id: UUID,
        position: int,
        source_ids: list[UUID],
        target_ids: list[UUID],
    ) -> MoveResult:
        same_parent = source_parent_id == target_parent_id

        if same_parent:
            # One side only; either array describes the same list
            siblings = [i for i in (target_ids or source_ids) if i != entity_id]
            source_siblings: list[UUID] = []
        else:
            siblings = [i for i in target_ids if i != entity_id]
            source_siblings = [i for i in source_ids if i != entity_id]

        primary = PositionWrite(
            entity_id,
            -1,
            match_parent=source_parent_id,
            new_parent=None if same_parent else target_parent_id,
        )
        staged_primary = await self._write([primary])
        if entity_id not in staged_primary.matched:
            raise PositionConflictError("Card could not be moved", failed_ids=[entity_id])

        staged_source = await self._write(
            [
                PositionWrite(i, -(2 + index), match_parent=source_parent_id)
                for index, i in enumerate(source_siblings)
            ]
        )
        offset = 2 + len(source_siblings)
        staged_target = await self._write(
            [
                PositionWrite(i, -(offset + index), match_parent=target_parent_id)
                for index, i in enumerate(siblings)
            ]
        )
        if staged_source.failed or staged_target.failed:
            logger.warning(
                f"Staging failed for {len(staged_source.failed) + len(staged_target.failed)} "
                f"{self.model.__name__} row(s)"
            )

        final = ranks_around(staged_target.matched, entity_id, position)
        for write in final:
            write.match_parent = target_parent_id
        source_final = dense_ranks(staged_source.matched)
        for write in source_final:
            write.match_parent = source_parent_id

        applied = await self._write(final + source_final)
        if applied.failed or entity_id not in applied.matched:
            raise PositionConflictError(failed_ids=applied.failed or [entity_id])

        target_rows = await self.siblings(target_parent_id)
        source_rows = target_rows if same_parent else await self.siblings(source_parent_id)
        entity = next(row for row in target_rows if row.id == entity_id)
        return MoveResult(entity=entity, source_siblings=source_rows, target_siblings=target_rows)
