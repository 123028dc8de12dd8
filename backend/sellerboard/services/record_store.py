"""Record store for `seller_onboarding` rows.

Every step goes through exactly one write:
  - create_record  → INSERT (step 1, new seller), flushed but not
                     committed until the caller holds a token for it
  - update_record  → UPDATE ... WHERE id = :id AND progress IN (:expected),
                     committed immediately

The progress guard lives in the statement itself, so two racing
submissions can never move a record backwards. On failure the session
is rolled back and a PersistenceError is raised.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sellerboard.middleware.exceptions import PersistenceError
from sellerboard.models.seller_onboarding import SellerOnboarding

logger = logging.getLogger(__name__)


class RecordStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_record(self, record_id: str) -> SellerOnboarding | None:
        try:
            result = await self.db.execute(
                select(SellerOnboarding)
                .where(SellerOnboarding.id == record_id)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            logger.exception("Failed to load onboarding record %s", record_id)
            raise PersistenceError() from e
        return result.scalar_one_or_none()

    async def get_progress(self, record_id: str) -> int | None:
        """Current progress of a record, or None if it doesn't exist."""
        try:
            result = await self.db.execute(
                select(SellerOnboarding.progress).where(SellerOnboarding.id == record_id)
            )
        except SQLAlchemyError as e:
            logger.exception("Failed to load progress for %s", record_id)
            raise PersistenceError() from e
        return result.scalar_one_or_none()

    async def create_record(self, fields: dict, progress: int) -> str:
        """Insert a new record and return its id.

        The row is only flushed; finish with `commit()` or `rollback()`.
        """
        record = SellerOnboarding(**fields, progress=progress)
        self.db.add(record)
        try:
            await self.db.flush()  # populate record.id
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to create onboarding record")
            raise PersistenceError() from e
        return record.id

    async def update_record(
        self,
        record_id: str,
        fields: dict,
        progress: int,
        expected_progress: tuple[int, ...],
    ) -> bool:
        """Apply `fields` and `progress` in one statement.

        Returns False (nothing written) when the record is gone or its
        progress is no longer one of `expected_progress`.
        """
        stmt = (
            update(SellerOnboarding)
            .where(
                SellerOnboarding.id == record_id,
                SellerOnboarding.progress.in_(expected_progress),
            )
            .values(**fields, progress=progress)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            if result.rowcount != 1:
                await self.db.rollback()
                return False
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to update onboarding record %s", record_id)
            raise PersistenceError() from e
        return True

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to commit onboarding record")
            raise PersistenceError() from e

    async def rollback(self) -> None:
        await self.db.rollback()
