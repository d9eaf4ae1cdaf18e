"""Paged traversal of a team's invitations, and deleting all of them.

Pages are keyset pages: each one starts strictly after the last id of the
previous one, so deleting the rows of a page never shifts the next page.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from invite_store.models import IdPage, TeamId
from invite_store.tables import InvitationRecordStore
from invite_store.writer import BatchWriter

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


class PaginatedScanner:
    """Walks a team's invitation ids in ascending order, one page at a time."""

    def __init__(self, records: InvitationRecordStore, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self._records = records
        self.page_size = page_size

    async def first_page(self, team: TeamId) -> IdPage:
        return await self._records.list_ids(team, self.page_size)

    async def next_page(self, team: TeamId, page: IdPage) -> IdPage | None:
        """The page after `page`, or None when `page` was the last one."""
        if not page.has_more or page.cursor is None:
            return None
        return await self._records.list_ids_after(team, page.cursor, self.page_size)

    async def pages(self, team: TeamId) -> AsyncIterator[IdPage]:
        """Yield pages lazily; the next page is fetched only when asked for."""
        page: IdPage | None = await self.first_page(team)
        while page is not None:
            yield page
            page = await self.next_page(team, page)


class CascadeDeleter:
    """Deletes every invitation of a team, page by page."""

    def __init__(self, scanner: PaginatedScanner, writer: BatchWriter):
        self._scanner = scanner
        self._writer = writer

    async def delete_all(self, team: TeamId) -> int:
        """Delete all invitations of `team`. Returns how many ids were processed.

        All deletes of a page run concurrently and must all settle before the
        next page is read. If any of them failed, the first failure is raised
        once its page has settled. Safe to re-run after a partial failure.
        """
        processed = 0
        async for page in self._scanner.pages(team):
            results = await asyncio.gather(
                *(self._writer.delete_invitation(team, invitation_id) for invitation_id in page.ids),
                return_exceptions=True,
            )
            failures = [r for r in results if isinstance(r, BaseException)]
            if failures:
                logger.error(
                    "Cascade delete for team %s: %d of %d deletes failed on a page",
                    team, len(failures), len(page.ids),
                )
                raise failures[0]

            processed += len(page.ids)
            logger.info("Cascade delete for team %s: %d invitations removed so far", team, processed)

        return processed
