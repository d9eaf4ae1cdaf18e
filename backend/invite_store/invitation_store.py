"""Unified invitation API: the interface callers consume.

All invitation persistence flows through here. Collaborators (session,
random source, retry policies, clock) are injected; anything not given is
built from settings.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from invite_store.config import settings
from invite_store.database import StoreSession
from invite_store.errors import PageSizeError
from invite_store.models import (
    Consistency,
    Invitation,
    InvitationCode,
    InvitationId,
    InvitationInfo,
    InvitationPage,
    TeamId,
)
from invite_store.retry import RetryPolicy
from invite_store.scanner import CascadeDeleter, PaginatedScanner
from invite_store.tables import InvitationIndexStore, InvitationRecordStore
from invite_store.tokens import TokenGenerator
from invite_store.writer import BatchWriter

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Upper bound on a listing page, whatever the configuration says.
MAX_LIST_PAGE_SIZE = 500


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TeamInvitationStore:
    """Create, look up, list and delete team invitations."""

    def __init__(
        self,
        session: StoreSession | None = None,
        *,
        tokens: TokenGenerator | None = None,
        read_policy: RetryPolicy | None = None,
        write_policy: RetryPolicy | None = None,
        clock: Clock = _utcnow,
        consistency: Consistency = Consistency.QUORUM,
        delete_page_size: int | None = None,
        max_list_page_size: int | None = None,
    ):
        self.session = session or StoreSession()
        read_policy = read_policy or RetryPolicy.for_reads()
        write_policy = write_policy or RetryPolicy.for_writes()

        self._clock = clock
        if max_list_page_size is None:
            max_list_page_size = settings.max_list_page_size
        if not 1 <= max_list_page_size <= MAX_LIST_PAGE_SIZE:
            raise ValueError(
                f"max_list_page_size must be between 1 and {MAX_LIST_PAGE_SIZE}, "
                f"got {max_list_page_size}"
            )
        self.max_list_page_size = max_list_page_size

        self.records = InvitationRecordStore(self.session, read_policy, write_policy, consistency)
        self.index = InvitationIndexStore(self.session, read_policy, write_policy, consistency)
        self.writer = BatchWriter(
            self.session,
            self.records,
            self.index,
            tokens or TokenGenerator(),
            write_policy,
            consistency,
        )
        self.scanner = PaginatedScanner(
            self.records,
            settings.delete_page_size if delete_page_size is None else delete_page_size,
        )
        self.cascade = CascadeDeleter(self.scanner, self.writer)

    async def create_invitation(
        self, team: TeamId, email: str, now: datetime | None = None
    ) -> tuple[Invitation, InvitationCode]:
        return await self.writer.create_invitation(team, email, now or self._clock())

    async def get_invitation(self, team: TeamId, invitation_id: InvitationId) -> Invitation | None:
        return await self.records.get(team, invitation_id)

    async def lookup_invitation_info(self, code: InvitationCode) -> InvitationInfo | None:
        return await self.index.lookup(code)

    async def lookup_invitation_code(
        self, team: TeamId, invitation_id: InvitationId
    ) -> InvitationCode | None:
        return await self.records.get_code(team, invitation_id)

    async def get_invitation_by_code(self, code: InvitationCode) -> Invitation | None:
        """Resolve a code to its invitation.

        An index entry whose record is gone resolves to None, same as an
        unknown code.
        """
        info = await self.index.lookup(code)
        if info is None:
            return None
        return await self.records.get(info.team, info.id)

    async def delete_invitation(self, team: TeamId, invitation_id: InvitationId) -> None:
        await self.writer.delete_invitation(team, invitation_id)

    async def delete_all_invitations(self, team: TeamId) -> int:
        """Delete every invitation of a team. Returns how many were processed."""
        deleted = await self.cascade.delete_all(team)
        logger.info("Deleted %d invitations for team %s", deleted, team)
        return deleted

    async def list_invitations(
        self,
        team: TeamId,
        after: InvitationId | None = None,
        page_size: int = 100,
    ) -> InvitationPage:
        """One page of a team's invitations in ascending id order.

        `after` is exclusive; omit it to start at the beginning.
        """
        if not 1 <= page_size <= self.max_list_page_size:
            raise PageSizeError(page_size, self.max_list_page_size)

        rows = await self.records.select(team, after, page_size + 1)
        return InvitationPage(invitations=rows[:page_size], has_more=len(rows) > page_size)

    async def count_invitations(self, team: TeamId) -> int:
        return await self.records.count(team)
