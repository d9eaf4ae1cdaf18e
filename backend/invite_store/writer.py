"""Dual-table writes for invitations.

Creating or deleting an invitation touches the record table and the code
index together, as one batch. The backend guarantees atomicity of a batch on
a single node only, so the pair is best-effort consistent: a failed batch is
retried whole, which is safe because every statement is an idempotent upsert
or delete.
"""

from __future__ import annotations

import logging
from datetime import datetime

from invite_store.database import StoreSession
from invite_store.models import (
    Consistency,
    Invitation,
    InvitationCode,
    InvitationId,
    TeamId,
)
from invite_store.retry import RetryPolicy
from invite_store.tables import InvitationIndexStore, InvitationRecordStore, truncate_to_millis
from invite_store.tokens import TokenGenerator

logger = logging.getLogger(__name__)


class BatchWriter:
    """Creates and deletes invitations in both tables at once."""

    def __init__(
        self,
        session: StoreSession,
        records: InvitationRecordStore,
        index: InvitationIndexStore,
        tokens: TokenGenerator,
        write_policy: RetryPolicy,
        consistency: Consistency = Consistency.QUORUM,
    ):
        self._session = session
        self._records = records
        self._index = index
        self._tokens = tokens
        self._writes = write_policy
        self._consistency = consistency

    async def create_invitation(
        self, team: TeamId, email: str, now: datetime
    ) -> tuple[Invitation, InvitationCode]:
        """Insert a new invitation and its index entry. Returns the invitation and its code.

        The code is only handed out here; afterwards it can be recovered
        from the record table alone.
        """
        invitation_id = self._tokens.new_invitation_id()
        code = self._tokens.new_invitation_code()
        invitation = Invitation(
            team=team,
            id=invitation_id,
            email=email,
            created_at=truncate_to_millis(now),
        )

        statements = [
            self._records.insert_statement(
                team, invitation_id, code, invitation.email, invitation.created_at
            ),
            self._index.put_statement(code, team, invitation_id),
        ]
        await self._writes.run(
            lambda: self._session.batch(statements, self._consistency), "create invitation"
        )

        logger.info("Created invitation %s for team %s", invitation_id, team)
        return invitation, code

    async def delete_invitation(
        self, team: TeamId, invitation_id: InvitationId
    ) -> InvitationCode | None:
        """Delete an invitation and its index entry. Returns the removed code, if any.

        Deleting an invitation that doesn't exist is a no-op. When the row has
        no recoverable code only the row is deleted; an index entry that still
        names it resolves to nothing on lookup.
        """
        code = await self._records.get_code(team, invitation_id)

        if code is None:
            logger.info(
                "No code for invitation %s in team %s; deleting record only", invitation_id, team
            )
            await self._records.delete(team, invitation_id)
            return None

        statements = [
            self._records.delete_statement(team, invitation_id),
            self._index.delete_statement(code),
        ]
        await self._writes.run(
            lambda: self._session.batch(statements, self._consistency), "delete invitation"
        )
        await self._index.forget(code)

        logger.info("Deleted invitation %s for team %s", invitation_id, team)
        return code
