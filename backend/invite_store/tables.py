"""Table access for invitation records and the capability-code index.

team_invitation holds one row per (team, id), ordered by id within a team.
team_invitation_info maps a code back to its (team, id). The two tables are
only mutated together through BatchWriter; the single-statement writes here
exist for its no-code branch and for repairs.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from invite_store import redis_client
from invite_store.database import Statement, StoreSession
from invite_store.models import (
    Consistency,
    IdPage,
    Invitation,
    InvitationCode,
    InvitationId,
    InvitationInfo,
    TeamId,
)
from invite_store.retry import RetryPolicy

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLISECOND = timedelta(milliseconds=1)


def truncate_to_millis(moment: datetime) -> datetime:
    """Drop sub-millisecond precision; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.replace(microsecond=moment.microsecond // 1000 * 1000)


def to_millis(moment: datetime) -> int:
    return (truncate_to_millis(moment) - _EPOCH) // _MILLISECOND


def from_millis(millis: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=millis)


def _to_invitation(row) -> Invitation:
    return Invitation(
        team=uuid.UUID(row[0]),
        id=uuid.UUID(row[1]),
        email=row[2],
        created_at=from_millis(row[3]),
    )


class InvitationRecordStore:
    """Primary invitation rows, partitioned by team and clustered by id."""

    def __init__(
        self,
        session: StoreSession,
        read_policy: RetryPolicy,
        write_policy: RetryPolicy,
        consistency: Consistency = Consistency.QUORUM,
    ):
        self._session = session
        self._reads = read_policy
        self._writes = write_policy
        self._consistency = consistency

    # -- statements ---------------------------------------------------------

    def insert_statement(
        self,
        team: TeamId,
        invitation_id: InvitationId,
        code: InvitationCode,
        email: str,
        created_at: datetime,
    ) -> Statement:
        return Statement(
            "INSERT OR REPLACE INTO team_invitation (team, id, code, email, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (str(team), str(invitation_id), code, email, to_millis(created_at)),
        )

    def delete_statement(self, team: TeamId, invitation_id: InvitationId) -> Statement:
        return Statement(
            "DELETE FROM team_invitation WHERE team = ? AND id = ?",
            (str(team), str(invitation_id)),
        )

    # -- writes -------------------------------------------------------------

    async def insert(
        self,
        team: TeamId,
        invitation_id: InvitationId,
        code: InvitationCode,
        email: str,
        created_at: datetime,
    ) -> None:
        statement = self.insert_statement(team, invitation_id, code, email, created_at)
        await self._writes.run(
            lambda: self._session.write(statement, self._consistency), "insert invitation"
        )

    async def delete(self, team: TeamId, invitation_id: InvitationId) -> None:
        statement = self.delete_statement(team, invitation_id)
        await self._writes.run(
            lambda: self._session.write(statement, self._consistency), "delete invitation"
        )

    # -- reads --------------------------------------------------------------

    async def get(self, team: TeamId, invitation_id: InvitationId) -> Invitation | None:
        statement = Statement(
            "SELECT team, id, email, created_at FROM team_invitation WHERE team = ? AND id = ?",
            (str(team), str(invitation_id)),
        )
        row = await self._reads.run(
            lambda: self._session.fetch_one(statement, self._consistency), "lookup invitation"
        )
        return _to_invitation(row) if row is not None else None

    async def get_code(self, team: TeamId, invitation_id: InvitationId) -> InvitationCode | None:
        """Code of the invitation; None if the row is gone or predates codes."""
        statement = Statement(
            "SELECT code FROM team_invitation WHERE team = ? AND id = ?",
            (str(team), str(invitation_id)),
        )
        row = await self._reads.run(
            lambda: self._session.fetch_one(statement, self._consistency),
            "lookup invitation code",
        )
        if row is None or not row[0]:
            return None
        return row[0]

    async def count(self, team: TeamId) -> int:
        statement = Statement(
            "SELECT COUNT(*) FROM team_invitation WHERE team = ?", (str(team),)
        )
        row = await self._reads.run(
            lambda: self._session.fetch_one(statement, self._consistency), "count invitations"
        )
        return row[0] if row else 0

    async def select(
        self, team: TeamId, after: InvitationId | None, limit: int
    ) -> list[Invitation]:
        """Up to `limit` invitations in ascending id order, strictly after `after`."""
        if after is None:
            statement = Statement(
                "SELECT team, id, email, created_at FROM team_invitation "
                "WHERE team = ? ORDER BY id ASC LIMIT ?",
                (str(team), limit),
            )
        else:
            statement = Statement(
                "SELECT team, id, email, created_at FROM team_invitation "
                "WHERE team = ? AND id > ? ORDER BY id ASC LIMIT ?",
                (str(team), str(after), limit),
            )
        rows = await self._reads.run(
            lambda: self._session.fetch_all(statement, self._consistency), "list invitations"
        )
        return [_to_invitation(row) for row in rows]

    async def list_ids(self, team: TeamId, page_size: int) -> IdPage:
        """First page of ids for a team."""
        return await self._id_page(team, None, page_size)

    async def list_ids_after(
        self, team: TeamId, cursor: InvitationId, page_size: int
    ) -> IdPage:
        """Next page of ids, strictly after `cursor`."""
        return await self._id_page(team, cursor, page_size)

    async def _id_page(
        self, team: TeamId, after: InvitationId | None, page_size: int
    ) -> IdPage:
        # One extra row tells us whether another page exists.
        if after is None:
            statement = Statement(
                "SELECT id FROM team_invitation WHERE team = ? ORDER BY id ASC LIMIT ?",
                (str(team), page_size + 1),
            )
        else:
            statement = Statement(
                "SELECT id FROM team_invitation WHERE team = ? AND id > ? "
                "ORDER BY id ASC LIMIT ?",
                (str(team), str(after), page_size + 1),
            )
        rows = await self._reads.run(
            lambda: self._session.fetch_all(statement, self._consistency),
            "list invitation ids",
        )
        ids = [uuid.UUID(row[0]) for row in rows]
        return IdPage(ids=ids[:page_size], has_more=len(ids) > page_size)


class InvitationIndexStore:
    """Capability code → (team, id) index, with an optional Redis read-through cache."""

    def __init__(
        self,
        session: StoreSession,
        read_policy: RetryPolicy,
        write_policy: RetryPolicy,
        consistency: Consistency = Consistency.QUORUM,
    ):
        self._session = session
        self._reads = read_policy
        self._writes = write_policy
        self._consistency = consistency

    def put_statement(
        self, code: InvitationCode, team: TeamId, invitation_id: InvitationId
    ) -> Statement:
        return Statement(
            "INSERT OR REPLACE INTO team_invitation_info (code, team, id) VALUES (?, ?, ?)",
            (code, str(team), str(invitation_id)),
        )

    def delete_statement(self, code: InvitationCode) -> Statement:
        return Statement("DELETE FROM team_invitation_info WHERE code = ?", (code,))

    async def put(self, code: InvitationCode, team: TeamId, invitation_id: InvitationId) -> None:
        statement = self.put_statement(code, team, invitation_id)
        await self._writes.run(
            lambda: self._session.write(statement, self._consistency), "insert invitation info"
        )

    async def delete(self, code: InvitationCode) -> None:
        statement = self.delete_statement(code)
        await self._writes.run(
            lambda: self._session.write(statement, self._consistency), "delete invitation info"
        )
        await self.forget(code)

    async def forget(self, code: InvitationCode) -> None:
        """Evict a code from the lookup cache."""
        await redis_client.forget_cached_code(code)

    async def lookup(self, code: InvitationCode) -> InvitationInfo | None:
        # An empty code can never be a key; don't ask the store.
        if not code:
            return None

        cached = await redis_client.get_cached_code(code)
        if cached is not None:
            try:
                return InvitationInfo(code=code, team=cached["team"], id=cached["id"])
            except ValidationError:
                logger.warning("Ignoring malformed cache entry for invitation code")

        statement = Statement(
            "SELECT team, id FROM team_invitation_info WHERE code = ?", (code,)
        )
        row = await self._reads.run(
            lambda: self._session.fetch_one(statement, self._consistency),
            "lookup invitation info",
        )
        if row is None:
            return None

        await redis_client.set_cached_code(code, row[0], row[1])
        return InvitationInfo(code=code, team=uuid.UUID(row[0]), id=uuid.UUID(row[1]))
