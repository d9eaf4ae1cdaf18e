"""Pydantic models: the data shapes the store reads and returns.

An Invitation row is keyed by (team, id); the capability code that names it
lives in the row and in the index entry, but is never part of the Invitation
handed back to callers except at creation time.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field

TeamId = uuid.UUID
InvitationId = uuid.UUID
InvitationCode = str


class Consistency(str, Enum):
    """Replica acknowledgement level requested for a statement.

    Every read and write goes out at QUORUM.
    """
    QUORUM = "quorum"


# ---------------------------------------------------------------------------
# Stored entities
# ---------------------------------------------------------------------------

class Invitation(BaseModel):
    """A pending invitation to join a team."""
    team: TeamId
    id: InvitationId
    email: EmailStr
    created_at: datetime


class InvitationInfo(BaseModel):
    """Index entry resolving a capability code to its invitation."""
    code: InvitationCode
    team: TeamId
    id: InvitationId


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------

class IdPage(BaseModel):
    """One ascending page of invitation ids for a team."""
    ids: list[InvitationId] = Field(default_factory=list)
    has_more: bool = False

    @property
    def cursor(self) -> InvitationId | None:
        """Last id of the page; the next page starts strictly after it."""
        return self.ids[-1] if self.ids else None


class InvitationPage(BaseModel):
    """One page of invitations returned by listing."""
    invitations: list[Invitation] = Field(default_factory=list)
    has_more: bool = False
