"""Invitation ids and capability codes.

Codes are bearer tokens: whoever presents one can look up the invitation it
names. They are 24 bytes from a cryptographically secure source, URL-safe
base64 encoded without padding. Uniqueness is statistical; nothing checks it.
"""

from __future__ import annotations

import base64
import secrets
import uuid
from collections.abc import Callable

from invite_store.errors import GenerationError
from invite_store.models import InvitationCode, InvitationId

RandomSource = Callable[[int], bytes]

CODE_BYTES = 24
ID_BYTES = 16


class TokenGenerator:
    """Draws invitation ids and codes from an injected random source."""

    def __init__(self, randbytes: RandomSource = secrets.token_bytes):
        self._randbytes = randbytes

    def _draw(self, n: int) -> bytes:
        try:
            data = self._randbytes(n)
        except OSError as exc:
            raise GenerationError(f"Random source failed drawing {n} bytes") from exc
        if len(data) != n:
            raise GenerationError(f"Random source returned {len(data)} bytes, expected {n}")
        return data

    def new_invitation_id(self) -> InvitationId:
        return uuid.UUID(bytes=self._draw(ID_BYTES), version=4)

    def new_invitation_code(self) -> InvitationCode:
        raw = base64.urlsafe_b64encode(self._draw(CODE_BYTES))
        return raw.rstrip(b"=").decode("ascii")
