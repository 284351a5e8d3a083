"""Bearer tokens for LedgerHub API keys.

A token reads ``lhk_<key id>_<secret>``. Only its SHA-256 digest and a short
display prefix are stored; the token itself is printed once by the operator
script and never again.
"""

from __future__ import annotations

from datetime import datetime
import hashlib
import re
import secrets
from uuid import uuid4

from ledgerhub.domain.models import ApiKey


TOKEN_SCHEME = "lhk"
DISPLAY_PREFIX_LENGTH = 12

_TOKEN_RE = re.compile(rf"^{TOKEN_SCHEME}_(?P<key_id>[0-9a-f]{{32}})_(?P<secret>[A-Za-z0-9_-]{{20,}})$")


def hash_api_key(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def key_id_from_token(token: str) -> str | None:
    """Return the key id embedded in ``token``, or None when it is not one of ours."""
    match = _TOKEN_RE.match(token)
    if match is None:
        return None
    return match.group("key_id")


def issue_api_key(
    *,
    user_id: str,
    name: str | None,
    expires_at: datetime | None = None,
    revoked_at: datetime | None = None,
) -> tuple[ApiKey, str]:
    """Build an unsaved ``ApiKey`` row and the plaintext token it answers to."""
    key_id = uuid4().hex
    token = f"{TOKEN_SCHEME}_{key_id}_{secrets.token_urlsafe(32)}"
    row = ApiKey(
        id=key_id,
        user_id=user_id,
        key_prefix=token[:DISPLAY_PREFIX_LENGTH],
        key_hash=hash_api_key(token),
        name=name,
        expires_at=expires_at,
        revoked_at=revoked_at,
    )
    return row, token
