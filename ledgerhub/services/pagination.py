"""Cursor pagination over append-only and in-place-mutable collections.

A collection is an ordered sequence with a stable, monotonic ordering key.
Cursors are opaque, HMAC-signed tokens carrying the collection scope and the
ordering key of the last item a caller has seen. Fetching is delegated to a
collaborator that returns items strictly beyond that key.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from ledgerhub.core.config import get_settings
from ledgerhub.core.errors import InvalidRequest


T = TypeVar("T")

CURSOR_VERSION = 1

KeyFn = Callable[[Any], list[Any]]
FetchFn = Callable[[list[Any] | None, int], Awaitable[Sequence[T]]]


class CursorError(InvalidRequest):
    default_message = "Invalid cursor"


@dataclass(frozen=True)
class Collection:
    # Identity used to bind cursors to one collection (e.g. "assets:<node id>").
    scope: str
    key_of: KeyFn
    default_page_size: int
    max_page_size: int


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    next_cursor: str | None


def serialize_timestamp(value: datetime) -> str:
    # Normalize timestamps to UTC ISO strings so cursors compare across backends.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> datetime:
    if not isinstance(value, str):
        raise CursorError("Invalid cursor key")
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise CursorError("Invalid cursor key") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _created_key(item: Any) -> list[Any]:
    return [serialize_timestamp(item.created_at), item.id]


def _sequence_key(item: Any) -> list[Any]:
    return [int(item.id)]


def issuer_node_collection(project_id: str) -> Collection:
    settings = get_settings()
    return Collection(
        scope=f"issuer_nodes:{project_id}",
        key_of=_created_key,
        default_page_size=settings.issuer_node_page_size_default,
        max_page_size=settings.issuer_node_page_size_max,
    )


def asset_collection(issuer_node_id: str) -> Collection:
    settings = get_settings()
    return Collection(
        scope=f"assets:{issuer_node_id}",
        key_of=_created_key,
        default_page_size=settings.asset_page_size_default,
        max_page_size=settings.asset_page_size_max,
    )


def activity_collection(kind: str, resource_id: str) -> Collection:
    settings = get_settings()
    return Collection(
        scope=f"activity:{kind}:{resource_id}",
        key_of=_sequence_key,
        default_page_size=settings.activity_page_size_default,
        max_page_size=settings.activity_page_size_max,
    )


def transaction_collection(kind: str, resource_id: str) -> Collection:
    # Transactions share the activity page-size limits.
    settings = get_settings()
    return Collection(
        scope=f"transactions:{kind}:{resource_id}",
        key_of=_sequence_key,
        default_page_size=settings.activity_page_size_default,
        max_page_size=settings.activity_page_size_max,
    )


def resolve_page_size(page_size: int | str | None, collection: Collection) -> int:
    # Omitted sizes take the default; oversized requests are clamped, not rejected.
    if page_size is None:
        return collection.default_page_size
    if isinstance(page_size, str):
        # Query strings arrive unparsed.
        try:
            page_size = int(page_size.strip(), 10)
        except ValueError as exc:
            raise InvalidRequest("pageSize must be a positive integer") from exc
    if page_size <= 0:
        raise InvalidRequest("pageSize must be a positive integer")
    return min(page_size, collection.max_page_size)


def encode_cursor(payload: dict[str, Any], secret: str) -> str:
    # Sign cursor payloads to prevent client-side tampering.
    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()
    encoded = base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")
    return f"{encoded}.{signature}"


def decode_cursor(token: str, secret: str) -> dict[str, Any]:
    # Verify cursor signatures and return the decoded payload.
    try:
        encoded, signature = token.split(".", 1)
    except ValueError as exc:
        raise CursorError("Invalid cursor format") from exc
    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("utf-8"))
    except (ValueError, binascii.Error) as exc:
        raise CursorError("Invalid cursor encoding") from exc
    expected = hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, signature):
        raise CursorError("Invalid cursor signature")
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CursorError("Invalid cursor payload") from exc
    if not isinstance(payload, dict):
        raise CursorError("Invalid cursor payload")
    return payload


def cursor_key(token: str | None, collection: Collection, secret: str) -> list[Any] | None:
    """Return the last-seen ordering key encoded in ``token``.

    An absent or empty token means "start at the head of the collection".
    Tokens minted for another collection are rejected.
    """
    if not token:
        return None
    payload = decode_cursor(token, secret)
    if payload.get("v") != CURSOR_VERSION:
        raise CursorError("Unsupported cursor version")
    if payload.get("scope") != collection.scope:
        raise CursorError("Cursor scope mismatch")
    key = payload.get("key")
    if not isinstance(key, list) or not key:
        raise CursorError("Cursor key missing")
    return key


def build_cursor(collection: Collection, item: Any, secret: str) -> str:
    payload = {"v": CURSOR_VERSION, "scope": collection.scope, "key": collection.key_of(item)}
    return encode_cursor(payload, secret)


async def paginate(
    collection: Collection,
    cursor: str | None,
    page_size: int | str | None,
    fetch: FetchFn[T],
    *,
    secret: str | None = None,
) -> Page[T]:
    """Fetch one bounded page of ``collection`` starting after ``cursor``.

    ``fetch(after_key, limit)`` must return items in collection order whose
    ordering key sorts strictly after ``after_key``. One extra row is requested
    to tell whether anything lies beyond the page.
    """
    secret = secret or get_settings().cursor_secret
    limit = resolve_page_size(page_size, collection)
    after = cursor_key(cursor, collection, secret)
    rows = list(await fetch(after, limit + 1))
    has_more = len(rows) > limit
    items = rows[:limit]
    next_cursor = None
    if has_more and items:
        next_cursor = build_cursor(collection, items[-1], secret)
    return Page(items=items, next_cursor=next_cursor)
