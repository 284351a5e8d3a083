from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from ledgerhub.core.errors import InternalError
from ledgerhub.services.interfaces import TransactionProvider


logger = logging.getLogger(__name__)

T = TypeVar("T")
S = TypeVar("S", bound=TransactionProvider)


async def _rollback(scope: TransactionProvider) -> None:
    # A failed rollback must not mask the error that triggered it.
    try:
        await scope.rollback()
    except SQLAlchemyError as exc:
        logger.warning("transaction_rollback_failed", exc_info=exc)


async def create_within_transaction(scope: S, domain_create: Callable[[S], Awaitable[T]]) -> T:
    """Run ``domain_create`` as one atomic unit and return its result after commit.

    The domain function's own errors propagate unchanged after rollback. A
    commit failure is reported as InternalError: the caller must treat the
    resource as never created, even though the domain step finished. No retry
    is attempted.
    """
    return await run_in_transaction(scope, domain_create)


async def run_in_transaction(scope: S, work: Callable[[S], Awaitable[T]]) -> T:
    # Reads issued earlier on the same scope (authorization lookups) join this unit.
    if not scope.in_transaction():
        await scope.begin()
    try:
        resource = await work(scope)
    except BaseException:
        # Includes cancellation; nothing from the domain step may survive.
        await _rollback(scope)
        raise
    try:
        await scope.commit()
    except SQLAlchemyError as exc:
        await _rollback(scope)
        logger.error("transaction_commit_failed", exc_info=exc)
        raise InternalError("Failed to commit transaction") from exc
    except BaseException:
        await _rollback(scope)
        raise
    return resource
