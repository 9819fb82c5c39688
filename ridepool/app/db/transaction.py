"""
Transaction helpers shared by the booking and payment services.

Every write in the core runs inside `atomic(db)`: the block either commits
as a whole or is rolled back before the error propagates.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from ridepool.app.core.exceptions import DependencyFailureError

logger = logging.getLogger("ridepool.db")

ModelT = TypeVar("ModelT")


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run the enclosed block as a single database transaction.

    A read-only transaction implicitly opened by an earlier query on the
    same session (e.g. the authentication lookup) is closed first so the
    block always starts on a fresh transaction.

    Raises:
        DependencyFailureError: If the store is unreachable or the
            connection drops mid-transaction.
    """
    if db.in_transaction():
        await db.commit()

    try:
        async with db.begin():
            yield db
    except (OperationalError, InterfaceError) as e:
        logger.error("Transaction aborted by store failure: %s", e)
        raise DependencyFailureError("Database unavailable") from e


async def lock_one(
    db: AsyncSession,
    model: Type[ModelT],
    pk: int
) -> Optional[ModelT]:
    """
    Load a row by primary key with an exclusive row lock (SELECT ... FOR UPDATE).

    `populate_existing` refreshes an instance already in the identity map
    so the caller never acts on a value read before the lock was taken.
    """
    result = await db.execute(
        select(model)
        .where(model.id == pk)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
