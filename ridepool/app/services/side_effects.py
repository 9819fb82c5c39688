"""
Post-commit side effects.

Work that must happen after a payment commits (driver payout, payment
notification) is queued here and drained once the payment transaction is
durable. Each task gets its own session and transaction; a failing task is
logged and captured in the dead letter queue instead of reaching the caller,
and never disturbs the objects held by the caller's session.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from ridepool.app.db.transaction import atomic
from ridepool.app.models.dlq import DeadLetterQueue, DLQStatus

logger = logging.getLogger("ridepool.side_effects")

TaskFunc = Callable[..., Awaitable[Any]]


@dataclass
class _Task:
    name: str
    func: TaskFunc
    args: Tuple[Any, ...]
    kwargs: Dict[str, Any]
    payload: Dict[str, Any]


@dataclass
class PostCommitQueue:
    """
    In-process task queue drained after the owning transaction commits.

    Task functions take a session as their first argument.

    Usage:
        queue = PostCommitQueue()
        queue.enqueue("driver_payout", PaymentService.process_driver_payout, driver_id, amount, payload={...})
        ...commit...
        results = await queue.drain(db)
    """
    tasks: List[_Task] = field(default_factory=list)

    def enqueue(self, name: str, func: TaskFunc, *args, payload: Dict[str, Any] = None, **kwargs) -> None:
        self.tasks.append(_Task(name, func, args, kwargs, payload or {}))

    async def drain(self, db: AsyncSession) -> Dict[str, Any]:
        """
        Run queued tasks in order, each on a fresh session bound to `db`'s engine.

        Returns:
            Mapping of task name to its result (None for failed tasks)
        """
        results = {}
        tasks, self.tasks = self.tasks, []
        for task in tasks:
            async with AsyncSession(bind=db.bind, expire_on_commit=False) as task_db:
                results[task.name] = await run_best_effort(
                    task_db, task.name, task.payload, task.func, *task.args, **task.kwargs
                )
        return results


async def run_best_effort(
    db: AsyncSession,
    task_name: str,
    payload: Dict[str, Any],
    func: TaskFunc,
    *args,
    **kwargs
) -> Any:
    """Run `func(db, ...)`, dead-lettering any failure."""
    try:
        return await func(db, *args, **kwargs)
    except Exception as e:
        logger.exception("Post-commit task %s failed", task_name)
        await _dead_letter(db, task_name, e, payload)
        return None


async def _dead_letter(db: AsyncSession, task_name: str, error: Exception, payload: Dict[str, Any]) -> None:
    if db.in_transaction():
        await db.rollback()
    try:
        async with atomic(db):
            db.add(DeadLetterQueue(
                task_name=task_name,
                error_message=f"{type(error).__name__}: {error}"[:2000],
                payload=payload,
                status=DLQStatus.FAILED,
                retry_count=0,
            ))
    except Exception:
        logger.exception("Could not dead-letter task %s, payload=%s", task_name, payload)
