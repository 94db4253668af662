"""
Typed results for external calls and the join-all combinator.

The pipeline never retries. A failed call is captured as a `CallResult`
carrying its PipelineError so callers decide explicitly what a failure means
instead of relying on exceptions unwinding through several layers.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Generic, Optional, TypeVar

from .errors import InternalError, PipelineError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CallResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[PipelineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value


async def settle(awaitable: Awaitable[T]) -> CallResult[T]:
    """Await one call and capture its outcome instead of raising."""
    try:
        return CallResult(value=await awaitable)
    except PipelineError as e:
        return CallResult(error=e)
    except Exception as e:
        logger.error(f"Unclassified failure in external call: {e}", exc_info=True)
        return CallResult(error=InternalError("Unexpected error in external call", details=str(e)))


async def join_all(*awaitables: Awaitable[T]) -> list[CallResult[T]]:
    """
    Run every call concurrently and wait until all of them have settled.

    Results come back in argument order. Nothing is cancelled when one call
    fails; callers inspect the list afterwards.
    """
    return list(await asyncio.gather(*(settle(a) for a in awaitables)))


def first_failure(results: list[CallResult]) -> Optional[CallResult]:
    for result in results:
        if not result.ok:
            return result
    return None
