"""
Search reads with a primary-store fallback.

``FallbackCoordinator.run`` tries the index operation; if it raises, the
failure is recorded as a ``SearchDegradedError`` and the database operation
answers instead. The caller gets a ``SearchOutcome`` that says which path
produced the value, so degradation is part of the return type rather than
something hidden in an except block. The fallback is less precise (substring
matching, no relevance, no fuzziness) and that is accepted.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from .errors import SearchDegradedError, UnhandledError
from .log import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class SearchStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass
class SearchOutcome(Generic[T]):
    status: SearchStatus
    operation: str
    value: Optional[T] = None
    degraded: Optional[SearchDegradedError] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is SearchStatus.OK

    @property
    def is_degraded(self) -> bool:
        return self.status is SearchStatus.DEGRADED

    def unwrap(self) -> T:
        """Return the value, or raise UnhandledError when both paths failed."""
        if self.status is SearchStatus.FAILED:
            raise UnhandledError(f"{self.operation} failed") from self.error
        return self.value


class FallbackCoordinator:
    async def run(
        self,
        operation: str,
        primary: Callable[[], Awaitable[T]],
        fallback: Callable[[], Awaitable[T]],
    ) -> SearchOutcome[T]:
        try:
            return SearchOutcome(SearchStatus.OK, operation, value=await primary())
        except Exception as exc:
            degraded = SearchDegradedError(operation, exc)
            logger.warning("Falling back to database search: %s", degraded)

        try:
            value = await fallback()
        except Exception as exc:
            logger.exception("Fallback for %s failed", operation)
            return SearchOutcome(SearchStatus.FAILED, operation, degraded=degraded, error=exc)
        return SearchOutcome(SearchStatus.DEGRADED, operation, value=value, degraded=degraded)
