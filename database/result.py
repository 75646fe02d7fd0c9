"""Uniform two-part result returned by every data-access operation."""
import functools
import logging
from typing import Any, Awaitable, Callable, NamedTuple, Optional

from pydantic import ValidationError

from storage import StorageError

from .exceptions import DatabaseError, InvalidRecordError

logger = logging.getLogger(__name__)

class Result(NamedTuple):
    """Payload and error of one operation.

    Exactly one side is meaningful: on success `error` is None, on failure
    `data` is None and `error` holds the exception describing what went wrong.
    """
    data: Any = None
    error: Optional[DatabaseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the payload, raising the error if the operation failed."""
        if self.error is not None:
            raise self.error
        return self.data

def returns_result(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Result]]:
    """Turn an engine coroutine that raises into one that returns a Result.

    Domain errors are returned as-is. Storage failures and anything
    unexpected are logged and wrapped in DatabaseError.
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Result:
        try:
            return Result(data=await func(*args, **kwargs))
        except DatabaseError as e:
            logger.info(f"{func.__name__} failed: {e}")
            return Result(error=e)
        except ValidationError as e:
            logger.info(f"{func.__name__} rejected invalid input: {e}")
            error = InvalidRecordError(str(e))
            error.__cause__ = e
            return Result(error=error)
        except StorageError as e:
            logger.error(f"Storage error in {func.__name__}: {e}")
            error = DatabaseError(f"Storage failure: {str(e)}")
            error.__cause__ = e
            return Result(error=error)
        except Exception as e:
            logger.exception(f"Unexpected error in {func.__name__}: {e}")
            error = DatabaseError(f"{func.__name__} failed: {str(e)}")
            error.__cause__ = e
            return Result(error=error)
    return wrapper
