# backend/app/services/base.py
"""
Base Service Pattern for the tutoring platform.

Provides common functionality for all service classes:
- Transaction management (services own commit/rollback)
- Logging named after the concrete service
- Performance monitoring via @measure_operation
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import DomainException, RepositoryException, ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """
    Base class for all service layer components.

    Subclasses receive a session, create their repositories through
    RepositoryFactory, and wrap every write in ``self.transaction()``.
    """

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Context manager for database transactions.

        Usage:
            with self.transaction():
                self.repository.create(...)
                # commit is handled automatically

        Store failures become ServiceException; domain exceptions raised inside
        the block roll back and propagate unchanged.
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except (SQLAlchemyError, RepositoryException) as e:
            self.logger.error(f"Transaction failed: {str(e)}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {str(e)}") from e
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Rejections raised as DomainException count as "rejected", anything
        else that escapes counts as "error".

        Usage:
            @BaseService.measure_operation("create_booking")
            def create_booking(self, ctx, data):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                start_time = time.time()
                status = "success"
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except DomainException as e:
                    status = "error" if isinstance(e, ServiceException) else "rejected"
                    error_type = e.code
                    raise
                except Exception as e:
                    status = "error"
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.time() - start_time
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            f"Slow operation detected: {operation_name} took {elapsed:.2f}s",
                            extra={"operation": operation_name, "duration_s": round(elapsed, 3)},
                        )

                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status=status,
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator
