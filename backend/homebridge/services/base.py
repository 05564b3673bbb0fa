# backend/homebridge/services/base.py
"""
BaseService: the commit boundary and per-operation metrics every service shares.

Operation latency and outcome counts are exported through prometheus_client
under the service class and operation name.
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, TypeVar, cast

from prometheus_client import Counter, Histogram
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ServiceException

logger = logging.getLogger(__name__)

SERVICE_OPERATION_SECONDS = Histogram(
    "homebridge_service_operation_seconds",
    "Service operation latency",
    ["service", "operation"],
)
SERVICE_OPERATIONS_TOTAL = Counter(
    "homebridge_service_operations_total",
    "Service operations by outcome",
    ["service", "operation", "status"],
)

SLOW_OPERATION_SECONDS = 1.0

F = TypeVar("F", bound=Callable[..., Any])


class BaseService:
    """Holds the request session and a logger named after the concrete service."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on clean exit, roll back on any error.

        SQLAlchemy errors are re-raised as ServiceException; anything else
        (including domain exceptions) propagates unchanged after the rollback.
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except SQLAlchemyError as e:
            self.logger.error(f"Transaction failed: {str(e)}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {str(e)}")
        except Exception as e:
            self.logger.error(f"Unexpected error in transaction: {str(e)}")
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("submit_booking")
            def submit(self, ...):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                start_time = time.perf_counter()
                status = "error"
                try:
                    result = func(self, *args, **kwargs)
                    status = "success"
                    return result
                finally:
                    elapsed = time.perf_counter() - start_time
                    service_name = self.__class__.__name__
                    SERVICE_OPERATION_SECONDS.labels(service_name, operation_name).observe(elapsed)
                    SERVICE_OPERATIONS_TOTAL.labels(service_name, operation_name, status).inc()
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            f"Slow operation detected: {operation_name} took {elapsed:.2f}s"
                        )

            return cast(F, wrapper)

        return decorator
