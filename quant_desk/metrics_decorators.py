"""
Metrics Collection Decorators

Decorators for automatic metrics collection on service methods.

Usage:
    @track_strategy_operation('publish')
    def publish(self, user, strategy_id):
        ...

Author: Quant Desk Development Team
Version: 1.0.0
"""

import time
from functools import wraps
from typing import Callable, Any

from loguru import logger

from quant_desk.application_metrics import (
    STRATEGY_OPERATIONS,
    STRATEGY_OPERATION_DURATION,
)
from quant_desk.exceptions import (
    AlreadyPrivateError,
    AlreadyPublicError,
    ForbiddenError,
    NameConflictError,
    NotFoundError,
    ValidationError,
)


def _status_for(exc: Exception) -> str:
    """Map a raised exception to the metric status label"""
    if isinstance(exc, NotFoundError):
        return 'not_found'
    if isinstance(exc, ForbiddenError):
        return 'forbidden'
    if isinstance(exc, NameConflictError):
        return 'conflict'
    if isinstance(exc, (ValidationError, AlreadyPublicError, AlreadyPrivateError)):
        return 'invalid'
    return 'failed'


def track_strategy_operation(operation: str):
    """
    Decorator to track strategy operation metrics.

    Automatically records:
    - Execution duration
    - Outcome (success or the kind of rejection)

    Args:
        operation: Operation name (create, update, delete, publish, ...)
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            start_time = time.time()
            status = 'failed'

            try:
                result = func(*args, **kwargs)
                status = 'success'
                return result

            except Exception as e:
                status = _status_for(e)
                if status == 'failed':
                    logger.error(f"Strategy operation failed: operation={operation}, error={e}")
                raise

            finally:
                STRATEGY_OPERATION_DURATION.labels(operation=operation).observe(time.time() - start_time)
                STRATEGY_OPERATIONS.labels(operation=operation, status=status).inc()

        return wrapper

    return decorator
