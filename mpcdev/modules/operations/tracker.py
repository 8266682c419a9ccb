import asyncio
import logging
from typing import Optional, Tuple, Union

from mpcdev.errors import AlreadyRunningError
from mpcdev.modules.api.models import IDLE, DevEnvironment, Operation

logger = logging.getLogger(__name__)


def _name(operation: Union[Operation, str]) -> str:
    return operation.value if isinstance(operation, Operation) else operation


class OperationTracker:
    def __init__(self, environment: DevEnvironment, lock: Optional[asyncio.Lock] = None):
        """
        Initialize operation tracker.

        Args:
            environment: Environment whose operation fields are tracked
            lock: Lock serializing transitions (shared with other environment mutations)
        """
        self.environment = environment
        self.lock = lock or asyncio.Lock()

    async def begin(self, operation: Union[Operation, str]) -> None:
        """
        Mark an operation as running.

        This is the only gate for starting operations. Starting clears the
        error left by the previous operation.

        Raises:
            AlreadyRunningError: If another operation is in progress
        """
        name = _name(operation)
        async with self.lock:
            current = self.environment.operation_status
            if current != IDLE:
                logger.info(f"Rejected '{name}': '{current}' is in progress")
                raise AlreadyRunningError(name, current)

            self.environment.operation_status = name
            self.environment.last_operation_error = None
            self.environment.touch()

        logger.info(f"Operation '{name}' started")

    async def complete(self, operation: Union[Operation, str], error: Optional[str] = None) -> None:
        """
        Mark an operation as finished and return to idle.

        Args:
            operation: The operation that finished
            error: Failure message, kept until the next begin()
        """
        name = _name(operation)
        async with self.lock:
            current = self.environment.operation_status
            if current != name:
                logger.warning(f"Ignoring completion of '{name}': current operation is '{current}'")
                return

            self.environment.operation_status = IDLE
            self.environment.last_operation_error = error
            self.environment.touch()

        if error:
            logger.error(f"Operation '{name}' failed: {error}")
        else:
            logger.info(f"Operation '{name}' completed successfully")

    def current_status(self) -> Tuple[str, Optional[str]]:
        """Non-blocking read of (operation or "idle", last error)."""
        return self.environment.operation_status, self.environment.last_operation_error

    @property
    def is_idle(self) -> bool:
        return self.environment.operation_status == IDLE
