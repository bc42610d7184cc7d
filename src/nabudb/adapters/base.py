"""
Abstract raw storage client.

A storage client executes operations exactly as given: no tenant scoping,
no soft-delete filtering, no audit. The policy client wraps one, and the
policies use it directly for their own internal writes.
"""

from abc import abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any

from nabudb.core.surface import OperationSurface
from nabudb.core.types import Operation


class StorageClient(OperationSurface):
    """
    Abstract base class for raw storage backends.

    Backends are responsible for:
    1. Executing the ten operations, including nested write payloads
    2. Raising RecordNotFoundError when a single-row update/delete matches nothing
    3. Transactions: ``transaction()`` blocks commit or roll back as a unit,
       and nested blocks behave as savepoints
    """

    @abstractmethod
    async def execute(
        self,
        model: str,
        operation: Operation | str,
        args: dict[str, Any] | None = None,
    ) -> Any:
        """
        Execute one operation without any policy applied.

        Backend errors (constraint violations, connection failures) propagate
        unchanged.
        """
        ...

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[Any]:
        """
        Open a transaction scope.

        Everything executed inside the block is committed when it exits
        normally and rolled back when it raises.
        """
        ...
