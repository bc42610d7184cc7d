"""
Per-model operation surface.

The raw storage client and the policy client expose the same API, so one can
replace the other at any call site.
"""

from abc import ABC, abstractmethod
from typing import Any

from nabudb.core.types import Operation


class ModelDelegate:
    """
    Operations bound to a single model.

    Keyword arguments become the operation's args, e.g.
    ``await notes.find_many(where={"folder_id": "f1"}, take=10)``.
    """

    def __init__(self, surface: "OperationSurface", model: str) -> None:
        self._surface = surface
        self.model = model

    async def find(self, **args: Any) -> dict[str, Any] | None:
        return await self._surface.execute(self.model, Operation.FIND, args)

    async def find_many(self, **args: Any) -> list[dict[str, Any]]:
        return await self._surface.execute(self.model, Operation.FIND_MANY, args)

    async def count(self, **args: Any) -> int:
        return await self._surface.execute(self.model, Operation.COUNT, args)

    async def group_by(self, **args: Any) -> list[dict[str, Any]]:
        return await self._surface.execute(self.model, Operation.GROUP_BY, args)

    async def create(self, **args: Any) -> dict[str, Any]:
        return await self._surface.execute(self.model, Operation.CREATE, args)

    async def create_many(self, **args: Any) -> dict[str, int]:
        return await self._surface.execute(self.model, Operation.CREATE_MANY, args)

    async def update(self, **args: Any) -> dict[str, Any]:
        return await self._surface.execute(self.model, Operation.UPDATE, args)

    async def update_many(self, **args: Any) -> dict[str, int]:
        return await self._surface.execute(self.model, Operation.UPDATE_MANY, args)

    async def delete(self, **args: Any) -> dict[str, Any]:
        return await self._surface.execute(self.model, Operation.DELETE, args)

    async def delete_many(self, **args: Any) -> dict[str, int]:
        return await self._surface.execute(self.model, Operation.DELETE_MANY, args)

    def __repr__(self) -> str:
        return f"ModelDelegate({self.model!r})"


class OperationSurface(ABC):
    """Anything that can execute an operation on a named model."""

    @abstractmethod
    async def execute(
        self,
        model: str,
        operation: Operation | str,
        args: dict[str, Any] | None = None,
    ) -> Any:
        """Execute one operation and return its result."""
        ...

    def model(self, name: str) -> ModelDelegate:
        """Get the operations bound to a model."""
        return ModelDelegate(self, name)

    def __getitem__(self, name: str) -> ModelDelegate:
        return self.model(name)
