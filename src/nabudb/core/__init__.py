"""
nabudb Core Module.

Contains the actor context, operation types, the per-model surface, and the
error taxonomy.
"""

from nabudb.core.context import (
    ActorContext,
    ActorResolver,
    CallableActorResolver,
    SessionActorResolver,
    StaticActorResolver,
    actor_session,
    current_session_actor,
)
from nabudb.core.errors import (
    AuditWriteError,
    InvalidPayloadError,
    NabuDBError,
    PolicyConfigurationError,
    RecordNotFoundError,
    SchemaVersionError,
    TenantOverrideNotAllowedError,
    UnknownModelError,
    UnsupportedOperationError,
    ValidationError,
)
from nabudb.core.surface import ModelDelegate, OperationSurface
from nabudb.core.types import (
    READ_OPERATIONS,
    WRITE_OPERATIONS,
    Invocation,
    Operation,
)

__all__ = [
    # Context
    "ActorContext",
    "ActorResolver",
    "StaticActorResolver",
    "SessionActorResolver",
    "CallableActorResolver",
    "actor_session",
    "current_session_actor",
    # Errors
    "NabuDBError",
    "UnknownModelError",
    "SchemaVersionError",
    "InvalidPayloadError",
    "UnsupportedOperationError",
    "PolicyConfigurationError",
    "TenantOverrideNotAllowedError",
    "AuditWriteError",
    "RecordNotFoundError",
    "ValidationError",
    # Surface
    "ModelDelegate",
    "OperationSurface",
    # Types
    "Operation",
    "Invocation",
    "READ_OPERATIONS",
    "WRITE_OPERATIONS",
]
