"""
nabudb - data-access policy engine for a multi-tenant note application.

nabudb sits between application code and the database client. Every call
passes through an interceptor chain that enforces soft deletes, tenant
isolation, created/updated-by stamps and an append-only audit trail, through
arbitrarily nested write payloads.
"""

__version__ = "0.1.0"

from nabudb.client import PolicyClient, create_policy_client
from nabudb.core.context import (
    ActorContext,
    CallableActorResolver,
    SessionActorResolver,
    StaticActorResolver,
    actor_session,
)
from nabudb.core.errors import (
    AuditWriteError,
    InvalidPayloadError,
    NabuDBError,
    PolicyConfigurationError,
    RecordNotFoundError,
    TenantOverrideNotAllowedError,
    UnknownModelError,
    UnsupportedOperationError,
    ValidationError,
)
from nabudb.core.types import Operation
from nabudb.policy.models import AuditFailureMode, ExemptionSet, PolicyConfig, TenantOverridePolicy
from nabudb.schema.map import SchemaMap

__all__ = [
    # Version
    "__version__",
    # Client
    "PolicyClient",
    "create_policy_client",
    # Context
    "ActorContext",
    "StaticActorResolver",
    "SessionActorResolver",
    "CallableActorResolver",
    "actor_session",
    # Configuration
    "PolicyConfig",
    "ExemptionSet",
    "AuditFailureMode",
    "TenantOverridePolicy",
    "SchemaMap",
    "Operation",
    # Errors
    "NabuDBError",
    "UnknownModelError",
    "InvalidPayloadError",
    "UnsupportedOperationError",
    "PolicyConfigurationError",
    "TenantOverrideNotAllowedError",
    "AuditWriteError",
    "RecordNotFoundError",
    "ValidationError",
]
