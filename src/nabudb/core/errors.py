"""
Error taxonomy for nabudb.

Every error raised by the policy layer or the storage adapter derives from
NabuDBError and carries a stable code, a message, retry hints for the caller
and structured details. Driver errors from the database are not wrapped.
"""

from typing import Any


class NabuDBError(Exception):
    """
    Base class for all nabudb errors.

    Attributes:
        code: Unique error code for programmatic handling
        message: Human-readable error message
        retry_hints: Suggestions for how to fix the error
        details: Additional error context
    """

    code: str = "NABUDB_ERROR"

    def __init__(
        self,
        message: str,
        *,
        retry_hints: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.retry_hints = retry_hints or []
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a dictionary for serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "retry_hints": self.retry_hints,
            "details": self.details,
        }


class UnknownModelError(NabuDBError):
    """The model is not part of the schema map."""

    code = "UNKNOWN_MODEL"

    def __init__(
        self,
        model: str,
        known_models: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        hints = []
        if known_models:
            hints.append(f"Known models: {', '.join(sorted(known_models)[:20])}")
        super().__init__(
            f"Model '{model}' is not defined in the schema map",
            retry_hints=hints,
            details={"model": model},
            **kwargs,
        )


class SchemaVersionError(NabuDBError):
    """A generated schema map file has an unsupported format version."""

    code = "SCHEMA_VERSION_MISMATCH"

    def __init__(self, found: Any, expected: int, **kwargs: Any) -> None:
        super().__init__(
            f"Schema map version {found!r} is not supported (expected {expected})",
            retry_hints=["Regenerate the schema map from the current models"],
            details={"found": found, "expected": expected},
            **kwargs,
        )


class InvalidPayloadError(NabuDBError):
    """A write payload has a shape the engine cannot interpret."""

    code = "INVALID_PAYLOAD"

    def __init__(
        self,
        message: str,
        model: str | None = None,
        path: str | None = None,
        **kwargs: Any,
    ) -> None:
        details: dict[str, Any] = {}
        if model:
            details["model"] = model
        if path:
            details["path"] = path
        super().__init__(message, details=details, **kwargs)


class UnsupportedOperationError(NabuDBError):
    """The operation name is not part of the operation surface."""

    code = "UNSUPPORTED_OPERATION"

    def __init__(self, operation: str, model: str | None = None, **kwargs: Any) -> None:
        super().__init__(
            f"Operation '{operation}' is not supported"
            + (f" on model '{model}'" if model else ""),
            details={"operation": operation, "model": model},
            **kwargs,
        )


class PolicyConfigurationError(NabuDBError):
    """A model cannot satisfy a policy it is not exempt from."""

    code = "POLICY_CONFIGURATION"

    def __init__(self, model: str, reason: str, **kwargs: Any) -> None:
        super().__init__(
            f"Policy configuration error for model '{model}': {reason}",
            retry_hints=["Add the missing field or list the model in the exemption set"],
            details={"model": model, "reason": reason},
            **kwargs,
        )


class TenantOverrideNotAllowedError(NabuDBError):
    """A non-system actor tried to write into a tenant other than its own."""

    code = "TENANT_OVERRIDE_NOT_ALLOWED"

    def __init__(
        self,
        model: str,
        requested_tenant: str | None,
        actor_tenant: str | None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"Explicit tenant '{requested_tenant}' on model '{model}' does not match "
            f"the acting tenant",
            retry_hints=["Use the system client for trusted cross-tenant writes"],
            details={
                "model": model,
                "requested_tenant": requested_tenant,
                "actor_tenant": actor_tenant,
            },
            **kwargs,
        )


class AuditWriteError(NabuDBError):
    """The audit record for a mutation could not be written."""

    code = "AUDIT_WRITE_FAILED"

    def __init__(self, model: str, action: str, **kwargs: Any) -> None:
        super().__init__(
            f"Audit record for '{action}' on model '{model}' could not be written; "
            f"the operation was rolled back",
            details={"model": model, "action": action},
            **kwargs,
        )


class RecordNotFoundError(NabuDBError):
    """
    No row matched a single-row update or delete.

    Rows hidden by tenant scoping are reported the same way, so a caller
    cannot tell whether a row exists in another tenant.
    """

    code = "NOT_FOUND"

    def __init__(self, model: str, where: dict[str, Any] | None = None, **kwargs: Any) -> None:
        super().__init__(
            f"No '{model}' record matched the given where-clause",
            details={"model": model, "where": where or {}},
            **kwargs,
        )


class ValidationError(NabuDBError):
    """Input validation failed."""

    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            details={"field": field} if field else {},
            **kwargs,
        )
