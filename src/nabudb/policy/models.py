"""
Policy configuration models.

The exemption set is declared per policy: a model can be exempt from tenant
scoping while still being audited, and so on. Nothing is inferred from model
names at runtime.
"""

from enum import Enum

from pydantic import BaseModel, Field


class AuditFailureMode(str, Enum):
    """What happens to a mutation whose audit record cannot be written."""

    # Primary write and audit write share a transaction; audit failure rolls back
    FAIL_CLOSED = "fail_closed"

    # Audit failure is logged and the primary write is kept
    BEST_EFFORT = "best_effort"


class TenantOverridePolicy(str, Enum):
    """Who may name a tenant explicitly in a write payload."""

    # Only the system actor; regular actors may only restate their own tenant
    SYSTEM_ONLY = "system_only"

    # Any payload tenant wins over the actor's tenant
    PAYLOAD = "payload"


class ExemptionSet(BaseModel):
    """
    Models excluded from each policy.

    Defaults cover the append-only log tables, the tenant table itself, and
    the cross-tenant linking tables.
    """

    tenant: frozenset[str] = Field(
        default=frozenset({"Tenant", "AuditLog", "WhatsAppLinkToken"})
    )
    soft_delete: frozenset[str] = Field(
        default=frozenset({"AuditLog", "WhatsAppMessage", "WhatsAppLinkToken"})
    )
    actor_stamp: frozenset[str] = Field(default_factory=frozenset)
    audit: frozenset[str] = Field(default=frozenset({"AuditLog"}))

    model_config = {"frozen": True}

    def is_tenant_exempt(self, model: str) -> bool:
        return model in self.tenant

    def is_soft_delete_exempt(self, model: str) -> bool:
        return model in self.soft_delete

    def is_actor_stamp_exempt(self, model: str) -> bool:
        return model in self.actor_stamp

    def is_audit_exempt(self, model: str) -> bool:
        return model in self.audit

    def with_exempt(self, policy: str, *models: str) -> "ExemptionSet":
        """Return a copy with models added to one policy's exemptions."""
        current: frozenset[str] = getattr(self, policy)
        return self.model_copy(update={policy: current | frozenset(models)})


class FieldNames(BaseModel):
    """Column and relation names the policies read and write."""

    tenant_id: str = "tenant_id"
    # Relation through which tenant_id is written in relational form
    tenant: str = "tenant"
    deleted_at: str = "deleted_at"
    created_by: str = "created_by"
    updated_by: str = "updated_by"
    id: str = "id"

    model_config = {"frozen": True}


class PolicyConfig(BaseModel):
    """
    Complete policy engine configuration.
    """

    exemptions: ExemptionSet = Field(default_factory=ExemptionSet)
    fields: FieldNames = Field(default_factory=FieldNames)

    # Model that receives audit rows when the storage-backed audit store is used
    audit_model: str = Field(default="AuditLog")

    # Model whose creations are audited under the new row's own id as tenant
    tenant_model: str = Field(default="Tenant")

    audit_failure_mode: AuditFailureMode = Field(default=AuditFailureMode.FAIL_CLOSED)
    tenant_override: TenantOverridePolicy = Field(default=TenantOverridePolicy.SYSTEM_ONLY)

    # Read the row before single-row update/delete and store it as old_data
    capture_old_data: bool = Field(default=False)

    model_config = {"frozen": True}
