"""
Default profiles for nabudb configuration.
"""

from dataclasses import dataclass, field
from typing import Literal

from nabudb.policy.models import (
    AuditFailureMode,
    ExemptionSet,
    PolicyConfig,
    TenantOverridePolicy,
)


@dataclass(frozen=True)
class DefaultsProfile:
    """
    Configuration profile with sensible defaults.

    Profiles decide how strictly the engine treats audit failures and
    payload-supplied tenants.
    """

    mode: Literal["strict", "compat"]

    # Audit
    audit_failure_mode: AuditFailureMode = AuditFailureMode.FAIL_CLOSED
    capture_old_data: bool = False

    # Tenancy
    tenant_override: TenantOverridePolicy = TenantOverridePolicy.SYSTEM_ONLY

    exemptions: ExemptionSet = field(default_factory=ExemptionSet)

    def to_policy_config(self, **overrides) -> PolicyConfig:
        """Convert profile to a PolicyConfig."""
        values = {
            "exemptions": self.exemptions,
            "audit_failure_mode": self.audit_failure_mode,
            "tenant_override": self.tenant_override,
            "capture_old_data": self.capture_old_data,
        }
        values.update(overrides)
        return PolicyConfig(**values)


# Built-in profiles

DEFAULT_STRICT = DefaultsProfile(
    mode="strict",
    audit_failure_mode=AuditFailureMode.FAIL_CLOSED,
    capture_old_data=False,
    tenant_override=TenantOverridePolicy.SYSTEM_ONLY,
)

# Matches the behaviour of the engine before audit atomicity and tenant
# override checks were introduced
DEFAULT_COMPAT = DefaultsProfile(
    mode="compat",
    audit_failure_mode=AuditFailureMode.BEST_EFFORT,
    capture_old_data=False,
    tenant_override=TenantOverridePolicy.PAYLOAD,
)
