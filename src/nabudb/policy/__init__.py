"""
nabudb Policy Module.

The interceptors that enforce soft delete, tenant isolation, actor stamps and
auditing, and the rewriter they share.
"""

from nabudb.policy.auditing import AuditInterceptor
from nabudb.policy.base import Interceptor, NextHandler
from nabudb.policy.chain import InterceptorChain
from nabudb.policy.models import (
    AuditFailureMode,
    ExemptionSet,
    FieldNames,
    PolicyConfig,
    TenantOverridePolicy,
)
from nabudb.policy.rewriter import Injection, MutationRewriter, NestedDeleteRule, Stamps
from nabudb.policy.soft_delete import SoftDeleteInterceptor
from nabudb.policy.stamping import ActorStampInterceptor
from nabudb.policy.tenancy import TenantInterceptor

__all__ = [
    # Configuration
    "PolicyConfig",
    "ExemptionSet",
    "FieldNames",
    "AuditFailureMode",
    "TenantOverridePolicy",
    # Rewriter
    "MutationRewriter",
    "Injection",
    "Stamps",
    "NestedDeleteRule",
    # Interceptors
    "Interceptor",
    "NextHandler",
    "SoftDeleteInterceptor",
    "TenantInterceptor",
    "ActorStampInterceptor",
    "AuditInterceptor",
    "InterceptorChain",
]
