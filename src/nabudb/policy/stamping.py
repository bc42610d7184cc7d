"""
Actor-stamping interceptor.

Records who created and who last updated each row.
"""

from typing import Any

from nabudb.core.types import Invocation
from nabudb.policy.base import Interceptor, NextHandler
from nabudb.policy.rewriter import Injection, Stamps


class ActorStampInterceptor(Interceptor):
    """
    Stamps ``created_by``/``updated_by`` with the acting user.

    Creates get both columns, updates get ``updated_by``. Nested rows are
    stamped the same way, and models lacking a column are left alone. An
    anonymous actor leaves existing stamps untouched.
    """

    name = "actor_stamp"

    async def intercept(self, invocation: Invocation, call_next: NextHandler) -> Any:
        user_id = invocation.actor.user_id
        if (
            not invocation.operation.is_write
            or invocation.data is None
            or user_id is None
            or self.config.exemptions.is_actor_stamp_exempt(invocation.model)
        ):
            return await call_next(invocation)

        fields = self.config.fields
        injection = Injection(
            create=Stamps(scalar={fields.created_by: user_id, fields.updated_by: user_id}),
            update=Stamps(scalar={fields.updated_by: user_id}),
        )
        data = self.rewriter.rewrite(
            invocation.model,
            invocation.operation,
            invocation.data,
            injection,
        )
        return await call_next(
            invocation.with_decision(
                f"actor_stamp: stamped {user_id!r}",
                args={**invocation.args, "data": data},
            )
        )
