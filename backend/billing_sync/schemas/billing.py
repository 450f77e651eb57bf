"""Billing API Pydantic schemas.

Wire format uses camelCase keys; Python attributes stay snake_case.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckoutIdentityIn(CamelModel):
    email: str | None = None
    user_id: int | None = None

    @model_validator(mode="after")
    def _require_one(self) -> "CheckoutIdentityIn":
        if self.user_id is None and not self.email:
            raise ValueError("identity requires email or userId")
        return self


class CheckoutRequest(CamelModel):
    identity: CheckoutIdentityIn
    plan_id: str = Field(..., min_length=1)


class CheckoutResponse(CamelModel):
    redirect_url: str


class BillingStatusResponse(CamelModel):
    subscribed: bool
    plan: str
    status: str | None = None
    cancel_at_period_end: bool = False
    period_end: int | None = Field(default=None, description="Current period end, epoch milliseconds")


class WebhookAck(BaseModel):
    status: str
