from enum import Enum

from pydantic import BaseModel


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    TRIALING = "TRIALING"
    CANCELLED = "CANCELLED"
    PAST_DUE = "PAST_DUE"


class Owner(BaseModel):
    id: str
    subscription_status: SubscriptionStatus | None = None
    created_at: str
    expires_at: str

    @property
    def has_subscription(self) -> bool:
        return self.subscription_status in (
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.TRIALING,
        )


class UsageStatus(BaseModel):
    allowed: bool
    has_subscription: bool
    usage_count: int
    limit: int
