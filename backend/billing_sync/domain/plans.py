"""Plan catalog: static mapping between plan IDs and Stripe price IDs."""

from dataclasses import dataclass

from billing_sync.core.config import Settings

FREE_PLAN = "free"
UNKNOWN_PLAN = "unknown"


@dataclass(frozen=True)
class PlanLookup:
    """Result of mapping a Stripe price ID to a plan name."""

    plan: str
    mapped: bool


class PlanCatalog:
    """Bidirectional plan <-> price lookup built from configuration."""

    def __init__(self, plan_prices: dict[str, str]):
        self._plan_to_price = dict(plan_prices)
        self._price_to_plan = {price: plan for plan, price in plan_prices.items()}

    @classmethod
    def from_settings(cls, settings: Settings) -> "PlanCatalog":
        return cls(settings.plan_price_map)

    def price_for(self, plan_id: str) -> str | None:
        return self._plan_to_price.get(plan_id)

    def plan_for(self, price_id: str | None) -> PlanLookup:
        """Return the plan for a price ID, falling back to UNKNOWN_PLAN when unmapped."""
        plan = self._price_to_plan.get(price_id) if price_id else None
        if plan is None:
            return PlanLookup(plan=UNKNOWN_PLAN, mapped=False)
        return PlanLookup(plan=plan, mapped=True)

    @property
    def plans(self) -> list[str]:
        return sorted(self._plan_to_price)
