"""Schema definitions for subscription plans."""

from typing import FrozenSet, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Plan(BaseModel):
    """A purchasable subscription plan. Plans never change after startup."""

    id: str
    name: str
    description: str = ""
    price: int = Field(..., ge=0, description="Whole currency units, no minor units")
    currency: str = "INR"
    duration_days: int = Field(..., ge=1)
    features: FrozenSet[str] = Field(default_factory=frozenset)
    popular: bool = False

    model_config = ConfigDict(frozen=True)


class PlanRead(BaseModel):
    """Public representation of a plan."""

    id: str
    name: str
    description: str
    price: int
    currency: str
    duration_days: int
    features: List[str]
    popular: bool

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanRead":
        return cls(
            id=plan.id,
            name=plan.name,
            description=plan.description,
            price=plan.price,
            currency=plan.currency,
            duration_days=plan.duration_days,
            features=sorted(plan.features),
            popular=plan.popular,
        )
