"""Static catalog of subscription plans."""

import logging
from typing import Dict, Iterable, List, Optional

from jobportal.schemas.plans import Plan
from jobportal.utils.errors import PlanNotFound

logger = logging.getLogger(__name__)

DEFAULT_PLANS = (
    Plan(
        id="standard",
        name="Standard",
        description="Full access to the job portal for one year",
        price=699,
        currency="INR",
        duration_days=365,
        features=frozenset({"unlimited_jobs", "referrals", "interview_review", "cv_review"}),
    ),
    Plan(
        id="basic",
        name="Basic",
        description="Perfect for job seekers just starting out",
        price=499,
        currency="INR",
        duration_days=365,
        features=frozenset({"limited_applications", "basic_profile", "job_alerts", "search_filters"}),
    ),
    Plan(
        id="pro",
        name="Professional",
        description="For serious job seekers looking to stand out",
        price=999,
        currency="INR",
        duration_days=365,
        features=frozenset(
            {"unlimited_jobs", "featured_profile", "priority_processing", "advanced_filters", "cv_review"}
        ),
        popular=True,
    ),
    Plan(
        id="premium",
        name="Premium",
        description="The ultimate job seeking experience",
        price=1499,
        currency="INR",
        duration_days=365,
        features=frozenset(
            {
                "unlimited_jobs",
                "featured_profile",
                "priority_processing",
                "advanced_filters",
                "cv_review",
                "career_coaching",
                "employer_messaging",
                "interview_review",
                "recommendations",
                "early_access",
            }
        ),
    ),
)


class PlanCatalog:
    """Read-only lookup over the plans loaded at startup."""

    def __init__(self, plans: Iterable[Plan] = DEFAULT_PLANS, default_plan_id: str = "standard"):
        self._plans: Dict[str, Plan] = {}
        for plan in plans:
            if plan.id in self._plans:
                raise ValueError(f"Duplicate plan id {plan.id}")
            self._plans[plan.id] = plan

        if default_plan_id not in self._plans:
            raise ValueError(f"Default plan {default_plan_id} is not in the catalog")
        self.default_plan_id = default_plan_id
        logger.debug(f"Plan catalog loaded with {len(self._plans)} plans")

    def get_plan(self, plan_id: Optional[str] = None) -> Plan:
        """Resolve a plan, falling back to the default plan when no id is given.

        Raises:
            PlanNotFound: If the id is not in the catalog
        """
        resolved_id = plan_id or self.default_plan_id
        plan = self._plans.get(resolved_id)
        if plan is None:
            raise PlanNotFound(resolved_id)
        return plan

    def list_plans(self) -> List[Plan]:
        return list(self._plans.values())
