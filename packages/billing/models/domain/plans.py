"""Domain models for billing plans."""

from pydantic import BaseModel, ConfigDict

from packages.billing.models.domain.enums import PlanId

# Limit value meaning "no limit"
UNLIMITED = -1


class Plan(BaseModel):
    """A compiled-in plan and the limits it grants."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    max_resource_count: int
    max_storage_mb: int
    features: frozenset[str]

    @property
    def is_free(self) -> bool:
        return self.id == PlanId.FREE.value
