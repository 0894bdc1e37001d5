"""Value types exchanged with the host platform."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PayableReference(BaseModel):
    """What is being paid for; used as the lookup key for pricing and config."""

    model_config = ConfigDict(frozen=True)

    component: str = Field(min_length=1, max_length=100, pattern=r"^[a-z][a-z0-9_]*$")
    payment_area: str = Field(min_length=1, max_length=100, pattern=r"^[a-z0-9_]+$")
    item_id: int = Field(ge=0)

    def label(self) -> str:
        return f"{self.component}/{self.payment_area}/{self.item_id}"

    def as_metadata(self) -> dict[str, str]:
        return {
            "component": self.component,
            "payment_area": self.payment_area,
            "item_id": str(self.item_id),
        }


class ResolvedPayable(BaseModel):
    amount: Decimal
    currency: str = Field(min_length=3, max_length=3)
    account_id: int
    description: str = ""
