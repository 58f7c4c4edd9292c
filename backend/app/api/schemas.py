from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # The frontend speaks camelCase; Python code keeps snake_case attributes.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RegistrationOut(CamelModel):
    id: str
    tournament_id: str | None
    user_id: str
    team_name: str | None
    player_name: str | None
    email: str | None
    team_members: list[Any] | None
    captain: dict[str, Any] | None
    contact_info: dict[str, Any] | None
    status: str
    payment_status: str
    transaction_id: str | None
    razorpay_order_id: str | None
    razorpay_payment_id: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime


def dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")
