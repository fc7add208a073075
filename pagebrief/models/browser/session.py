from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RemoteSession(BaseModel):
    """One entry of the browser backend's session registry.

    The backend reports a claim either as an explicit ``claimed`` flag or
    as the id of the connection currently attached (``connectionId``).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    session_id: str = Field(alias="sessionId")
    claimed: bool = False

    @model_validator(mode="before")
    @classmethod
    def _claimed_from_connection(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("connectionId"):
            data = {**data, "claimed": True}
        return data
