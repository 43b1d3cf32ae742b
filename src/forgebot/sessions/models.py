"""Chat session model.

The session is the only continuity between stateless requests. Workflow
progress lives in the (current_action, temp_data) pair, which is only ever
replaced as a whole through `enter()` and `reset()`.
"""

import time
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

GasPriority = Literal["low", "medium", "high"]


class TradeSettings(BaseModel):
    """Per-user trading preferences carried in the session."""

    model_config = ConfigDict(populate_by_name=True)

    slippage: float = 1.0
    gas_priority: GasPriority = Field(default="medium", alias="gasPriority")


class Session(BaseModel):
    """Server-side chat session."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: str
    user_id: Optional[str] = Field(default=None, alias="userId")
    wallet_address: Optional[str] = Field(default=None, alias="walletAddress")
    current_action: Optional[str] = Field(default=None, alias="currentAction")
    temp_data: dict[str, Any] = Field(default_factory=dict, alias="tempData")
    settings: TradeSettings = Field(default_factory=TradeSettings)
    fid: Optional[str] = None
    username: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")

    @property
    def is_guest(self) -> bool:
        return not self.user_id

    @property
    def is_idle(self) -> bool:
        return self.current_action is None

    def enter(self, state: BaseModel) -> None:
        """Make `state` the active workflow step.

        `state` must expose an `action` field naming the step. Its remaining
        fields become temp_data, stamped with the current time.
        """
        data = state.model_dump(mode="json", exclude={"action"})
        data["touched_at"] = time.time()
        self.current_action = state.action
        self.temp_data = data

    def reset(self) -> None:
        """Return to idle."""
        self.current_action = None
        self.temp_data = {}

    def to_record(self) -> dict:
        """Serialize for storage using the wire field names."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_record(cls, data: dict) -> "Session":
        return cls.model_validate(data)
