"""Collaborator-facing models: captured session data and start settings.

Captures arrive from whatever observes the page traffic (a browser
extension, a proxy, a hand-written JSON file); settings arrive from the
start command. Both are validated here so the bot never starts from a
half-filled capture.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CaptureEvent(BaseModel):
    """Session identifiers recovered from the page's init exchange"""

    model_config = ConfigDict(populate_by_name=True)

    origin: str
    symbol: str
    session_key: str = Field(alias="sessionKey")
    request_url: str = Field(alias="requestUrl")
    # Last index/counter echoed by the server
    index: int = Field(default=0, ge=0)
    counter: int = Field(default=0, ge=0)
    # Stakes the table accepts, when the init exchange reported them
    available_bets: Optional[List[Decimal]] = Field(default=None, alias="availableBets")

    @field_validator("session_key", "symbol", "request_url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value


class BotSettings(BaseModel):
    """Start command payload"""

    model_config = ConfigDict(populate_by_name=True)

    bet_unit: Decimal = Field(alias="betUnit", gt=0)
    # <= 0 means play until stopped
    wager_target: Decimal = Field(default=Decimal("0"), alias="wagerTarget")
    # Milliseconds
    action_delay: float = Field(default=0.0, alias="actionDelay", ge=0)
    delay_std_dev: float = Field(default=0.0, alias="delayStdDev", ge=0)
    round_backoff: Optional[float] = Field(default=None, alias="roundBackoff", ge=0)
