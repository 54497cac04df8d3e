from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from typing import Annotated, Any, Optional


def _as_text(value: Any) -> Optional[str]:
    """Scalars are coerced to str; anything else (objects, lists) counts as absent."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return str(value)
    return None


# A text field that never fails validation
Text = Annotated[Optional[str], BeforeValidator(_as_text)]


class ClientEvent(BaseModel):
    """Base for inbound event payloads. Every field has a default so a missing
    field is treated as absent rather than rejecting the whole event."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RegisterEvent(ClientEvent):
    name: Text = None


class CreateRoomEvent(ClientEvent):
    name: Text = None


class JoinRoomEvent(ClientEvent):
    roomCode: Text = None
    # Older web clients send the typed code as roomId
    roomId: Text = None
    name: Text = None

    @property
    def code(self) -> str:
        return self.roomCode or self.roomId or ""


class CallUserEvent(ClientEvent):
    userToCall: Text = None
    signalData: Any = None
    from_: Text = Field(default=None, alias="from")
    name: Text = None


class AnswerCallEvent(ClientEvent):
    signal: Any = None
    to: Text = None


class TargetedEvent(ClientEvent):
    to: Text = None


class SignalEvent(ClientEvent):
    signal: Any = None
    to: Text = None


class ScreenShareEvent(ClientEvent):
    from_: Text = Field(default=None, alias="from")
    name: Text = None
    roomId: Text = None
