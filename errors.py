class RoomError(Exception):
    """Base class for failures reported to a client as a ``roomError`` event."""

    code = None
    message = "Room error"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_payload(self) -> dict:
        payload = {"message": self.message}
        if self.code:
            payload["code"] = self.code
        return payload


class CodeExhausted(RoomError):
    code = "CodeExhausted"
    message = "Unable to generate room code. Please try again."


class RoomNotFound(RoomError):
    code = "ROOM_NOT_FOUND"
    message = "Room code not found. Please check the code and try again."


class RoomFull(RoomError):
    code = "ROOM_FULL"
    message = "Room is full (maximum 2 people)"


class RoomAlreadyExists(Exception):
    """Raised by the room store when asked to create a code that is already live."""

    def __init__(self, code: str):
        super().__init__(f"Room {code} already exists")
        self.code = code
