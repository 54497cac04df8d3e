from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Connection:
    id: str
    name: str = ""
    room_code: Optional[str] = None
    connected_at: datetime = field(default_factory=datetime.now)


class ConnectionRegistry:
    """Every live connection, keyed by the id the transport assigned to it."""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    def register(self, connection_id: str) -> Connection:
        connection = Connection(id=connection_id)
        self._connections[connection_id] = connection
        logger.debug(f"Registered connection {connection_id} ({len(self._connections)} live)")
        return connection

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def set_name(self, connection_id: str, name: str):
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.debug(f"Ignoring name for unknown connection {connection_id}")
            return
        connection.name = name

    def set_room(self, connection_id: str, room_code: Optional[str]):
        connection = self._connections.get(connection_id)
        if connection is None:
            return
        connection.room_code = room_code

    def remove(self, connection_id: str) -> Optional[Connection]:
        connection = self._connections.pop(connection_id, None)
        if connection:
            logger.debug(f"Removed connection {connection_id} ({len(self._connections)} live)")
        return connection

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)
