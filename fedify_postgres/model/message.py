"""
Message model for the PostgreSQL message queue.
One row of the queue table.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict
from uuid import UUID


@dataclass
class Message:
    """
    A persisted queue message.
    Created by enqueue, removed by exactly one successful claim, never updated.
    """

    id: UUID
    message: Any = None
    delay: timedelta = field(default_factory=timedelta)
    created: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def due_at(self) -> datetime:
        """Point in time from which the message may be claimed."""
        return self.created + self.delay

    def is_due(self, now: datetime) -> bool:
        """A message is due exactly when created + delay <= now."""
        return self.due_at <= now

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Message":
        """Create message from a dict_row of the queue table."""
        delay = row.get("delay")
        return cls(
            id=row["id"],
            message=row["message"],
            delay=delay if delay is not None else timedelta(0),
            created=row["created"],
        )
