"""
User-facing alert channel.

Alerts are for problems only a human can fix (missing client id, pin to
register). Everything else goes to the logs.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Protocol

from app.utils.logging import get_logger

logger = get_logger(__name__)


class AlertChannel(Protocol):
    def alert(self, message: str) -> None:
        ...

    def clear_alerts(self) -> None:
        ...


@dataclass
class Alert:
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "createdAt": self.created_at.isoformat(),
        }


class AlertLog:
    """In-memory alert channel exposed through GET /alerts."""

    def __init__(self):
        self._alerts: List[Alert] = []

    def alert(self, message: str) -> None:
        logger.warning("user_alert", message=message)
        self._alerts.append(Alert(message=message))

    def clear_alerts(self) -> None:
        self._alerts.clear()

    def list(self) -> List[Alert]:
        return list(self._alerts)
