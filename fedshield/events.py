"""Alerts emitted by the engines and the listener dispatcher that delivers them."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from loguru import logger


class AlertKind(Enum):
    """Kinds of notification an engine can raise."""

    INITIALIZED = "initialized"
    UPDATE_PROCESSED = "update-processed"
    PRIVACY_BUDGET_EXCEEDED = "privacy-budget-exceeded"
    ANOMALY_DETECTED = "anomaly-detected"
    BYZANTINE_DETECTED = "byzantine-detected"
    UPDATES_FILTERED = "updates-filtered"
    ERROR = "error"


@dataclass(frozen=True)
class Alert:
    """A single notification.

    Attributes:
        kind: What happened.
        client_id: Client concerned, if any.
        details: Free-form payload (budget snapshot, counts, anomalies...).
        timestamp: When the alert was raised.
    """

    kind: AlertKind
    client_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


AlertListener = Callable[[Alert], None]


class AlertDispatcher:
    """Delivers alerts to caller-supplied listeners.

    Each engine owns one dispatcher. A listener that raises does not stop
    delivery to the others; the failure is logged.
    """

    def __init__(self, listeners: Optional[Iterable[AlertListener]] = None):
        self._listeners: List[AlertListener] = list(listeners or [])

    def add_listener(self, listener: AlertListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: AlertListener) -> None:
        self._listeners.remove(listener)

    def emit(
        self,
        kind: AlertKind,
        client_id: Optional[str] = None,
        **details: Any,
    ) -> Alert:
        """Build an alert and hand it to every listener.

        Returns:
            The alert that was delivered.
        """
        alert = Alert(kind=kind, client_id=client_id, details=details)
        for listener in list(self._listeners):
            try:
                listener(alert)
            except Exception as e:
                logger.error(f"Alert listener failed on {kind.value}: {e}")
        return alert

    def __len__(self) -> int:
        return len(self._listeners)
