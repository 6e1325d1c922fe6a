"""
Transaction monitor metrics.

In-memory counters describing how monitors end and how the ledger is
being polled.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass
class FinishedMonitor:
    """Summary of one monitor that has exited."""

    tx_hash: str
    outcome: str
    status: Optional[str]
    finished_at: datetime
    polls: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "outcome": self.outcome,
            "status": self.status,
            "finished_at": self.finished_at.isoformat(),
            "polls": self.polls,
        }


@dataclass
class MonitorMetrics:
    """
    Counters shared by all monitors owned by one supervisor.

    ``outcomes`` is keyed by final status (success, fail, timeout) for
    completed monitors, or by ``stopped``/``error`` otherwise.
    """

    history_size: int = 100
    started: int = 0
    probe_calls: int = 0
    probe_latency_seconds: float = 0.0
    terminal_failures: int = 0
    outcomes: Counter = field(default_factory=Counter)
    _history: List[FinishedMonitor] = field(default_factory=list)

    def record_started(self):
        self.started += 1

    def record_probe(self, latency_seconds: float):
        self.probe_calls += 1
        self.probe_latency_seconds += latency_seconds

    def record_terminal_failure(self):
        self.terminal_failures += 1

    def record_finished(
        self, tx_hash: str, outcome: str, status: Optional[str], polls: int = 0
    ):
        self.outcomes[outcome] += 1
        self._history.append(
            FinishedMonitor(
                tx_hash=tx_hash,
                outcome=outcome,
                status=status,
                finished_at=datetime.now(timezone.utc),
                polls=polls,
            )
        )
        if len(self._history) > self.history_size:
            self._history = self._history[-self.history_size :]

    @property
    def finished(self) -> int:
        return sum(self.outcomes.values())

    def get_history(self, limit: Optional[int] = None) -> List[FinishedMonitor]:
        """Recently finished monitors, newest first."""
        history = list(reversed(self._history))
        if limit:
            history = history[:limit]
        return history

    def to_dict(self) -> Dict[str, Any]:
        avg_latency = (
            self.probe_latency_seconds / self.probe_calls if self.probe_calls else 0.0
        )
        return {
            "started": self.started,
            "finished": self.finished,
            "outcomes": dict(self.outcomes),
            "probe_calls": self.probe_calls,
            "avg_probe_latency_seconds": avg_latency,
            "terminal_failures": self.terminal_failures,
            "recent": [m.to_dict() for m in self.get_history(limit=10)],
        }
