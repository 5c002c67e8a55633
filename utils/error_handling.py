import logging
import threading
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


# Custom Exception Classes
class HarvestError(Exception):
    """Base exception for all harvester errors"""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class NavigationError(HarvestError):
    """Timeout or network failure while reaching or leaving a page"""

    pass


class EvaluationError(HarvestError):
    """Extraction logic failed inside the rendered document"""

    pass


class AuthenticationError(HarvestError):
    """No usable session credentials are available"""

    pass


class StorageError(HarvestError):
    """Reading or persisting external state failed"""

    pass


class ConfigurationError(HarvestError):
    """Configuration-related errors"""

    pass


class TreeStateError(HarvestError):
    """Illegal transition of a catalog tree node"""

    pass


@dataclass
class ErrorContext:
    """Captures the details of a recovered node failure"""

    path: Sequence[str] = ()
    url: Optional[str] = None
    level: Optional[str] = None
    timestamp: Optional[datetime] = None
    additional_data: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()
        self.path = tuple(self.path)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["path"] = list(self.path)
        return data


class ErrorReporter:
    """Error aggregation and reporting system"""

    def __init__(self, alert_thresholds: Optional[Dict[str, int]] = None):
        self.errors = defaultdict(list)
        self.error_stats = defaultdict(int)
        self.alert_thresholds = alert_thresholds or {
            "NavigationError": 10,
            "EvaluationError": 10,
        }
        self._alerted: set = set()
        self._history: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def report_error(self, error: Exception, context: Optional[ErrorContext] = None):
        """Report an error for aggregation"""
        error_type = type(error).__name__
        error_record = {
            "timestamp": datetime.now(),
            "error_type": error_type,
            "message": str(error),
            "context": context.to_dict() if context else {},
        }

        with self._lock:
            self.errors[error_type].append(error_record)
            self._history.append(error_record)
            self.error_stats[error_type] += 1
            count = self.error_stats[error_type]

        if count >= self.alert_thresholds.get(error_type, float("inf")):
            self._trigger_alert(error_type, count)

    def _trigger_alert(self, error_type: str, count: int):
        """Warn once per error type when the threshold is crossed"""
        if error_type in self._alerted:
            return
        self._alerted.add(error_type)
        logger.warning("High error rate for %s: %d errors", error_type, count)

    @property
    def total_errors(self) -> int:
        with self._lock:
            return sum(self.error_stats.values())

    def failed_nodes(self) -> List[Tuple[Tuple[str, ...], str]]:
        """``(path, message)`` of every reported failure, in report order"""
        with self._lock:
            return [
                (tuple(record["context"].get("path", ())), record["message"])
                for record in self._history
            ]

    def generate_report(self) -> Dict[str, Any]:
        """Generate error report"""
        with self._lock:
            report = {
                "generated_at": datetime.now().isoformat(),
                "total_errors": sum(self.error_stats.values()),
                "error_types": dict(self.error_stats),
                "recent_errors": {},
            }

            # Last 10 per type
            for error_type, error_list in self.errors.items():
                report["recent_errors"][error_type] = error_list[-10:]

            return report
