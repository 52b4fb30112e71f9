"""
Structured Logging for GPS Quest.
Console and rotating-file logging with quest-specific categories. Arrivals and
other quest milestones are also written to a separate quest event log so a
walk can be reviewed on its own.
"""
import logging
import logging.handlers
import json
import uuid
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Optional, Dict, Any, Union

CategoryLike = Optional[Union["LogCategory", str]]


class LogLevel(Enum):
    """Log levels, including a TRACE level below DEBUG for per-tick detail."""
    TRACE = 5
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


class LogCategory(Enum):
    """Categories for quest logging."""
    SYSTEM = auto()
    GPS = auto()
    QUEST = auto()
    PRESENTATION = auto()
    CONFIG = auto()
    DATA = auto()
    USER_ACTION = auto()


logging.addLevelName(LogLevel.TRACE.value, "TRACE")


class StructuredFormatter(logging.Formatter):
    """One readable line per record, optionally followed by a JSON payload.

    The payload holds the session id, the category, the structured fields
    passed as keyword arguments and, for failures, the exception.
    """

    def __init__(self, include_json: bool = True):
        super().__init__()
        self.include_json = include_json

    def format(self, record: logging.LogRecord) -> str:
        category = getattr(record, "category", "GENERAL")
        when = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        line = f"{when} {record.levelname:<8} [{category}] {record.getMessage()}"
        if not self.include_json:
            if record.exc_info:
                line += f" ({record.exc_info[0].__name__}: {record.exc_info[1]})"
            return line
        payload: Dict[str, Any] = {
            "session_id": getattr(record, "session_id", None),
            "category": category,
            "source": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        fields = getattr(record, "quest_fields", None)
        if fields:
            payload["fields"] = fields
        if record.exc_info:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }
        return f"{line} | {json.dumps(payload, default=str, ensure_ascii=False)}"


# (file suffix, level, max bytes, backups) of the rotating logs
_FILE_LOGS = (
    ("", logging.DEBUG, 10 * 1024 * 1024, 5),
    ("_errors", logging.ERROR, 5 * 1024 * 1024, 5),
)


class QuestLogger:
    """Logger for GPS Quest with structured fields and a quest event log."""

    def __init__(self, name: str = "gpsquest", log_dir: Optional[Path] = None):
        self.name = name
        self.session_id = uuid.uuid4().hex[:8]
        self.log_dir = Path(log_dir) if log_dir is not None else Path.home() / "GPSQuest" / "logs"
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._setup_loggers()
        self.info("GPS Quest logging started", LogCategory.SYSTEM,
                  session_id=self.session_id, log_dir=str(self.log_dir))

    def _rotating_handler(self, suffix: str, level: int, max_bytes: int,
                          backups: int) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            self.log_dir / f"{self.name}{suffix}.log",
            maxBytes=max_bytes, backupCount=backups, encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(StructuredFormatter(include_json=True))
        return handler

    def _setup_loggers(self):
        """Attach console, main and error handlers; keep the quest handler apart."""
        self.logger = logging.getLogger(self.name)
        self.logger.setLevel(LogLevel.TRACE.value)
        self.logger.propagate = False
        for handler in list(self.logger.handlers):
            handler.close()
        self.logger.handlers.clear()

        console = logging.StreamHandler()
        console.setLevel(logging.INFO)
        console.setFormatter(StructuredFormatter(include_json=False))
        self.logger.addHandler(console)
        for suffix, level, max_bytes, backups in _FILE_LOGS:
            self.logger.addHandler(self._rotating_handler(suffix, level, max_bytes, backups))

        # Only quest_event() writes here
        self.quest_handler = self._rotating_handler("_quest", logging.INFO, 5 * 1024 * 1024, 3)

    @staticmethod
    def _category_name(category: CategoryLike) -> str:
        if isinstance(category, LogCategory):
            return category.name
        if category:
            return str(category).upper()
        return "GENERAL"

    def _extra(self, category: CategoryLike, fields: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "category": self._category_name(category),
            "quest_fields": {key: value for key, value in fields.items() if not key.startswith("_")},
        }

    def _log(self, level: int, message: str, category: CategoryLike = None,
             exception: Optional[BaseException] = None, **fields):
        exc_info = (type(exception), exception, exception.__traceback__) if exception else None
        self.logger.log(level, message, exc_info=exc_info, extra=self._extra(category, fields))

    def trace(self, message: str, category: CategoryLike = None, **fields):
        self._log(LogLevel.TRACE.value, message, category, **fields)

    def debug(self, message: str, category: CategoryLike = None, **fields):
        self._log(logging.DEBUG, message, category, **fields)

    def info(self, message: str, category: CategoryLike = None, **fields):
        self._log(logging.INFO, message, category, **fields)

    def warning(self, message: str, category: CategoryLike = None,
                exception: Optional[BaseException] = None, **fields):
        self._log(logging.WARNING, message, category, exception, **fields)

    def error(self, message: str, exception: Optional[BaseException] = None,
              category: CategoryLike = None, **fields):
        self._log(logging.ERROR, message, category, exception, **fields)

    def critical(self, message: str, exception: Optional[BaseException] = None,
                 category: CategoryLike = None, **fields):
        self._log(logging.CRITICAL, message, category, exception, **fields)

    def quest_event(self, message: str, **fields):
        """Log a quest milestone to the main log and the quest event log."""
        text = f"QUEST EVENT: {message}"
        extra = self._extra(LogCategory.QUEST, fields)
        self.logger.log(logging.INFO, text, extra=extra)
        record = self.logger.makeRecord(self.name, logging.INFO, __file__, 0, text, (), None, extra=extra)
        self.quest_handler.handle(record)

    def log_user_action(self, action: str, details: Optional[Dict[str, Any]] = None):
        """Log user actions such as selecting or stopping navigation."""
        self._log(logging.INFO, f"USER ACTION: {action}", LogCategory.USER_ACTION,
                  action=action, **(details or {}))

    def log_gps_event(self, event_type: str, latitude: Optional[float] = None,
                      longitude: Optional[float] = None, accuracy: Optional[float] = None, **fields):
        """Log a GPS event; unknown values are left out of the record."""
        known = {"latitude": latitude, "longitude": longitude, "accuracy": accuracy}
        fields.update({key: value for key, value in known.items() if value is not None})
        self._log(logging.DEBUG, f"GPS: {event_type}", LogCategory.GPS, event_type=event_type, **fields)

    def get_session_id(self) -> str:
        return self.session_id

    def set_log_level(self, level: Union[str, int, LogLevel]):
        """Set the minimum level of the logger (handlers keep their own floors)."""
        if isinstance(level, LogLevel):
            level = level.value
        elif isinstance(level, str):
            level = logging.getLevelName(level.upper())
        self.logger.setLevel(level)
        self.info(f"Log level set to {logging.getLevelName(level)}", LogCategory.SYSTEM)

    def close(self):
        """Flush and close every handler owned by this logger."""
        for handler in self.logger.handlers + [self.quest_handler]:
            handler.flush()
            handler.close()
        self.logger.handlers.clear()


_global_logger: Optional[QuestLogger] = None


def get_logger() -> QuestLogger:
    """Return the process-wide logger, creating it with defaults if needed."""
    global _global_logger
    if _global_logger is None:
        _global_logger = QuestLogger()
    return _global_logger


def setup_logger(name: str = "gpsquest", log_dir: Optional[Path] = None) -> QuestLogger:
    """Replace the process-wide logger, closing the previous one."""
    global _global_logger
    if _global_logger is not None:
        _global_logger.close()
    _global_logger = QuestLogger(name, log_dir)
    return _global_logger


class LoggableMixin:
    """Gives a class ``log_*`` helpers that tag messages with the class name."""

    def __init__(self):
        self._logger = get_logger()
        self._module_name = self.__class__.__name__

    def _tagged(self, message: str) -> str:
        return f"[{self._module_name}] {message}"

    def log_trace(self, message: str, **fields):
        self._logger.trace(self._tagged(message), **fields)

    def log_debug(self, message: str, **fields):
        self._logger.debug(self._tagged(message), **fields)

    def log_info(self, message: str, **fields):
        self._logger.info(self._tagged(message), **fields)

    def log_warning(self, message: str, **fields):
        self._logger.warning(self._tagged(message), **fields)

    def log_error(self, message: str, exception: Optional[BaseException] = None, **fields):
        self._logger.error(self._tagged(message), exception=exception, **fields)

    def log_quest_event(self, message: str, **fields):
        self._logger.quest_event(self._tagged(message), **fields)

    def log_user_action(self, action: str, details: Optional[Dict[str, Any]] = None):
        self._logger.log_user_action(action, {"module": self._module_name, **(details or {})})


__all__ = [
    "LogCategory",
    "LogLevel",
    "LoggableMixin",
    "QuestLogger",
    "StructuredFormatter",
    "get_logger",
    "setup_logger",
]
