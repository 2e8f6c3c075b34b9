"""
Centralized logging configuration for the dinner club admin API.

Sinks: colored stderr, a rotating application log, an error-only log and
an audit log that keeps credit ledger and waitlist lines for a year.
"""
import sys
from pathlib import Path
from typing import Optional
from loguru import logger


AUDIT_CATEGORIES = ("LEDGER", "WAITLIST")

LOG_FORMATS = {
    "simple": "<level>{level: <8}</level> | <level>{message}</level>",
    "detailed": (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    ),
}


def _is_audit_record(record) -> bool:
    return record["extra"].get("category", "") in AUDIT_CATEGORIES


def _add_file_sink(path: Path, format_string: str, level: str, rotation: str, retention: str, **options) -> int:
    return logger.add(
        path,
        format=format_string,
        level=level,
        rotation=rotation,
        retention=retention,
        compression="zip",
        diagnose=False,
        **options
    )


def configure_logging(
    log_level: str = "INFO",
    log_to_file: bool = True,
    log_dir: str = "logs",
    rotation: str = "100 MB",
    retention: str = "30 days",
    format_type: str = "detailed"
) -> None:
    """
    Replace every loguru sink with the dinner club sinks.

    Args:
        log_level: Minimum level for stderr and the application log
        log_to_file: Add the file sinks under ``log_dir``
        log_dir: Directory for log files, created if missing
        rotation: Rotation rule for the application and error logs
        retention: Retention rule for the application and error logs
        format_type: Key of LOG_FORMATS ("simple" or "detailed")
    """
    format_string = LOG_FORMATS.get(format_type, LOG_FORMATS["detailed"])

    logger.remove()
    logger.add(
        sys.stderr,
        format=format_string,
        level=log_level,
        colorize=True,
        backtrace=True,
        diagnose=False
    )

    if log_to_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        _add_file_sink(log_path / "dinnerclub_{time:YYYY-MM-DD}.log", format_string, log_level,
                       rotation, retention, backtrace=True)
        _add_file_sink(log_path / "errors_{time:YYYY-MM-DD}.log", format_string, "ERROR",
                       rotation, retention, backtrace=True)
        _add_file_sink(log_path / "audit_{time:YYYY-MM-DD}.log", format_string, "INFO",
                       "1 day", "1 year", filter=_is_audit_record)

    logger.info(f"Logging configured: level={log_level} files={log_to_file} format={format_type}")


def log_ledger_event(
    event_type: str,
    member_id: Optional[int] = None,
    assignment_id: Optional[int] = None,
    details: Optional[dict] = None
) -> None:
    """
    Log a credit ledger event for the audit trail.

    Args:
        event_type: Type of event ("DEBIT", "REFUND", "SKIPPED")
        member_id: Member whose balance changed
        assignment_id: Assignment that caused the change
        details: Additional event details
    """
    details = details or {}

    logger.bind(category="LEDGER").info(
        f"LEDGER {event_type} | "
        f"member={member_id} | "
        f"assignment={assignment_id} | "
        f"details={details}"
    )


def log_waitlist_event(
    event_type: str,
    dinner_id: Optional[int] = None,
    entry_id: Optional[int] = None,
    details: Optional[dict] = None
) -> None:
    """
    Log a waitlist transition.

    Args:
        event_type: Type of event ("JOINED", "REMOVED", "NOTIFIED", "CONVERTED")
        dinner_id: Dinner the waitlist belongs to
        entry_id: Waitlist entry id
        details: Additional event details
    """
    details = details or {}

    logger.bind(category="WAITLIST").info(
        f"WAITLIST {event_type} | "
        f"dinner={dinner_id} | "
        f"entry={entry_id} | "
        f"details={details}"
    )


def log_error_with_context(
    error: Exception,
    context: dict,
    severity: str = "ERROR"
) -> None:
    """
    Log an error with full context information.

    Args:
        error: Exception that occurred
        context: Context dictionary with relevant information
        severity: Log severity (ERROR, WARNING, CRITICAL)
    """
    logger.bind(category="ERROR", **context).log(
        severity,
        f"Error occurred: {type(error).__name__}: {str(error)} | context={context}"
    )

    if severity in ["ERROR", "CRITICAL"]:
        logger.opt(exception=error).debug("Stack trace")


def init_logging(
    environment: str = "development",
    log_level: Optional[str] = None,
    log_to_file: bool = True,
    log_dir: str = "logs"
) -> None:
    """
    Initialize logging with environment-specific settings.

    Args:
        environment: Environment name ("development", "production", "test")
        log_level: Explicit level overriding the environment default
        log_to_file: Whether file sinks are allowed at all
        log_dir: Directory for log files
    """
    if environment == "production":
        configure_logging(
            log_level=log_level or "INFO",
            log_to_file=log_to_file,
            log_dir=log_dir,
            format_type="detailed",
            rotation="100 MB",
            retention="90 days"
        )
    elif environment == "test":
        configure_logging(
            log_level=log_level or "WARNING",
            log_to_file=False,
            format_type="simple"
        )
    else:  # development
        configure_logging(
            log_level=log_level or "DEBUG",
            log_to_file=log_to_file,
            log_dir=log_dir,
            format_type="detailed",
            rotation="50 MB",
            retention="7 days"
        )

    logger.info(f"Logging initialized for {environment} environment")
