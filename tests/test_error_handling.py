"""
Tests for the error hierarchy, the transactional decorator, settings and
audit logging.
"""
import pytest
from loguru import logger
from pydantic import ValidationError as SettingsValidationError
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from dinnerclub.api import status_code_for
from dinnerclub.config import Settings, get_settings, reset_settings
from dinnerclub.error_handling.exceptions import (
    AuthenticationError,
    CapacityExceededError,
    DatabaseConnectionError,
    DatabaseError,
    DatabaseQueryError,
    DinnerClubError,
    DinnerNotFoundError,
    DuplicateAssignmentError,
    DuplicateWaitlistEntryError,
    InsufficientCreditError,
    NotificationError,
    ValidationError,
)
from dinnerclub.error_handling.handlers import transactional
from dinnerclub.error_handling.logging_config import (
    configure_logging,
    init_logging,
    log_error_with_context,
    log_ledger_event,
    log_waitlist_event,
)


class _FakeSession:
    def __init__(self):
        self.rollbacks = 0

    def rollback(self):
        self.rollbacks += 1


class _Worker:
    def __init__(self, error):
        self.session = _FakeSession()
        self.error = error

    @transactional("do_work", "Failed to do work")
    def run(self):
        raise self.error


@pytest.fixture
def captured_logs():
    """Collect loguru records emitted during the test."""
    records = []
    sink_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(sink_id)


class TestStatusCodes:

    @pytest.mark.parametrize("error, status", [
        (DinnerNotFoundError(1), 404),
        (AuthenticationError(), 401),
        (DuplicateAssignmentError(1, 2), 409),
        (DuplicateWaitlistEntryError(1, "a@example.com"), 409),
        (DatabaseQueryError("boom"), 500),
        (DatabaseConnectionError("down"), 500),
        (CapacityExceededError(1, 6, 6), 400),
        (InsufficientCreditError(3), 400),
        (ValidationError("Event ID is required"), 400),
        (NotificationError("smtp"), 400),
    ])
    def test_mapping(self, error, status):
        assert status_code_for(error) == status

    def test_user_messages(self):
        assert CapacityExceededError(1, 6, 6).user_message == "Event is at capacity (6 seats)"
        assert DinnerNotFoundError(7).user_message == "Event not found"
        assert DatabaseError("secret detail").user_message == "Internal server error"


class TestTransactional:

    def test_domain_errors_pass_through(self):
        worker = _Worker(CapacityExceededError(1, 2, 2))

        with pytest.raises(CapacityExceededError):
            worker.run()

        assert worker.session.rollbacks == 1

    def test_integrity_error_becomes_constraint_error(self):
        worker = _Worker(IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")))

        with pytest.raises(DatabaseError) as exc_info:
            worker.run()

        assert exc_info.value.error_type == "constraint"
        assert exc_info.value.user_message == "Failed to do work"
        assert worker.session.rollbacks == 1

    def test_operational_error_becomes_connection_error(self):
        worker = _Worker(OperationalError("SELECT 1", {}, Exception("server closed")))

        with pytest.raises(DatabaseConnectionError):
            worker.run()

    def test_other_sqlalchemy_errors_become_query_errors(self):
        worker = _Worker(ProgrammingError("SELECT nope", {}, Exception("syntax")))

        with pytest.raises(DatabaseQueryError) as exc_info:
            worker.run()

        assert isinstance(exc_info.value, DinnerClubError)
        assert "syntax" not in exc_info.value.user_message

    def test_unrelated_errors_propagate(self):
        worker = _Worker(KeyError("missing"))

        with pytest.raises(KeyError):
            worker.run()


class TestSettings:

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///settings.db")
        monkeypatch.setenv("DEFAULT_DINNER_SEATS", "8")
        monkeypatch.setenv("COOKIE_SECURE", "true")

        settings = Settings(_env_file=None)

        assert settings.database_url == "sqlite:///settings.db"
        assert settings.default_dinner_seats == 8
        assert settings.cookie_secure is True
        assert settings.token_ttl_days == 7

    def test_database_url_required(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with pytest.raises(SettingsValidationError):
            Settings(_env_file=None)

    def test_cached_until_reset(self, monkeypatch):
        first = get_settings()
        assert get_settings() is first

        reset_settings()
        try:
            assert get_settings() is not first
        finally:
            reset_settings()


class TestAuditLogging:

    def test_ledger_events_are_tagged(self, captured_logs):
        log_ledger_event("DEBIT", member_id=5, assignment_id=9, details={"balance_after": 2})

        record = captured_logs[-1]
        assert record["extra"]["category"] == "LEDGER"
        assert "LEDGER DEBIT" in record["message"]
        assert "member=5" in record["message"]

    def test_waitlist_events_are_tagged(self, captured_logs):
        log_waitlist_event("NOTIFIED", dinner_id=3, entry_id=11)

        record = captured_logs[-1]
        assert record["extra"]["category"] == "WAITLIST"
        assert "entry=11" in record["message"]

    def test_error_context_is_bound(self, captured_logs):
        log_error_with_context(ValueError("bad"), {"operation": "create_assignment"}, severity="WARNING")

        record = next(r for r in captured_logs if r["level"].name == "WARNING")
        assert record["extra"]["operation"] == "create_assignment"
        assert "ValueError: bad" in record["message"]

    def test_audit_file_only_holds_audit_lines(self, tmp_path):
        configure_logging(log_level="INFO", log_to_file=True, log_dir=str(tmp_path), format_type="simple")
        try:
            logger.info("ordinary line")
            log_waitlist_event("JOINED", dinner_id=1, entry_id=2)
            # Read before the sinks close; closing compresses them
            audit = "".join(p.read_text() for p in tmp_path.glob("audit_*.log"))
            general = "".join(p.read_text() for p in tmp_path.glob("dinnerclub_*.log"))
        finally:
            init_logging(environment="test", log_to_file=False)

        assert "WAITLIST JOINED" in audit
        assert "ordinary line" not in audit
        assert "ordinary line" in general

    def test_assignment_writes_ledger_log(self, captured_logs, assignment_service, make_dinner, make_member):
        member = make_member(credit_balance=1)

        assignment_service.create_assignment(make_dinner().id, member.id)

        ledger = [r for r in captured_logs if r["extra"].get("category") == "LEDGER"]
        assert len(ledger) == 1
        assert "LEDGER DEBIT" in ledger[0]["message"]
