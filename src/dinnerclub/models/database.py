"""
SQLAlchemy database models and session management for the dinner club.
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, Optional
from loguru import logger

from sqlalchemy import (
    create_engine,
    event,
    text,
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    UniqueConstraint,
    CheckConstraint,
    JSON,
)
from sqlalchemy.orm import declarative_base, relationship, Session, sessionmaker
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, DisconnectionError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from ..error_handling.exceptions import DatabaseConnectionError

# Create declarative base
Base = declarative_base()

# Database engine and session factory (initialized by init_db)
engine: Engine | None = None
SessionLocal: sessionmaker | None = None


SUBSCRIPTION_STATUSES = ("active", "inactive", "paused")
DINNER_STATUSES = ("draft", "confirmed", "closed", "completed")
WAITLIST_STATUSES = ("waiting", "notified", "converted")


class City(Base):
    """
    City in which dinners are hosted.
    """
    __tablename__ = "cities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<City(id={self.id}, name='{self.name}')>"


class Member(Base):
    """
    Member account. Admins are members with role ``admin``.

    ``credit_balance`` is the credit ledger: it is only changed through
    conditional UPDATE statements, never read-modify-write.
    """
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(50), nullable=True)
    city_id = Column(Integer, ForeignKey("cities.id"), nullable=True)
    role = Column(
        Enum("user", "admin", name="member_role"),
        nullable=False,
        default="user",
    )
    password_hash = Column(String(255), nullable=True)
    credit_balance = Column(Integer, nullable=False, default=0)
    subscription_status = Column(
        Enum(*SUBSCRIPTION_STATUSES, name="subscription_status"),
        nullable=False,
        default="inactive",
    )
    subscription_renewal_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    city = relationship("City")

    __table_args__ = (
        CheckConstraint("credit_balance >= 0", name="ck_member_credit_non_negative"),
        Index("ix_member_role", "role"),
    )

    @property
    def has_active_subscription(self) -> bool:
        return self.subscription_status == "active"

    def __repr__(self) -> str:
        return (
            f"<Member(id={self.id}, name='{self.name}', role='{self.role}', "
            f"credit_balance={self.credit_balance}, "
            f"subscription_status='{self.subscription_status}')>"
        )


class Restaurant(Base):
    """
    Restaurant partner hosting dinners.
    """
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=True)
    city_id = Column(Integer, ForeignKey("cities.id"), nullable=True)
    contact_name = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    contact_email = Column(String(255), nullable=True)
    capacity = Column(Integer, nullable=True)
    neighborhood = Column(String(120), nullable=True)
    notes = Column(Text, nullable=True)
    booking_status = Column(String(50), nullable=False, default="available")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    city = relationship("City")

    def __repr__(self) -> str:
        return f"<Restaurant(id={self.id}, name='{self.name}', booking_status='{self.booking_status}')>"


class Dinner(Base):
    """
    Dinner event. ``seats`` is the capacity ceiling for assignments.
    """
    __tablename__ = "dinners"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    event_date = Column(DateTime, nullable=False)
    location = Column(String(255), nullable=False, default="TBD")
    created_by = Column(Integer, ForeignKey("members.id"), nullable=True)
    city_id = Column(Integer, ForeignKey("cities.id"), nullable=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="SET NULL"), nullable=True)
    seats = Column(Integer, nullable=False, default=6)
    status = Column(
        Enum(*DINNER_STATUSES, name="dinner_status"),
        nullable=False,
        default="draft",
    )
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    city = relationship("City")
    restaurant = relationship("Restaurant")

    __table_args__ = (
        CheckConstraint("seats > 0", name="ck_dinner_seats_positive"),
        Index("ix_dinner_event_date", "event_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Dinner(id={self.id}, title='{self.title}', event_date={self.event_date}, "
            f"seats={self.seats}, status='{self.status}')>"
        )


class Assignment(Base):
    """
    Seat assignment binding a member (or a converted guest) to a dinner.

    ``credit_deducted`` records whether a credit was actually debited when
    the row was created; the refund on removal depends on it.
    """
    __tablename__ = "dinner_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dinner_id = Column(Integer, ForeignKey("dinners.id", ondelete="CASCADE"), nullable=False)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=True)
    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True)
    table_number = Column(Integer, nullable=False, default=1)
    assigned_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    credit_deducted = Column(Boolean, nullable=False, default=False)

    member = relationship("Member")
    dinner = relationship("Dinner")

    __table_args__ = (
        UniqueConstraint("dinner_id", "member_id", name="uq_assignment_dinner_member"),
        UniqueConstraint("dinner_id", "guest_email", name="uq_assignment_dinner_guest"),
        CheckConstraint(
            "member_id IS NOT NULL OR guest_email IS NOT NULL",
            name="ck_assignment_member_or_guest",
        ),
        Index("ix_assignment_dinner", "dinner_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Assignment(id={self.id}, dinner_id={self.dinner_id}, member_id={self.member_id}, "
            f"table_number={self.table_number}, credit_deducted={self.credit_deducted})>"
        )


class WaitlistEntry(Base):
    """
    Waitlist entry for a dinner. Positions per dinner are dense: 1..N.

    No unique constraint on (dinner_id, position): renumbering shifts
    positions with a single UPDATE.
    """
    __tablename__ = "waitlist_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dinner_id = Column(Integer, ForeignKey("dinners.id", ondelete="CASCADE"), nullable=False)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=True)
    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True)
    position = Column(Integer, nullable=False)
    status = Column(
        Enum(*WAITLIST_STATUSES, name="waitlist_status"),
        nullable=False,
        default="waiting",
    )
    joined_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    notified_at = Column(DateTime, nullable=True)

    member = relationship("Member")

    __table_args__ = (
        CheckConstraint("position >= 1", name="ck_waitlist_position_positive"),
        Index("ix_waitlist_dinner_position", "dinner_id", "position"),
    )

    def __repr__(self) -> str:
        return (
            f"<WaitlistEntry(id={self.id}, dinner_id={self.dinner_id}, member_id={self.member_id}, "
            f"guest_email='{self.guest_email}', position={self.position}, status='{self.status}')>"
        )


class SurveyQuestion(Base):
    """
    Survey question definition (onboarding or post-dinner).
    """
    __tablename__ = "surveys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    survey_type = Column(String(50), nullable=False)
    question = Column(Text, nullable=False)
    question_type = Column(String(50), nullable=False)
    options = Column(JSON, nullable=True)
    matching_weight = Column(Integer, nullable=False, default=1)
    is_required = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<SurveyQuestion(id={self.id}, survey_type='{self.survey_type}', question_type='{self.question_type}')>"


class SurveyResponse(Base):
    """
    A member's answers for a dinner. ``rating`` is the restaurant rating.
    """
    __tablename__ = "survey_responses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False)
    dinner_id = Column(Integer, ForeignKey("dinners.id", ondelete="CASCADE"), nullable=True)
    responses = Column(JSON, nullable=True)
    rating = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_survey_rating_range"),
    )


class PromoCode(Base):
    """
    Promo code granting credits on redemption.
    """
    __tablename__ = "promo_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(64), nullable=False, unique=True)
    credits = Column(Integer, nullable=False)
    max_uses = Column(Integer, nullable=True)
    times_used = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<PromoCode(id={self.id}, code='{self.code}', credits={self.credits})>"


class CreditTransaction(Base):
    """
    Credit ledger and revenue record.

    ``amount`` is money in cents (purchases, subscriptions); ``credits`` is
    the signed change to the member's balance.
    """
    __tablename__ = "credit_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False)
    transaction_type = Column(String(50), nullable=False)
    amount = Column(Integer, nullable=False, default=0)
    credits = Column(Integer, nullable=False, default=0)
    assignment_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_credit_tx_type_created", "transaction_type", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<CreditTransaction(id={self.id}, member_id={self.member_id}, "
            f"type='{self.transaction_type}', amount={self.amount}, credits={self.credits})>"
        )


def get_database_url() -> str:
    """
    Get database URL from settings.

    Returns:
        Database connection string
    """
    from ..config import get_settings

    return get_settings().database_url


def use_immediate_transactions(sqlite_engine: Engine) -> Engine:
    """
    Make every transaction on a SQLite engine start with BEGIN IMMEDIATE.

    SQLite ignores SELECT ... FOR UPDATE. Taking the write lock when the
    transaction begins serializes the capacity, credit and waitlist
    read-then-write sequences the same way row locks do on PostgreSQL.
    The connection's ``timeout`` bounds how long a writer waits.
    """
    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        # pysqlite would otherwise emit its own deferred BEGIN
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return sqlite_engine


def init_db(database_url: str | None = None, echo: bool = False) -> Engine:
    """
    Initialize database engine and session factory.

    Args:
        database_url: Optional database connection string. If not provided,
                     DATABASE_URL from settings is used.
        echo: Log every SQL statement

    Returns:
        SQLAlchemy Engine instance
    """
    global engine, SessionLocal

    if database_url is None:
        database_url = get_database_url()

    if database_url.startswith("sqlite"):
        # Request handlers run in a threadpool
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )
        use_immediate_transactions(engine)
    else:
        from ..config import get_settings

        settings = get_settings()
        engine = create_engine(
            database_url,
            echo=echo,
            pool_pre_ping=True,  # Enable connection health checks
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )

    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )

    return engine


def create_tables() -> None:
    """
    Create all tables in the database.

    Raises:
        RuntimeError: If database engine is not initialized
    """
    if engine is None:
        raise RuntimeError("Database engine not initialized. Call init_db() first.")

    Base.metadata.create_all(bind=engine)


@retry(
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type((OperationalError, DisconnectionError)),
    reraise=True,
)
def _ping(target: Engine) -> None:
    with target.connect() as conn:
        conn.execute(text("SELECT 1"))


def check_connection(target: Optional[Engine] = None) -> None:
    """
    Verify the database is reachable, retrying with exponential backoff.

    Only used at startup; request handlers never retry.

    Raises:
        RuntimeError: If database engine is not initialized
        DatabaseConnectionError: If the database stays unreachable
    """
    target = target or engine
    if target is None:
        raise RuntimeError("Database engine not initialized. Call init_db() first.")

    try:
        _ping(target)
    except (OperationalError, DisconnectionError) as e:
        logger.error(f"Database connection failed after retries: {e}")
        raise DatabaseConnectionError(
            "Database connection failed after retries",
            operation="connection",
            original_error=e
        ) from e

    logger.info("Database connection verified")


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Yields:
        SQLAlchemy Session instance

    Example:
        with get_db_session() as session:
            dinner = session.query(Dinner).first()

    Raises:
        RuntimeError: If session factory is not initialized
    """
    if SessionLocal is None:
        raise RuntimeError("Session factory not initialized. Call init_db() first.")

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding a database session.

    Yields:
        SQLAlchemy Session instance
    """
    with get_db_session() as session:
        yield session
