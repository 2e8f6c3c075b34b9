"""
Unit tests for database models and setup.

Tests:
- Engine initialization, connectivity check and session helper
- SQLite write locking on the application engine
- Table constraints (seats, positions, duplicates, member-or-guest)
- Seeding of cities and the admin account
"""
import sqlite3

import pytest
from datetime import datetime, timedelta
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dinnerclub.db_init import DEFAULT_CITIES, seed_admin, seed_cities
from dinnerclub.models import database
from dinnerclub.models.database import (
    Assignment,
    City,
    Dinner,
    Member,
    WaitlistEntry,
    check_connection,
    create_tables,
    get_db_session,
    init_db,
)
from dinnerclub.security import verify_password

class TestDatabaseConnection:
    """Test database initialization and connectivity."""

    def test_init_db_and_session_helper(self, tmp_path):
        """init_db wires the session factory used by get_db_session."""
        engine = init_db(f"sqlite:///{tmp_path / 'init.db'}")
        try:
            check_connection()
            create_tables()

            with get_db_session() as session:
                session.add(City(name="Boston"))

            with get_db_session() as session:
                assert session.query(City.name).scalar() == "Boston"
        finally:
            engine.dispose()
            database.engine = None
            database.SessionLocal = None

    def test_sqlite_transactions_take_write_lock(self, tmp_path):
        """A session on the init_db engine blocks other writers from its first read."""
        path = tmp_path / "locks.db"
        engine = init_db(f"sqlite:///{path}")
        other = sqlite3.connect(str(path), timeout=0, isolation_level=None)
        try:
            create_tables()
            with get_db_session() as session:
                session.query(City).count()

                with pytest.raises(sqlite3.OperationalError, match="locked"):
                    other.execute("BEGIN IMMEDIATE")

            other.execute("BEGIN IMMEDIATE")
            other.execute("ROLLBACK")
        finally:
            other.close()
            engine.dispose()
            database.engine = None
            database.SessionLocal = None

    def test_uninitialized_session_helper(self, monkeypatch):
        monkeypatch.setattr(database, "SessionLocal", None)

        with pytest.raises(RuntimeError):
            with get_db_session():
                pass

    def test_uninitialized_create_tables(self, monkeypatch):
        monkeypatch.setattr(database, "engine", None)

        with pytest.raises(RuntimeError):
            create_tables()

    def test_db_session_creation(self, db_session: Session):
        assert db_session.is_active

class TestConstraints:
    """Test table-level constraints."""

    def test_dinner_defaults(self, db_session: Session):
        dinner = Dinner(title="Plain", event_date=datetime.utcnow() + timedelta(days=2))
        db_session.add(dinner)
        db_session.commit()
        db_session.refresh(dinner)

        assert dinner.seats == 6
        assert dinner.location == "TBD"
        assert dinner.status == "draft"
        assert dinner.description == ""

    def test_seats_must_be_positive(self, db_session: Session):
        db_session.add(Dinner(title="Empty", event_date=datetime.utcnow(), seats=0))

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_one_seat_per_member_per_dinner(self, db_session: Session, make_dinner, make_member):
        dinner = make_dinner()
        member = make_member()
        db_session.add(Assignment(dinner_id=dinner.id, member_id=member.id))
        db_session.commit()

        db_session.add(Assignment(dinner_id=dinner.id, member_id=member.id, table_number=2))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_one_seat_per_guest_email_per_dinner(self, db_session: Session, make_dinner):
        dinner = make_dinner()
        db_session.add(Assignment(dinner_id=dinner.id, guest_email="gus@example.com"))
        db_session.commit()

        db_session.add(Assignment(dinner_id=dinner.id, guest_email="gus@example.com"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_assignment_needs_member_or_guest(self, db_session: Session, make_dinner):
        db_session.add(Assignment(dinner_id=make_dinner().id, guest_name="Nobody"))

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_guest_assignments_do_not_collide(self, db_session: Session, make_dinner):
        """Several guest seats (member_id NULL) fit at one dinner."""
        dinner = make_dinner()
        db_session.add_all([
            Assignment(dinner_id=dinner.id, guest_email="a@example.com"),
            Assignment(dinner_id=dinner.id, guest_email="b@example.com"),
        ])
        db_session.commit()

        assert db_session.query(Assignment).filter_by(dinner_id=dinner.id).count() == 2

    def test_waitlist_position_positive(self, db_session: Session, make_dinner):
        db_session.add(WaitlistEntry(dinner_id=make_dinner().id, guest_email="z@example.com", position=0))

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_member_email_unique(self, db_session: Session, make_member):
        make_member(email="twin@example.com")

        with pytest.raises(IntegrityError):
            make_member(email="twin@example.com")
        db_session.rollback()

    def test_credit_balance_never_negative(self, db_session: Session, make_member):
        with pytest.raises(IntegrityError):
            make_member(credit_balance=-1)
        db_session.rollback()

    def test_member_defaults(self, db_session: Session):
        member = Member(name="Fresh", email="fresh@example.com")
        db_session.add(member)
        db_session.commit()
        db_session.refresh(member)

        assert member.role == "user"
        assert member.credit_balance == 0
        assert member.subscription_status == "inactive"

class TestSeeding:
    """Test db_init seed helpers."""

    def test_seed_cities_is_idempotent(self, db_session: Session):
        seed_cities(db_session)
        db_session.commit()
        seed_cities(db_session)
        db_session.commit()

        names = sorted(name for (name,) in db_session.query(City.name).all())
        assert names == sorted(DEFAULT_CITIES)

    def test_seed_admin_creates_account(self, db_session: Session):
        seed_admin(db_session, " Boss@Example.com ", "hunter22")
        db_session.commit()

        admin = db_session.query(Member).filter_by(email="boss@example.com").one()
        assert admin.role == "admin"
        assert verify_password("hunter22", admin.password_hash)

    def test_seed_admin_promotes_existing_member(self, db_session: Session, make_member):
        member = make_member(email="lead@example.com")

        seed_admin(db_session, "lead@example.com", "irrelevant")
        db_session.commit()
        db_session.refresh(member)

        assert member.role == "admin"
        assert db_session.query(Member).filter_by(email="lead@example.com").count() == 1
