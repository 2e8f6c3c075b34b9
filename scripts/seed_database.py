#!/usr/bin/env python3
"""
Demo data seeding script for the dinner club admin API.

This script:
- Creates cities, restaurants and survey questions
- Creates members (credit holders and subscribers) and an admin account
- Schedules dinners and seats members through AssignmentService
- Adds waitlist entries through WaitlistService
- Records purchase and subscription revenue
- Can be run multiple times (idempotent)

Usage:
    python scripts/seed_database.py [--reset] [--dinners N]

Options:
    --reset     Drop and recreate all tables before seeding
"""
import sys
import argparse
from pathlib import Path
from datetime import datetime, timedelta

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from dinnerclub.db_init import seed_admin, seed_cities
from dinnerclub.error_handling.exceptions import DinnerClubError
from dinnerclub.models import database
from dinnerclub.models.database import (
    City,
    CreditTransaction,
    Dinner,
    Member,
    PromoCode,
    Restaurant,
    SurveyQuestion,
    init_db,
    create_tables,
    get_db_session,
)
from dinnerclub.services.assignment_service import AssignmentService
from dinnerclub.services.waitlist_service import WaitlistService


SAMPLE_RESTAURANTS = [
    ("Olive & Ember", "Austin", "East Side", 24),
    ("The Copper Table", "Chicago", "West Loop", 30),
    ("Juniper Hall", "Denver", "LoHi", 18),
    ("Saltwater Supper", "San Francisco", "Mission", 20),
]

SAMPLE_MEMBERS = [
    ("Ava Chen", "ava@example.com", "Austin", 3, "inactive"),
    ("Marcus Reid", "marcus@example.com", "Austin", 0, "active"),
    ("Priya Patel", "priya@example.com", "Chicago", 5, "inactive"),
    ("Diego Alvarez", "diego@example.com", "Chicago", 1, "inactive"),
    ("Hannah Brooks", "hannah@example.com", "Denver", 0, "active"),
    ("Sam Okafor", "sam@example.com", "Denver", 2, "inactive"),
    ("Lena Fischer", "lena@example.com", "San Francisco", 4, "inactive"),
    ("Noah Kim", "noah@example.com", "San Francisco", 0, "paused"),
]

SAMPLE_QUESTIONS = [
    ("onboarding", "What cuisines do you love?", "multi_select",
     ["Italian", "Japanese", "Mexican", "Indian", "Thai"], 3),
    ("onboarding", "Introvert or extrovert?", "single_select",
     ["Introvert", "Extrovert", "Somewhere in between"], 2),
    ("post_dinner", "How would you rate the restaurant?", "rating", None, 1),
]


def create_catalog(session) -> None:
    """
    Create cities, restaurants, survey questions and a promo code.
    """
    print("Setting up catalog...")
    seed_cities(session)
    session.flush()

    cities = {city.name: city for city in session.query(City).all()}

    for name, city_name, neighborhood, capacity in SAMPLE_RESTAURANTS:
        if session.query(Restaurant).filter_by(name=name).first():
            continue
        session.add(Restaurant(
            name=name,
            city_id=cities[city_name].id,
            neighborhood=neighborhood,
            capacity=capacity,
            booking_status="available",
        ))
        print(f"  ✓ Restaurant {name}")

    for order, (survey_type, question, question_type, options, weight) in enumerate(SAMPLE_QUESTIONS):
        if session.query(SurveyQuestion).filter_by(question=question).first():
            continue
        session.add(SurveyQuestion(
            survey_type=survey_type,
            question=question,
            question_type=question_type,
            options=options,
            matching_weight=weight,
            display_order=order,
        ))

    if not session.query(PromoCode).filter_by(code="WELCOME3").first():
        session.add(PromoCode(code="WELCOME3", credits=3, max_uses=100))

    session.commit()


def create_members(session) -> list:
    """
    Create sample members and their purchase history.

    Returns:
        List of Member instances
    """
    print("Creating members...")
    cities = {city.name: city for city in session.query(City).all()}
    now = datetime.utcnow()
    members = []

    for index, (name, email, city_name, credits, subscription) in enumerate(SAMPLE_MEMBERS):
        member = session.query(Member).filter_by(email=email).first()
        if member is None:
            member = Member(
                name=name,
                email=email,
                city_id=cities[city_name].id,
                role="user",
                credit_balance=credits,
                subscription_status=subscription,
                created_at=now - timedelta(days=30 * (index % 6) + 5),
            )
            session.add(member)
            session.flush()

            if credits:
                session.add(CreditTransaction(
                    member_id=member.id,
                    transaction_type="credit_purchase",
                    amount=credits * 2500,
                    credits=credits,
                    created_at=member.created_at,
                ))
            if subscription == "active":
                session.add(CreditTransaction(
                    member_id=member.id,
                    transaction_type="subscription",
                    amount=9900,
                    credits=0,
                    created_at=member.created_at,
                ))
            print(f"  ✓ {name} ({subscription}, {credits} credits)")
        members.append(member)

    session.commit()
    return members


def create_dinners(session, count: int) -> list:
    """
    Schedule upcoming dinners, one per restaurant in rotation.

    Returns:
        List of Dinner instances
    """
    print("Scheduling dinners...")
    restaurants = session.query(Restaurant).order_by(Restaurant.id).all()
    start = datetime.utcnow().replace(hour=19, minute=30, second=0, microsecond=0)
    dinners = []

    for index in range(count):
        restaurant = restaurants[index % len(restaurants)]
        title = f"Supper at {restaurant.name} #{index + 1}"
        dinner = session.query(Dinner).filter_by(title=title).first()
        if dinner is None:
            dinner = Dinner(
                title=title,
                event_date=start + timedelta(days=7 * (index + 1)),
                location=restaurant.name,
                city_id=restaurant.city_id,
                restaurant_id=restaurant.id,
                seats=4,
                status="confirmed" if index == 0 else "draft",
            )
            session.add(dinner)
            session.flush()
            print(f"  ✓ {title} ({dinner.event_date:%Y-%m-%d})")
        dinners.append(dinner)

    session.commit()
    return dinners


def seat_members(session, dinners: list, members: list) -> None:
    """
    Seat members at the first dinner until it is full and waitlist the rest.
    """
    if not dinners:
        return

    print("Seating members...")
    dinner = dinners[0]
    assignments = AssignmentService(session)
    waitlist = WaitlistService(session)

    for member in members:
        capacity = assignments.check_capacity(dinner.id)
        try:
            if capacity.has_capacity:
                assignment = assignments.create_assignment(dinner.id, member.id)
                print(f"  ✓ Seated {member.name} (credit_deducted={assignment.credit_deducted})")
            else:
                entry = waitlist.join(dinner.id, member_id=member.id)
                print(f"  ✓ Waitlisted {member.name} at position {entry.position}")
        except DinnerClubError as e:
            print(f"  - Skipped {member.name}: {e.user_message}")


def reset_database() -> None:
    """
    Drop and recreate all tables.
    """
    print("Resetting database...")
    database.Base.metadata.drop_all(bind=database.engine)
    create_tables()
    print("  ✓ Database reset complete")


def main():
    """Main entry point for the seeding script."""
    parser = argparse.ArgumentParser(
        description="Seed the dinner club database with demo data"
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop and recreate all tables before seeding"
    )
    parser.add_argument(
        "--dinners",
        type=int,
        default=4,
        help="Number of upcoming dinners to schedule (default: 4)"
    )

    args = parser.parse_args()
    load_dotenv()

    print("=" * 60)
    print("Dinner Club - Database Seeding")
    print("=" * 60)

    try:
        print("\nInitializing database connection...")
        init_db()
        create_tables()
        print("  ✓ Database initialized")

        if args.reset:
            reset_database()

        with get_db_session() as session:
            create_catalog(session)
            seed_admin(session, "admin@example.com", "admin123")
            members = create_members(session)
            dinners = create_dinners(session, args.dinners)
            seat_members(session, dinners, members)

        print("\n" + "=" * 60)
        print("✓ Database seeding completed successfully!")
        print("=" * 60)

        return 0

    except (DinnerClubError, SQLAlchemyError, RuntimeError) as e:
        print(f"\n✗ Error during seeding: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
