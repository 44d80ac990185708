import os
from datetime import date, datetime, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from fitcoach.database import Base  # noqa: E402
from fitcoach.models.appointment import Appointment  # noqa: E402
from fitcoach.models.availability import AvailabilityBlock  # noqa: E402
from fitcoach.models.coach import Coach  # noqa: E402
from fitcoach.models.notification import Notification  # noqa: E402,F401
from fitcoach.models.user import User  # noqa: E402

ROUTE_MODULES = (
    'fitcoach.routes.appointment_routes',
    'fitcoach.routes.availability_routes',
    'fitcoach.routes.coach_routes',
    'fitcoach.routes.notification_routes',
)


@pytest.fixture(autouse=True)
def skip_schema_upgrades(monkeypatch: pytest.MonkeyPatch) -> None:
    for module_name in ROUTE_MODULES:
        monkeypatch.setattr(f'{module_name}.ensure_database_ready', lambda: None)


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_user(db):
    counter = {'value': 0}

    def _make_user(**overrides) -> User:
        counter['value'] += 1
        values = {
            'name': f'User {counter["value"]}',
            'email': f'user{counter["value"]}@example.com',
            'role': 'user',
            'status': 'active',
        }
        values.update(overrides)
        user = User(**values)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def coach(db, make_user) -> Coach:
    coach_user = make_user(name='Casey Coach', email='casey@example.com', role='trainer')
    record = Coach(user_id=coach_user.id, display_name='Casey Coach', is_active=True)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def make_block(db, coach):
    def _make_block(start: time, end: time, **overrides) -> AvailabilityBlock:
        values = {
            'coach_id': coach.id,
            'start_time': start,
            'end_time': end,
            'is_recurring': False,
            'start_date': date(2026, 1, 5),
        }
        values.update(overrides)
        block = AvailabilityBlock(**values)
        db.add(block)
        db.commit()
        db.refresh(block)
        return block

    return _make_block


@pytest.fixture
def make_appointment(db, coach, make_user):
    client = make_user(name='Client', email='client@example.com')

    def _make_appointment(start: datetime, end: datetime, **overrides) -> Appointment:
        values = {
            'coach_id': coach.id,
            'client_id': client.id,
            'title': 'Training session',
            'type': 'session',
            'scheduled_at': start,
            'end_time': end,
            'duration_minutes': int((end - start).total_seconds() // 60),
            'status': 'scheduled',
            'reminder_sent': False,
        }
        values.update(overrides)
        appointment = Appointment(**values)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make_appointment
