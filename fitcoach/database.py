from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from fitcoach.core import config

connect_args = {'check_same_thread': False} if config.DATABASE_URL.startswith('sqlite') else {}

engine = create_engine(config.DATABASE_URL, echo=config.SQL_ECHO, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_checked_tables: set[str] = set()

# Columns added after the first release of each table, plus the indexes the
# slot and audience queries rely on.
SCHEMA_UPGRADES = {
    'availability_blocks': {
        'columns': [
            ('is_recurring', 'ALTER TABLE availability_blocks ADD COLUMN is_recurring BOOLEAN DEFAULT FALSE'),
            ('day_of_week', 'ALTER TABLE availability_blocks ADD COLUMN day_of_week INTEGER'),
            ('notes', 'ALTER TABLE availability_blocks ADD COLUMN notes VARCHAR'),
        ],
        'indexes': [
            'CREATE INDEX IF NOT EXISTS idx_availability_blocks_coach_day '
            'ON availability_blocks(coach_id, day_of_week)',
            'CREATE INDEX IF NOT EXISTS idx_availability_blocks_coach_dates '
            'ON availability_blocks(coach_id, start_date, end_date)',
        ],
    },
    'appointments': {
        'columns': [
            ('cancellation_reason', 'ALTER TABLE appointments ADD COLUMN cancellation_reason VARCHAR'),
            ('reminder_sent', 'ALTER TABLE appointments ADD COLUMN reminder_sent BOOLEAN DEFAULT FALSE'),
            ('reminder_sent_at', 'ALTER TABLE appointments ADD COLUMN reminder_sent_at TIMESTAMP'),
        ],
        'indexes': [
            'CREATE INDEX IF NOT EXISTS idx_appointments_coach_scheduled ON appointments(coach_id, scheduled_at)',
            'CREATE INDEX IF NOT EXISTS idx_appointments_status ON appointments(status)',
        ],
    },
    'notifications': {
        'columns': [
            ('batch_id', 'ALTER TABLE notifications ADD COLUMN batch_id VARCHAR(36)'),
        ],
        'indexes': [
            'CREATE INDEX IF NOT EXISTS idx_notifications_user_read ON notifications(user_id, is_read)',
        ],
    },
}


def ensure_table_schema(table_name: str) -> None:
    if table_name in _checked_tables:
        return

    with _schema_lock:
        if table_name in _checked_tables:
            return

        inspector = inspect(engine)

        if table_name not in inspector.get_table_names():
            _checked_tables.add(table_name)
            return

        upgrade = SCHEMA_UPGRADES[table_name]
        existing_columns = {column['name'] for column in inspector.get_columns(table_name)}

        with engine.begin() as connection:
            for column_name, statement in upgrade['columns']:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            for statement in upgrade['indexes']:
                connection.execute(text(statement))

        _checked_tables.add(table_name)


def ensure_availability_schema() -> None:
    ensure_table_schema('availability_blocks')


def ensure_appointment_schema() -> None:
    ensure_table_schema('appointments')


def ensure_notification_schema() -> None:
    ensure_table_schema('notifications')
