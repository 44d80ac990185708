import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from fitcoach.core import config
from fitcoach.core.logging import configure_logging
from fitcoach.database import (
    Base,
    engine,
    ensure_appointment_schema,
    ensure_availability_schema,
    ensure_notification_schema,
)
from fitcoach.models import appointment, availability, coach, notification, user  # noqa: F401
from fitcoach.routes import appointment_routes, availability_routes, coach_routes, notification_routes

app = FastAPI(title='fitcoach')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    configure_logging()
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_appointment_schema()
        ensure_notification_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Fitcoach API Running'}


app.include_router(coach_routes.router, prefix='/coaches')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(notification_routes.router, prefix='/notifications')
