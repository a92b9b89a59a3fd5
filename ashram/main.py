import logging

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from ashram.core import config
from ashram.core.logging_setup import configure_logging
from ashram.database import Base, engine, ensure_appointment_schema, ping_database
from ashram.models import appointment, queue, user  # noqa: F401
from ashram.routes import admin_routes, appointment_routes
from ashram.routes.common import DATABASE_UNAVAILABLE_DETAIL

configure_logging()
config.validate_runtime_config()

app = FastAPI(title='Ashram Appointments API', debug=config.DEBUG)

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
    try:
        Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Ashram Appointments API Running'}


@app.get('/health')
def health():
    try:
        ping_database()
    except SQLAlchemyError as exc:
        logger.exception('Health check could not reach the database')
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
    return {'status': 'ok', 'database': 'ok'}


app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(admin_routes.router, prefix='/admin')
