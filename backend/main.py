import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.core.errors import LoginRequired, PortalError, UpstreamUnavailable
from backend.database import SessionLocal, ensure_credential_schema
from backend.routes import admin_routes, auth_routes, student_routes
from backend.services import credential_store, otp_ledger

logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s | %(levelname)s | %(name)s | %(message)s')

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    response = RedirectResponse(url=auth_routes.LOGIN_URL, status_code=status.HTTP_303_SEE_OTHER)
    if exc.clear_cookie:
        response.delete_cookie(config.TOKEN_COOKIE_NAME)
    return response


@app.exception_handler(UpstreamUnavailable)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailable):
    logger.error('Upstream failure on %s %s: %s', request.method, request.url.path, exc.__cause__)
    return JSONResponse(status_code=exc.status_code, content={'detail': exc.detail})


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    return JSONResponse(status_code=exc.status_code, content={'detail': exc.detail})


@app.on_event('startup')
def initialize_credentials() -> None:
    config.validate_runtime_config()

    try:
        ensure_credential_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')
        return

    db = SessionLocal()
    try:
        credential_store.ensure_default_admin(db)
        otp_ledger.sweep_expired(db)
    except UpstreamUnavailable:
        logger.error('Skipped admin bootstrap and code sweep; the database is unavailable.')
    finally:
        db.close()


@app.get('/health')
def health():
    return {'status': 'Student Portal API Running'}


app.include_router(auth_routes.router)
app.include_router(admin_routes.router, prefix='/admin')
app.include_router(student_routes.router, prefix='/student')
