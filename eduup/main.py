import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

# Imports de l'application
from eduup.core.config import settings
from eduup.db.base import Base
from eduup.api.v2.api import api_router
from eduup.crud import user_crud
from eduup.schemas.user.user_schema import UserCreate
from eduup.db import session as db_session
from eduup.db.session import async_engine

# Imports pour SQLAdmin
from sqladmin.authentication import AuthenticationBackend
from eduup.admin import ADMIN_VIEWS, TEMPLATES_DIR, BackOfficeAdmin

# --- Configuration du logging ---
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ADMIN_SESSION_KEYS = ("admin_token", "admin_user")

# --- Initialisation de l'application FastAPI ---
app = FastAPI(
    title="EduUp API V2",
    openapi_url="/api/v2/openapi.json"
)


def _sanitize_origin(origin: str | None) -> str | None:
    if not origin:
        return None
    value = origin.strip()
    if not value:
        return None
    if not value.startswith("http"):
        value = f"https://{value}"
    return value.rstrip("/")


def _build_cors_origins() -> list[str]:
    origins = {_sanitize_origin(o) for o in settings.BACKEND_CORS_ORIGINS}
    origins.add(_sanitize_origin(settings.FRONTEND_BASE_URL))
    allow_origins = sorted({origin for origin in origins if origin})
    logger.info("CORS origins configured: %s", allow_origins)
    return allow_origins


# --- Configuration des Middlewares ---
# The admin login and the guest id live in this signed cookie.
app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_build_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["Authorization", "Content-Type"],
)


# --- Initialisation de l'Admin ---
class AdminAuth(AuthenticationBackend):
    async def login(self, request: Request) -> bool:
        form = await request.form()
        username = form.get("username")
        password = form.get("password")
        if not username or not password:
            return False

        with db_session.SessionLocal() as db:
            user = user_crud.authenticate(db, str(username), str(password))

        if user and user.is_superuser:
            request.session.update({"admin_token": "admin_logged_in", "admin_user": user.email})
            return True
        return False

    async def logout(self, request: Request) -> bool:
        for key in ADMIN_SESSION_KEYS:
            request.session.pop(key, None)
        return True

    async def authenticate(self, request: Request) -> bool:
        return "admin_token" in request.session


authentication_backend = AdminAuth(secret_key=settings.SECRET_KEY)
admin = BackOfficeAdmin(
    app,
    async_engine,
    authentication_backend=authentication_backend,
    base_url="/admin",
    title="EduUp Admin",
    templates_dir=TEMPLATES_DIR,
)
for view in ADMIN_VIEWS:
    admin.add_view(view)
app.include_router(api_router, prefix="/api/v2")


def ensure_default_admin() -> None:
    """Create the configured superuser account when it does not exist yet."""
    email = settings.DEFAULT_ADMIN_EMAIL
    with db_session.SessionLocal() as db:
        admin_user = user_crud.get_user_by_email(db, email)
        if admin_user is None:
            logger.info("Creating default admin '%s'.", email)
            user_crud.create_user(
                db,
                UserCreate(email=email, password=settings.DEFAULT_ADMIN_PASSWORD),
                is_superuser=True,
            )
        elif not admin_user.is_superuser:
            admin_user.is_superuser = True
            db.commit()
            logger.info("Default admin '%s' promoted to superuser.", email)
        else:
            logger.info("Default admin already present.")


# --- Événement de Démarrage ---
@app.on_event("startup")
async def startup():
    logger.info("Checking database tables...")
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Database tables are ready.")
    ensure_default_admin()


# --- Route Racine ---
@app.get("/")
def read_root():
    return {"message": "Welcome to EduUp API V2!"}
