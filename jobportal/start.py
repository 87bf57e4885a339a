"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jobportal.auth import auth_backend, fastapi_users
from jobportal.config import settings
from jobportal.db import close_db, init_db
from jobportal.routers import admin, health, payments, subscriptions
from jobportal.schemas.users import UserCreate, UserRead, UserUpdate
from jobportal.utils.logging_config import setup_logging
from jobportal.utils.middleware import setup_middleware

logger = logging.getLogger(__name__)

# Set up logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting application ({settings.api.environment})")
    await init_db()
    yield
    close_db()
    logger.info("Shutting down application")


app = FastAPI(
    title="Job Portal Subscriptions",
    version="0.1.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_middleware(app, request_logging=settings.logging.enable_endpoint_logging)

# Include routers
app.include_router(health.router)
app.include_router(subscriptions.router)
app.include_router(payments.router)
app.include_router(admin.router)

# Include FastAPI Users routers
## /login /logout
app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"])
## /register
app.include_router(
    fastapi_users.get_register_router(UserRead, UserCreate),
    prefix="/auth",
    tags=["auth"],
)
## /forgot-password /reset-password
app.include_router(
    fastapi_users.get_reset_password_router(),
    prefix="/auth",
    tags=["auth"],
)
app.include_router(
    fastapi_users.get_users_router(UserRead, UserUpdate),
    prefix="/users",
    tags=["users"],
)
