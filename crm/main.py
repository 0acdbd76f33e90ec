import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crm.config import settings
from crm.database import init_db
from crm.routers import auth, health, meetings
from crm.services.otp import otp_service
from crm.services.scheduler import start_scheduler, stop_scheduler
from crm.services.tokens import get_token_codec

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="CRM Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix="/api")
app.include_router(auth.router, prefix="/api/v1")
app.include_router(meetings.router, prefix="/api/v1")


@app.on_event("startup")
def startup() -> None:
    # Refuse to start with a missing or malformed signing secret.
    get_token_codec()
    init_db()
    if settings.otp_sweep_enabled:
        start_scheduler(otp_service)
    LOGGER.info("CRM backend started")


@app.on_event("shutdown")
def shutdown() -> None:
    stop_scheduler()


@app.get("/")
def root():
    return {"status": "Backend running"}
