# app/main.py - MentorMarket API entry point
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.config import settings
from app.database import Base, engine
from app import models  # noqa: F401 - register all tables on Base.metadata
from app.api import auth, availability, earnings, notification, payment, pricing, session, subscription

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Alembic owns the schema outside development.
if settings.APP_ENV == "development":
    Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info(
        "MentorMarket started (env=%s, fee=%s, payout range=%s-%s %s, auto payout=%s)",
        settings.APP_ENV,
        settings.PLATFORM_FEE_PERCENTAGE,
        settings.MIN_PAYOUT_AMOUNT,
        settings.MAX_PAYOUT_AMOUNT,
        settings.CURRENCY,
        settings.AUTO_PAYOUT_ENABLED,
    )
    yield


app = FastAPI(title="MentorMarket API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ROUTERS = (
    auth.router,                    # /auth/*
    availability.router,            # /mentor/availability/*
    availability.booking_router,    # /bookings/availability
    pricing.router,                 # /pricing-models/*
    session.router,                 # /sessions/*
    subscription.router,            # /subscriptions/*
    payment.router,                 # /payments/*
    earnings.router,                # /earnings/*
    notification.router,            # /notifications/*
)
for router in ROUTERS:
    app.include_router(router)


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "message": "MentorMarket API is running",
        "version": app.version,
    }
