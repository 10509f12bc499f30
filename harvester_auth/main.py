# harvester_auth/main.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from harvester_auth.channels import DeliveryGateway, build_gateway
from harvester_auth.config import settings
from harvester_auth.db import get_db, engine
from harvester_auth.errors import InvalidArgument, OtpError
from harvester_auth.models import Base
from harvester_auth.otp import OtpService
from harvester_auth.store import SqlChallengeStore

logger = logging.getLogger(__name__)


# -----------------------------
# Schemas
# -----------------------------
class IssueIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    subject: str


class IssueOut(BaseModel):
    success: bool


class VerifyIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    subject: str
    code: str


class VerifyOut(BaseModel):
    verified: bool


# -----------------------------
# Dependencies
# -----------------------------
def get_gateway(request: Request) -> Optional[DeliveryGateway]:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        # built lazily so a missing provider key only breaks issue, not verify
        try:
            gateway = build_gateway(settings)
        except ValueError as exc:
            logger.error("otp delivery not configured: %s", exc)
            return None
        request.app.state.gateway = gateway
    return gateway


def get_otp_service(
    db: Session = Depends(get_db),
    gateway: Optional[DeliveryGateway] = Depends(get_gateway),
) -> OtpService:
    return OtpService(SqlChallengeStore(db), gateway, settings)


# -----------------------------
# FastAPI App
# -----------------------------
app = FastAPI(title="Harvester Auth", version="1.0.0")


@app.exception_handler(OtpError)
async def otp_error_handler(request: Request, exc: OtpError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    err = InvalidArgument("Invalid request")
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


@app.on_event("startup")
def on_startup():
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Create DB schema
    Base.metadata.create_all(bind=engine)
    logger.info("harvester auth started (env=%s, channel=%s)", settings.APP_ENV, settings.DELIVERY_CHANNEL)


# -----------------------------
# Health
# -----------------------------
@app.get("/health")
def health():
    return {"ok": True}


# -----------------------------
# OTP
# -----------------------------
@app.post("/auth/otp/issue", response_model=IssueOut)
def issue_otp(payload: IssueIn, service: OtpService = Depends(get_otp_service)):
    return service.issue(payload.subject)


@app.post("/auth/otp/verify", response_model=VerifyOut)
def verify_otp(payload: VerifyIn, service: OtpService = Depends(get_otp_service)):
    return service.verify(payload.subject, payload.code)
