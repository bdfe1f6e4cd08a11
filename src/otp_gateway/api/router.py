"""OTP API router — issue and verify endpoints.

Endpoints
---------
POST /otp/send     → issue a challenge and deliver the code
POST /otp/verify   → redeem a challenge
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from otp_gateway.core.errors import (
    DeliveryError,
    InvalidInput,
    InvalidSubject,
    Mismatch,
    NotFound,
    RateLimited,
    StoreError,
)
from otp_gateway.core.manager import ChallengeManager
from otp_gateway.notifiers.dispatcher import NotifierDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/otp", tags=["otp"])

INVALID_OR_EXPIRED = "Invalid or expired OTP"
STORE_UNAVAILABLE = "OTP service temporarily unavailable"


# ── Request / response models ────────────────────────────

class OTPSendRequest(BaseModel):
    subject: str


class OTPSendResponse(BaseModel):
    success: bool
    message: str
    expires_in: int
    code: str | None = None


class OTPVerifyRequest(BaseModel):
    subject: str
    code: str


class OTPVerifyResponse(BaseModel):
    success: bool
    message: str


# ── Dependencies (populated by the application lifespan) ─

def get_manager(request: Request) -> ChallengeManager:
    return request.app.state.manager


def get_dispatcher(request: Request) -> NotifierDispatcher:
    return request.app.state.dispatcher


def get_echo_code(request: Request) -> bool:
    return request.app.state.settings.otp_echo_code


# ── Endpoints ────────────────────────────────────────────

@router.post("/send", response_model=OTPSendResponse, response_model_exclude_none=True)
async def send_otp(
    body: OTPSendRequest,
    manager: ChallengeManager = Depends(get_manager),
    dispatcher: NotifierDispatcher = Depends(get_dispatcher),
    echo_code: bool = Depends(get_echo_code),
):
    """Issue a challenge for the subject and deliver it.

    A delivery failure leaves the challenge live; the client may retry
    or request a new code.
    """
    try:
        challenge = await manager.issue(body.subject)
    except InvalidSubject as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RateLimited as exc:
        raise HTTPException(
            status_code=429,
            detail=str(exc),
            headers={"Retry-After": str(exc.retry_after)},
        ) from exc
    except StoreError as exc:
        logger.error("Issue failed: %s", exc)
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE) from exc

    try:
        await dispatcher.send(challenge)
    except DeliveryError as exc:
        logger.warning("Delivery to %s failed: %s", challenge.subject, exc)
        raise HTTPException(status_code=502, detail="Failed to send OTP") from exc

    return OTPSendResponse(
        success=True,
        message="OTP sent successfully",
        expires_in=int(manager.ttl.total_seconds()),
        code=challenge.code if echo_code else None,
    )


@router.post("/verify", response_model=OTPVerifyResponse)
async def verify_otp(
    body: OTPVerifyRequest,
    manager: ChallengeManager = Depends(get_manager),
):
    """Redeem a challenge.

    Never-issued, expired, consumed and wrong codes all produce the
    same 401 response.
    """
    try:
        await manager.verify(body.subject, body.code)
    except InvalidInput as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (NotFound, Mismatch) as exc:
        logger.info("OTP verification failed for %s: %s", body.subject, type(exc).__name__)
        raise HTTPException(status_code=401, detail=INVALID_OR_EXPIRED) from exc
    except StoreError as exc:
        logger.error("Verify failed: %s", exc)
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE) from exc

    return OTPVerifyResponse(success=True, message="OTP verified successfully")
