"""Verification Routes — send, verify and inspect researcher access codes.

Invariants:
    - Responses never contain the code itself
    - Failures surface as typed CoachErrors (400 / 401 / 404 / 410 / 503)
"""

import logging

from fastapi import APIRouter, Depends, Query

from engcoach.api.dependencies import get_gate
from engcoach.schemas.verification import SendCodeRequest, VerifyCodeRequest
from engcoach.services.verification_gate import VerificationGate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/otp", tags=["verification"])


@router.post("/send")
async def send_code(
    body: SendCodeRequest, gate: VerificationGate = Depends(get_gate),
):
    expires_in = await gate.issue(body.email)
    return {
        "success": True,
        "message": "OTP sent successfully",
        "expires_in": expires_in,
    }


@router.post("/verify")
async def verify_code(
    body: VerifyCodeRequest, gate: VerificationGate = Depends(get_gate),
):
    await gate.verify(body.email, body.otp)
    return {"success": True, "message": "OTP verified successfully"}


@router.get("/status")
async def code_status(
    email: str | None = Query(None),
    gate: VerificationGate = Depends(get_gate),
):
    remaining = await gate.status(email)
    if remaining is None:
        return {"success": True, "has_active_otp": False}
    return {"success": True, "has_active_otp": True, "expires_in": remaining}
