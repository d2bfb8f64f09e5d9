"""Verification Schemas — OTP request bodies.

Invariants:
    - Address shape ("@") is checked by the verification gate, not here, so a bad
      address yields the gate's typed InvalidTargetError
    - Missing fields are accepted here and rejected by the gate with its own message
"""

from pydantic import BaseModel


class SendCodeRequest(BaseModel):
    email: str | None = None


class VerifyCodeRequest(BaseModel):
    email: str | None = None
    otp: str | None = None
