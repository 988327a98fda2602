"""
Pickup OTP
==========

A 6-digit code handed to the customer and read back to the driver at
pickup.  Codes are compared as trimmed strings so leading zeros survive,
and expire strictly *after* ``OTP_TTL`` (at exactly 30:00 a code is still
valid).  ``verify_otp`` is a pure predicate: clearing a consumed code is
the caller's job.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from .clock import as_utc, utcnow

OTP_LENGTH = 6
OTP_TTL = timedelta(minutes=30)


@dataclass(frozen=True)
class OtpCheck:
    valid: bool
    expired: bool = False


def new_code() -> str:
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


def generate_otp(booking: Any, now: Optional[datetime] = None) -> str:
    """Attach a fresh code to *booking*, overwriting any unconsumed one."""
    code = new_code()
    booking.pickup_otp = code
    booking.otp_generated_at = now or utcnow()
    return code


def is_expired(
    booking: Any, now: Optional[datetime] = None, ttl: timedelta = OTP_TTL
) -> bool:
    if not booking.pickup_otp or booking.otp_generated_at is None:
        return False
    elapsed = as_utc(now or utcnow()) - as_utc(booking.otp_generated_at)
    return elapsed > ttl


def verify_otp(
    booking: Any,
    submitted: Optional[str],
    now: Optional[datetime] = None,
    ttl: timedelta = OTP_TTL,
) -> OtpCheck:
    if not booking.pickup_otp or booking.otp_generated_at is None:
        return OtpCheck(valid=False)
    if is_expired(booking, now, ttl):
        return OtpCheck(valid=False, expired=True)

    stored = str(booking.pickup_otp).strip()
    provided = str(submitted if submitted is not None else "").strip()
    return OtpCheck(valid=stored == provided)
