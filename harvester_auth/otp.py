"""Issue and verify phone one-time codes.

A challenge moves through ``no challenge -> pending -> verified | expired |
mismatched``. ``issue`` creates (or replaces) the pending challenge and sends
the code; ``verify`` consumes it on a match. Expired and mismatched challenges
stay in the store until they are replaced, purged, or (for mismatches) the
attempt limit is reached.
"""
from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

from harvester_auth import codes
from harvester_auth.channels import DeliveryGateway
from harvester_auth.config import Settings
from harvester_auth.errors import DeliveryFailed, Expired, InvalidArgument, Mismatched, NotFound
from harvester_auth.models import utcnow_naive
from harvester_auth.store import ChallengeStore

logger = logging.getLogger(__name__)


def mask_subject(subject: str) -> str:
    return "*" * max(len(subject) - 4, 0) + subject[-4:]


class OtpService:
    def __init__(
        self,
        store: ChallengeStore,
        gateway: Optional[DeliveryGateway],
        settings: Settings,
        clock: Callable[[], datetime] = utcnow_naive,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.gateway = gateway
        self.settings = settings
        self.clock = clock
        self.monotonic = monotonic
        self._subject_re = re.compile(rf"[0-9]{{{settings.SUBJECT_LENGTH}}}")
        self._code_re = re.compile(rf"[0-9]{{{settings.OTP_DIGITS}}}")

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=int(self.settings.OTP_TTL_SECONDS))

    def _check_subject(self, subject: str) -> None:
        if not isinstance(subject, str) or not self._subject_re.fullmatch(subject):
            raise InvalidArgument(f"Enter valid {self.settings.SUBJECT_LENGTH}-digit phone number")

    def issue(self, subject: str) -> dict:
        started = self.monotonic()
        self._check_subject(subject)
        if self.gateway is None:
            raise DeliveryFailed("OTP delivery is not configured")

        code, code_hash = codes.generate(self.settings.OTP_DIGITS, self.settings.OTP_HASH_SECRET)
        issued_at = self.clock()
        self.store.put(
            subject,
            code_hash,
            issued_at=issued_at,
            expires_at=issued_at + self.ttl,
            channel=self.gateway.name,
        )

        remaining = self.settings.REQUEST_TIMEOUT_SECONDS - (self.monotonic() - started)
        if remaining <= 0:
            # challenge stays stored and simply expires
            logger.warning("otp issue for %s ran out of time before delivery", mask_subject(subject))
            raise DeliveryFailed()

        self.gateway.send(subject, code, timeout=min(self.settings.DELIVERY_TIMEOUT_SECONDS, remaining))
        logger.info("otp issued for %s via %s", mask_subject(subject), self.gateway.name)
        return {"success": True}

    def verify(self, subject: str, code: str) -> dict:
        self._check_subject(subject)
        if not isinstance(code, str) or not self._code_re.fullmatch(code):
            raise InvalidArgument(f"Enter valid {self.settings.OTP_DIGITS}-digit OTP")

        challenge = self.store.get(subject)
        if challenge is None:
            raise NotFound()

        if self.clock() >= challenge.expires_at:
            logger.info("otp for %s expired", mask_subject(subject))
            raise Expired()

        if not codes.codes_match(code, challenge.code_hash, self.settings.OTP_HASH_SECRET):
            attempts = self.store.record_mismatch(subject, challenge.code_hash)
            max_attempts = self.settings.OTP_MAX_ATTEMPTS
            if max_attempts and attempts >= max_attempts:
                self.store.delete(subject, challenge.code_hash)
                logger.warning("otp for %s invalidated after %d wrong attempts", mask_subject(subject), attempts)
            else:
                logger.info("wrong otp for %s (attempt %d)", mask_subject(subject), attempts)
            raise Mismatched()

        # only the request that actually removes the row wins
        if not self.store.delete(subject, challenge.code_hash):
            raise NotFound()

        logger.info("otp verified for %s", mask_subject(subject))
        return {"verified": True}
