"""
OTP ledger.

issue(email) stores a new code with expiry = now + TTL and returns the
plaintext code for delivery. verify(email, code) succeeds at most once per
code: the matching row is deleted in the same call. Older live codes for the
same email stay valid until used or expired.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import TransientInfraError
from core.security import generate_otp_code, hash_otp_code
from database.base import get_now
from database.models import OtpCode, OtpPurpose
from services.admins import normalize_email

logger = logging.getLogger(__name__)


class OtpLedger:

    def __init__(
        self,
        db: Session,
        ttl_minutes: int,
        secret_key: Optional[str] = None,
        clock: Callable[[], datetime] = get_now,
    ):
        self.db = db
        self.ttl = timedelta(minutes=ttl_minutes)
        self.secret_key = secret_key
        self.clock = clock

    def issue(self, email: str, purpose: OtpPurpose = OtpPurpose.LOGIN) -> str:
        email = normalize_email(email)
        code = generate_otp_code()
        record = OtpCode(
            email=email,
            code_hash=hash_otp_code(email, code, self.secret_key),
            purpose=purpose.value,
            expires_at=self.clock() + self.ttl,
        )
        try:
            self.db.add(record)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"OTP insert failed for {email}: {e}")
            raise TransientInfraError("Could not issue OTP") from e

        logger.info(f"OTP issued: email={email} purpose={purpose.value} id={record.id}")
        return code

    def verify(self, email: str, code: str, purpose: OtpPurpose = OtpPurpose.LOGIN) -> bool:
        """True only if an unexpired matching code existed and this call consumed it."""
        email = normalize_email(email)
        code = (code or "").strip()
        if not email or not code:
            return False

        record = self.db.query(OtpCode).filter(
            OtpCode.email == email,
            OtpCode.code_hash == hash_otp_code(email, code, self.secret_key),
            OtpCode.purpose == purpose.value,
            OtpCode.expires_at > self.clock(),
        ).first()
        if record is None:
            return False

        try:
            # A concurrent verify may have consumed it first
            deleted = self.db.query(OtpCode).filter(OtpCode.id == record.id).delete(
                synchronize_session=False
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"OTP consume failed for {email}: {e}")
            raise TransientInfraError("Could not verify OTP") from e

        if deleted != 1:
            return False
        logger.info(f"OTP consumed: email={email} purpose={purpose.value} id={record.id}")
        return True

    def purge_expired(self) -> int:
        """Delete every code past its expiry."""
        removed = self.db.query(OtpCode).filter(
            OtpCode.expires_at <= self.clock()
        ).delete(synchronize_session=False)
        self.db.commit()
        return removed
