"""
Device trust: a device is trusted for an admin once one of that admin's
earlier attempts from it was approved or passed OTP verification.
Evaluated fresh on every login.
"""

from typing import Optional

from services.login_attempts import LoginAttemptLog


class DeviceTrustEvaluator:

    def __init__(self, attempts: LoginAttemptLog):
        self.attempts = attempts

    def is_trusted(self, admin_id: int, device_id: Optional[str]) -> bool:
        if not device_id or not device_id.strip():
            return False
        return self.attempts.find_trusted_attempt(admin_id, device_id.strip())
