"""
Login attempt expiry sweeper.

Runs inside the API process. Every `interval_seconds` it fails login
attempts that have been pending longer than the staleness window and
deletes expired OTP codes. Nobody is notified.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict

from database.base import get_now
from database.connection import DatabaseConnection
from services.login_attempts import LoginAttemptLog
from services.otp import OtpLedger

logger = logging.getLogger(__name__)


class ExpirySweeper:

    def __init__(
        self,
        database: DatabaseConnection,
        stale_minutes: int = 60,
        interval_seconds: int = 3600,
        otp_ttl_minutes: int = 10,
        clock: Callable[[], datetime] = get_now,
    ):
        self.database = database
        self.stale_after = timedelta(minutes=stale_minutes)
        self.interval_seconds = interval_seconds
        self.otp_ttl_minutes = otp_ttl_minutes
        self.clock = clock
        self.running = True

    @classmethod
    def from_settings(cls, database: DatabaseConnection, settings) -> "ExpirySweeper":
        return cls(
            database,
            stale_minutes=settings.attempt_stale_minutes,
            interval_seconds=settings.sweep_interval_seconds,
            otp_ttl_minutes=settings.otp_ttl_minutes,
        )

    async def run(self):
        """Main sweeper loop."""
        logger.info(f"Login attempt sweeper started (every {self.interval_seconds}s)")

        while self.running:
            try:
                await asyncio.to_thread(self.sweep_once)
            except Exception as e:
                logger.error(f"Sweeper error: {e}")

            await asyncio.sleep(self.interval_seconds)

    def sweep_once(self) -> Dict[str, int]:
        session = self.database.get_session_direct()
        try:
            cutoff = self.clock() - self.stale_after
            failed = LoginAttemptLog(session, clock=self.clock).sweep_stale(older_than=cutoff)
            purged = OtpLedger(session, self.otp_ttl_minutes, clock=self.clock).purge_expired()
        finally:
            session.close()

        if failed or purged:
            logger.info(f"Sweeper: {failed} stale login attempt(s) failed, {purged} expired OTP(s) purged")
        return {"failed_attempts": failed, "purged_otps": purged}

    def stop(self):
        self.running = False
