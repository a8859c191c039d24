"""Shared fixtures for the test suite: in-memory database, fake clock and
recording stand-ins for the outbound email and geolocation clients."""

import re
from datetime import datetime, timedelta
from typing import Optional

from core.security import get_password_hash
from database import DatabaseConnection, get_now
from database.models import Admin, LoginAttemptStatus
from services.admins import AdminRepository
from services.device_trust import DeviceTrustEvaluator
from services.email_notifier import EmailNotifier
from services.geolocation import GeoLocator
from services.login_attempts import LoginAttemptLog
from services.login_flow import ClientInfo, LoginService
from services.otp import OtpLedger
from services.sessions import SessionStore

SECRET = "test-secret"
PASSWORD = "correct-horse-1"
PASSWORD_HASH = get_password_hash(PASSWORD)

_CODE = re.compile(r"\b(\d{6})\b")


class FakeClock:
    def __init__(self, now: Optional[datetime] = None):
        self.now = now or get_now()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier(EmailNotifier):
    """Keeps every message instead of talking to SMTP."""

    def __init__(self, fail: bool = False):
        super().__init__(host="localhost")
        self.fail = fail
        self.sent = []

    async def send(self, to, subject, body):
        recipients = [to] if isinstance(to, str) else list(to)
        self.sent.append({"to": recipients, "subject": subject, "body": body})
        if self.fail:
            return {"success": False, "error": "smtp down"}
        return {"success": True, "recipients": recipients}

    def with_subject(self, subject: str):
        return [m for m in self.sent if m["subject"] == subject]

    def last_code(self) -> str:
        for message in reversed(self.sent):
            match = _CODE.search(message["body"])
            if match:
                return match.group(1)
        raise AssertionError("no code was sent")


class StaticGeoLocator(GeoLocator):
    def __init__(self, location: str = "Tashkent, Uzbekistan", fail: bool = False):
        super().__init__()
        self.location = location
        self.fail = fail

    async def locate(self, ip, latitude=None, longitude=None):
        if self.fail:
            raise RuntimeError("geo provider unreachable")
        return self.location, "ip"


def make_database() -> DatabaseConnection:
    database = DatabaseConnection("sqlite:///:memory:")
    database.create_tables()
    return database


def make_admin(db, email: str, role: str, is_active: bool = True, **kwargs) -> Admin:
    admin = Admin(
        email=email,
        password_hash=PASSWORD_HASH,
        first_name=kwargs.pop("first_name", email.split("@")[0].title()),
        last_name=kwargs.pop("last_name", "Test"),
        role=role,
        is_active=is_active,
        verified_at=kwargs.pop("verified_at", get_now()),
        **kwargs,
    )
    return AdminRepository(db).add(admin)


def trust_device(db, admin: Admin, device_id: str) -> None:
    """Record an approved attempt so the device counts as known."""
    attempts = LoginAttemptLog(db)
    attempt = attempts.create(
        LoginAttemptStatus.PENDING_APPROVAL, email=admin.email, admin_id=admin.id, device_id=device_id
    )
    attempts.update_status(attempt.id, LoginAttemptStatus.APPROVED)


def make_login_service(db, clock=get_now, notifier=None, geolocator=None, ttl_minutes: int = 10):
    attempts = LoginAttemptLog(db, clock=clock)
    return LoginService(
        admins=AdminRepository(db),
        otps=OtpLedger(db, ttl_minutes, secret_key=SECRET, clock=clock),
        attempts=attempts,
        device_trust=DeviceTrustEvaluator(attempts),
        sessions=SessionStore(db, SECRET, 60, clock=clock),
        notifier=notifier or RecordingNotifier(),
        geolocator=geolocator or StaticGeoLocator(),
        otp_ttl_minutes=ttl_minutes,
    )


def client(device_id: Optional[str] = None, ip: str = "203.0.113.7") -> ClientInfo:
    return ClientInfo(ip_address=ip, user_agent="Mozilla/5.0 (X11; Linux)", device_id=device_id)
