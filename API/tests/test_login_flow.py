import unittest

from core.exceptions import (
    ApprovalPendingError,
    AuthenticationError,
    AuthorizationError,
    ExpiredError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from database.models import LoginAttempt, LoginAttemptStatus, OtpCode
from services.expiry_sweeper import ExpirySweeper
from tests.helpers import (
    PASSWORD,
    FakeClock,
    RecordingNotifier,
    StaticGeoLocator,
    client,
    make_admin,
    make_database,
    make_login_service,
    trust_device,
)

S = LoginAttemptStatus


class LoginFlowTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.database = make_database()
        self.db = self.database.get_session_direct()
        self.clock = FakeClock()
        self.notifier = RecordingNotifier()
        self.service = make_login_service(self.db, clock=self.clock, notifier=self.notifier)

        self.sam = make_admin(self.db, "sam@x.com", "super_admin")
        self.alice = make_admin(self.db, "alice@x.com", "manager")
        self.bob = make_admin(self.db, "bob@x.com", "cashier")
        make_admin(self.db, "old@x.com", "dev", is_active=False)

    def tearDown(self) -> None:
        self.db.close()
        self.database.dispose()

    def attempt(self, attempt_id: int) -> LoginAttempt:
        return self.service.attempts.get(attempt_id)


class CredentialTests(LoginFlowTestCase):
    async def test_wrong_password_records_failed_attempt(self) -> None:
        with self.assertRaises(AuthenticationError):
            await self.service.login("alice@x.com", "nope", client("dev-1"))

        rows = self.db.query(LoginAttempt).all()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].status, S.FAILED.value)
        self.assertEqual(rows[0].admin_id, self.alice.id)
        self.assertEqual(rows[0].failure_reason, "wrong_password")
        self.assertEqual(self.notifier.sent, [])

    async def test_unknown_email_looks_like_wrong_password(self) -> None:
        with self.assertRaises(AuthenticationError) as unknown:
            await self.service.login("ghost@x.com", PASSWORD, client())
        with self.assertRaises(AuthenticationError) as wrong:
            await self.service.login("alice@x.com", "nope", client())

        self.assertEqual(unknown.exception.message, wrong.exception.message)
        self.assertEqual(unknown.exception.status_code, 400)

    async def test_inactive_admin_gets_no_otp(self) -> None:
        with self.assertRaises(AuthenticationError):
            await self.service.login("old@x.com", PASSWORD, client())

        self.assertEqual(self.db.query(OtpCode).count(), 0)
        self.assertEqual(self.notifier.sent, [])

    async def test_missing_credentials(self) -> None:
        with self.assertRaises(AuthenticationError):
            await self.service.login(None, None, client())
        row = self.db.query(LoginAttempt).one()
        self.assertEqual(row.failure_reason, "missing_credentials")
        self.assertIsNone(row.admin_id)

    async def test_email_is_case_insensitive(self) -> None:
        result = await self.service.login("  SAM@X.com ", PASSWORD, client())
        self.assertEqual(result["status"], S.OTP_SENT.value)


class TrustedDeviceTests(LoginFlowTestCase):
    async def test_approver_on_known_device_gets_otp_to_self(self) -> None:
        trust_device(self.db, self.alice, "dev-1")

        result = await self.service.login("alice@x.com", PASSWORD, client("dev-1"))

        self.assertTrue(result["success"])
        self.assertEqual(result["status"], S.OTP_SENT.value)
        self.assertEqual(result["otp_sent_to"], "self")
        self.assertEqual(result["expires_in"], 600)
        self.assertEqual(self.attempt(result["login_attempt_id"]).status, S.OTP_SENT.value)
        self.assertEqual(self.notifier.sent[-1]["to"], ["alice@x.com"])
        self.assertIn("10 minutes", self.notifier.sent[-1]["body"])

    async def test_super_admin_skips_approval_on_new_device(self) -> None:
        result = await self.service.login("sam@x.com", PASSWORD, client("brand-new"))
        self.assertEqual(result["status"], S.OTP_SENT.value)
        self.assertEqual(result["otp_sent_to"], "self")

    async def test_staff_otp_goes_to_other_approvers(self) -> None:
        trust_device(self.db, self.bob, "dev-9")

        result = await self.service.login("bob@x.com", PASSWORD, client("dev-9"))

        self.assertEqual(result["otp_sent_to"], "approvers")
        self.assertEqual(self.notifier.sent[-1]["to"], ["sam@x.com", "alice@x.com"])
        self.assertIn("bob@x.com", self.notifier.sent[-1]["body"])

    async def test_location_is_recorded(self) -> None:
        result = await self.service.login("sam@x.com", PASSWORD, client())
        attempt = self.attempt(result["login_attempt_id"])
        self.assertEqual(attempt.location, "Tashkent, Uzbekistan")
        self.assertEqual(attempt.location_source, "ip")
        self.assertEqual(attempt.ip_address, "203.0.113.7")

    async def test_geolocation_failure_does_not_block_login(self) -> None:
        service = make_login_service(
            self.db, clock=self.clock, notifier=self.notifier, geolocator=StaticGeoLocator(fail=True)
        )
        result = await service.login("sam@x.com", PASSWORD, client())
        self.assertEqual(self.attempt(result["login_attempt_id"]).location, "Unknown")

    async def test_email_failure_does_not_block_login(self) -> None:
        service = make_login_service(self.db, clock=self.clock, notifier=RecordingNotifier(fail=True))
        result = await service.login("sam@x.com", PASSWORD, client())
        self.assertEqual(result["status"], S.OTP_SENT.value)


class NewDeviceTests(LoginFlowTestCase):
    async def test_new_device_waits_for_approval(self) -> None:
        with self.assertRaises(ApprovalPendingError) as ctx:
            await self.service.login("bob@x.com", PASSWORD, client("dev-9"))

        self.assertEqual(ctx.exception.status_code, 403)
        payload = ctx.exception.to_dict()
        self.assertFalse(payload["success"])
        self.assertEqual(payload["status"], S.PENDING_APPROVAL.value)
        self.assertEqual(self.attempt(payload["login_attempt_id"]).status, S.PENDING_APPROVAL.value)

        requests = self.notifier.with_subject("New device login needs approval")
        self.assertEqual(len(requests), 1)
        self.assertEqual(requests[0]["to"], ["sam@x.com", "alice@x.com"])
        self.assertEqual(self.db.query(OtpCode).count(), 0)

    async def test_missing_device_id_counts_as_new(self) -> None:
        with self.assertRaises(ApprovalPendingError):
            await self.service.login("alice@x.com", PASSWORD, client(None))

    async def test_approval_then_login_proceeds_to_otp(self) -> None:
        with self.assertRaises(ApprovalPendingError) as ctx:
            await self.service.login("bob@x.com", PASSWORD, client("dev-9"))
        attempt_id = ctx.exception.payload["login_attempt_id"]

        result = await self.service.resolve_device_approval(attempt_id, True, self.alice)

        self.assertEqual(result["status"], S.APPROVED.value)
        attempt = self.attempt(attempt_id)
        self.assertEqual(attempt.approved_by, self.alice.id)
        self.assertEqual(attempt.approved_by_role, "manager")
        self.assertEqual(self.notifier.with_subject("Device approved")[0]["to"], ["bob@x.com"])

        again = await self.service.login("bob@x.com", PASSWORD, client("dev-9"))
        self.assertEqual(again["status"], S.OTP_SENT.value)
        self.assertNotEqual(again["login_attempt_id"], attempt_id)

    async def test_rejected_device_is_still_untrusted(self) -> None:
        with self.assertRaises(ApprovalPendingError) as ctx:
            await self.service.login("bob@x.com", PASSWORD, client("dev-9"))

        result = await self.service.resolve_device_approval(
            ctx.exception.payload["login_attempt_id"], False, self.sam
        )
        self.assertEqual(result["status"], S.REJECTED.value)
        self.assertEqual(self.notifier.with_subject("Device approved"), [])

        with self.assertRaises(ApprovalPendingError):
            await self.service.login("bob@x.com", PASSWORD, client("dev-9"))

    async def test_no_approver_available(self) -> None:
        database = make_database()
        db = database.get_session_direct()
        try:
            make_admin(db, "solo@x.com", "cashier")
            service = make_login_service(db, notifier=self.notifier)

            with self.assertRaises(AuthorizationError) as ctx:
                await service.login("solo@x.com", PASSWORD, client("dev-1"))

            self.assertNotIsInstance(ctx.exception, ApprovalPendingError)
            attempt = service.attempts.get(ctx.exception.payload["login_attempt_id"])
            self.assertEqual(attempt.status, S.PENDING_APPROVAL.value)
            self.assertEqual(self.notifier.sent, [])
        finally:
            db.close()
            database.dispose()

    async def test_manager_alone_does_not_approve_self(self) -> None:
        database = make_database()
        db = database.get_session_direct()
        try:
            make_admin(db, "mona@x.com", "manager")
            service = make_login_service(db, notifier=self.notifier)

            with self.assertRaises(AuthorizationError):
                await service.login("mona@x.com", PASSWORD, client("dev-1"))
        finally:
            db.close()
            database.dispose()


class ApprovalTests(LoginFlowTestCase):
    async def pending_attempt_id(self) -> int:
        with self.assertRaises(ApprovalPendingError) as ctx:
            await self.service.login("bob@x.com", PASSWORD, client("dev-9"))
        return ctx.exception.payload["login_attempt_id"]

    async def test_repeated_approval_is_a_no_op(self) -> None:
        attempt_id = await self.pending_attempt_id()

        first = await self.service.resolve_device_approval(attempt_id, True, self.alice)
        second = await self.service.resolve_device_approval(attempt_id, True, self.sam)
        third = await self.service.resolve_device_approval(attempt_id, False, self.sam)

        self.assertFalse(first["already_resolved"])
        self.assertTrue(second["already_resolved"])
        self.assertTrue(third["already_resolved"])
        self.assertEqual(third["status"], S.APPROVED.value)
        self.assertEqual(self.attempt(attempt_id).approved_by, self.alice.id)
        self.assertEqual(len(self.notifier.with_subject("Device approved")), 1)

    async def test_non_approver_cannot_resolve(self) -> None:
        attempt_id = await self.pending_attempt_id()
        with self.assertRaises(AuthorizationError):
            await self.service.resolve_device_approval(attempt_id, True, self.bob)
        self.assertEqual(self.attempt(attempt_id).status, S.PENDING_APPROVAL.value)

    async def test_approver_cannot_resolve_own_attempt(self) -> None:
        with self.assertRaises(ApprovalPendingError) as ctx:
            await self.service.login("alice@x.com", PASSWORD, client("laptop"))
        attempt_id = ctx.exception.payload["login_attempt_id"]

        with self.assertRaises(AuthorizationError):
            await self.service.resolve_device_approval(attempt_id, True, self.alice)

    async def test_unknown_attempt(self) -> None:
        with self.assertRaises(NotFoundError):
            await self.service.resolve_device_approval(9999, True, self.sam)

    async def test_missing_attempt_id(self) -> None:
        with self.assertRaises(ValidationError):
            await self.service.resolve_device_approval(None, True, self.sam)

    async def test_otp_attempt_cannot_be_approved(self) -> None:
        result = await self.service.login("sam@x.com", PASSWORD, client())
        with self.assertRaises(ValidationError):
            await self.service.resolve_device_approval(result["login_attempt_id"], True, self.alice)

    async def test_swept_attempt_is_not_revived(self) -> None:
        attempt_id = await self.pending_attempt_id()

        self.clock.advance(minutes=61)
        counts = ExpirySweeper(self.database, clock=self.clock).sweep_once()
        self.assertEqual(counts["failed_attempts"], 1)

        with self.assertRaises(ValidationError):
            await self.service.resolve_device_approval(attempt_id, True, self.alice)
        self.assertEqual(self.attempt(attempt_id).status, S.FAILED.value)


class VerifyOtpTests(LoginFlowTestCase):
    async def login_sam(self) -> int:
        result = await self.service.login("sam@x.com", PASSWORD, client("desk-1"))
        return result["login_attempt_id"]

    async def test_correct_code_opens_session(self) -> None:
        attempt_id = await self.login_sam()

        result = await self.service.verify_login_otp(attempt_id, self.notifier.last_code(), client())

        self.assertEqual(result["message"], "Login successful")
        self.assertTrue(result["access_token"])
        self.assertEqual(result["token_type"], "bearer")
        self.assertEqual(result["admin"]["email"], "sam@x.com")
        self.assertNotIn("password_hash", result["admin"])
        self.assertEqual(self.attempt(attempt_id).status, S.OTP_VERIFIED.value)
        self.assertIsNotNone(self.sam.last_login)

    async def test_verified_device_becomes_trusted(self) -> None:
        trust = self.service.device_trust
        result = await self.service.login("sam@x.com", PASSWORD, client("desk-7"))
        self.assertFalse(trust.is_trusted(self.sam.id, "desk-7"))

        await self.service.verify_login_otp(result["login_attempt_id"], self.notifier.last_code(), client())

        self.assertTrue(trust.is_trusted(self.sam.id, "desk-7"))
        self.assertFalse(trust.is_trusted(self.alice.id, "desk-7"))
        self.assertFalse(trust.is_trusted(self.sam.id, None))

    async def test_code_is_single_use(self) -> None:
        attempt_id = await self.login_sam()
        code = self.notifier.last_code()
        await self.service.verify_login_otp(attempt_id, code, client())

        with self.assertRaises(ValidationError):
            await self.service.verify_login_otp(attempt_id, code, client())

    async def test_expired_code_fails_attempt(self) -> None:
        attempt_id = await self.login_sam()
        code = self.notifier.last_code()
        self.clock.advance(minutes=11)

        with self.assertRaises(ExpiredError) as ctx:
            await self.service.verify_login_otp(attempt_id, code, client())

        self.assertEqual(ctx.exception.message, "Invalid or expired OTP")
        self.assertEqual(self.attempt(attempt_id).status, S.OTP_FAILED.value)

    async def test_wrong_code_has_same_message_as_expired(self) -> None:
        attempt_id = await self.login_sam()
        code = self.notifier.last_code()
        wrong = "000000" if code != "000000" else "111111"

        with self.assertRaises(ExpiredError) as ctx:
            await self.service.verify_login_otp(attempt_id, wrong, client())

        self.assertEqual(ctx.exception.message, "Invalid or expired OTP")
        self.assertEqual(self.attempt(attempt_id).status, S.OTP_FAILED.value)

    async def test_email_mismatch_is_rejected(self) -> None:
        attempt_id = await self.login_sam()
        with self.assertRaises(ExpiredError):
            await self.service.verify_login_otp(
                attempt_id, self.notifier.last_code(), client(), email="alice@x.com"
            )

    async def test_missing_fields(self) -> None:
        with self.assertRaises(ValidationError):
            await self.service.verify_login_otp(None, "123456", client())
        with self.assertRaises(ValidationError):
            await self.service.verify_login_otp(1, "", client())

    async def test_unknown_attempt(self) -> None:
        with self.assertRaises(NotFoundError):
            await self.service.verify_login_otp(4242, "123456", client())

    async def test_pending_approval_attempt_cannot_verify(self) -> None:
        with self.assertRaises(ApprovalPendingError) as ctx:
            await self.service.login("bob@x.com", PASSWORD, client("dev-9"))
        with self.assertRaises(ValidationError):
            await self.service.verify_login_otp(ctx.exception.payload["login_attempt_id"], "123456", client())

    async def test_deactivated_between_login_and_verify(self) -> None:
        attempt_id = await self.login_sam()
        self.sam.is_active = False
        self.db.commit()

        with self.assertRaises(AuthenticationError):
            await self.service.verify_login_otp(attempt_id, self.notifier.last_code(), client())
        self.assertEqual(self.attempt(attempt_id).status, S.FAILED.value)

    async def test_attempt_swept_during_verification(self) -> None:
        attempt_id = await self.login_sam()
        otps = self.service.otps
        consume = otps.verify

        def consume_then_sweep(email, code, *args):
            accepted = consume(email, code, *args)
            self.service.attempts.update_status(
                attempt_id, S.FAILED, expected=S.OTP_SENT, failure_reason="expired"
            )
            return accepted

        otps.verify = consume_then_sweep
        with self.assertRaises(ExpiredError) as ctx:
            await self.service.verify_login_otp(attempt_id, self.notifier.last_code(), client())

        self.assertEqual(ctx.exception.message, "Invalid or expired OTP")
        self.assertEqual(self.attempt(attempt_id).status, S.FAILED.value)
        self.assertIsNone(self.sam.last_login)


class TransitionGuardTests(LoginFlowTestCase):
    async def test_terminal_attempt_never_regresses(self) -> None:
        result = await self.service.login("sam@x.com", PASSWORD, client())
        attempt_id = result["login_attempt_id"]
        await self.service.verify_login_otp(attempt_id, self.notifier.last_code(), client())

        with self.assertRaises(InvalidTransitionError):
            self.service.attempts.update_status(attempt_id, S.FAILED)
        self.assertEqual(self.attempt(attempt_id).status, S.OTP_VERIFIED.value)


if __name__ == "__main__":
    unittest.main()
