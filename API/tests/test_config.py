import unittest

from core.config import Settings


class SettingsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = Settings.from_env({})
        self.assertEqual(settings.database_url, "sqlite:///./station_admin.db")
        self.assertEqual(settings.otp_ttl_minutes, 10)
        self.assertEqual(settings.attempt_stale_minutes, 60)
        self.assertTrue(settings.sweeper_enabled)
        self.assertFalse(settings.debug)
        self.assertEqual(settings.super_admin_email, "")

    def test_overrides(self) -> None:
        settings = Settings.from_env({
            "DATABASE_URL": "postgresql://u:p@db/station",
            "OTP_TTL_MINUTES": "5",
            "DEBUG": "true",
            "SWEEPER_ENABLED": "0",
            "SMTP_PORT": "587",
            "SMTP_USE_TLS": "yes",
        })
        self.assertEqual(settings.database_url, "postgresql://u:p@db/station")
        self.assertEqual(settings.otp_ttl_minutes, 5)
        self.assertTrue(settings.debug)
        self.assertFalse(settings.sweeper_enabled)
        self.assertEqual(settings.smtp_port, 587)
        self.assertTrue(settings.smtp_use_tls)

    def test_cors_origins_list(self) -> None:
        settings = Settings.from_env({"CORS_ORIGINS": "http://a.test, http://b.test,,"})
        self.assertEqual(settings.cors_origins_list, ["http://a.test", "http://b.test"])


if __name__ == "__main__":
    unittest.main()
