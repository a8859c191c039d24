import unittest

from core.exceptions import RateLimitedError
from core.rate_limit import RateLimiter, check_rate_limit


class FakeTime:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class RateLimiterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.time = FakeTime()
        self.limiter = RateLimiter(max_attempts=3, window_seconds=60, clock=self.time)

    def test_blocks_after_limit(self) -> None:
        self.assertEqual([self.limiter.allow("ip") for _ in range(4)], [True, True, True, False])

    def test_keys_are_independent(self) -> None:
        for _ in range(3):
            self.limiter.allow("a")
        self.assertFalse(self.limiter.allow("a"))
        self.assertTrue(self.limiter.allow("b"))

    def test_window_slides(self) -> None:
        for _ in range(3):
            self.limiter.allow("ip")
        self.time.now += 60
        self.assertTrue(self.limiter.allow("ip"))

    def test_expired_keys_are_forgotten(self) -> None:
        for i in range(1000):
            self.limiter.allow(f"otp-attempt:{i}")
        self.assertEqual(len(self.limiter), 1000)

        self.time.now += 61
        self.assertTrue(self.limiter.allow("ip"))
        self.assertEqual(len(self.limiter), 1)

    def test_reset(self) -> None:
        for _ in range(3):
            self.limiter.allow("ip")
        self.limiter.reset("ip")
        self.assertTrue(self.limiter.allow("ip"))

    def test_check_raises(self) -> None:
        limiter = RateLimiter(max_attempts=1, window_seconds=60, clock=self.time)
        check_rate_limit(limiter, "ip")
        with self.assertRaises(RateLimitedError) as ctx:
            check_rate_limit(limiter, "ip")
        self.assertEqual(ctx.exception.status_code, 429)


if __name__ == "__main__":
    unittest.main()
