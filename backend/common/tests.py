from django.core.cache.backends.locmem import LocMemCache
from django.test import SimpleTestCase

from .rate_limit import CacheRateLimiter, RateLimitExceeded


class CacheRateLimiterTests(SimpleTestCase):
	def setUp(self):
		self.cache = LocMemCache('rate-limit-tests', {})
		self.cache.clear()
		self.limiter = CacheRateLimiter(max_attempts=3, window_seconds=900, block_seconds=1800, cache=self.cache)

	def test_blocks_after_max_attempts(self):
		self.assertEqual(self.limiter.hit('7:42'), 1)
		self.assertEqual(self.limiter.hit('7:42'), 2)
		self.limiter.check('7:42')

		self.assertEqual(self.limiter.hit('7:42'), 3)
		with self.assertRaises(RateLimitExceeded) as ctx:
			self.limiter.check('7:42')
		self.assertGreater(ctx.exception.retry_after, 1700)

	def test_keys_are_independent(self):
		for _ in range(3):
			self.limiter.hit('7:42')

		self.limiter.check('7:43')
		self.limiter.check('8:42')

	def test_reset_clears_block(self):
		for _ in range(3):
			self.limiter.hit('7:42')

		self.limiter.reset('7:42')

		self.limiter.check('7:42')
		self.assertEqual(self.limiter.hit('7:42'), 1)

	def test_trip_code_defaults(self):
		limiter = CacheRateLimiter.for_trip_codes(cache=self.cache)

		self.assertEqual(limiter.max_attempts, 5)
		self.assertEqual(limiter.window_seconds, 15 * 60)
		self.assertEqual(limiter.block_seconds, 30 * 60)
