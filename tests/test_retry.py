import unittest

from url_risk.retry import RetryPolicy, _sleep_seconds, retry_call

NO_DELAY = RetryPolicy(retries=3, base_delay_seconds=0.0, max_delay_seconds=0.0, jitter=0.0)


class TestRetry(unittest.IsolatedAsyncioTestCase):
    async def test_retries_then_succeeds(self):
        state = {"n": 0}

        async def fn():
            state["n"] += 1
            if state["n"] < 3:
                raise RuntimeError("timeout")
            return 42

        out = await retry_call(fn, policy=NO_DELAY, should_retry=lambda e: True)
        self.assertEqual(out, 42)
        self.assertEqual(state["n"], 3)

    async def test_does_not_retry_when_predicate_false(self):
        state = {"n": 0}

        async def fn():
            state["n"] += 1
            raise RuntimeError("nope")

        with self.assertRaises(RuntimeError):
            await retry_call(fn, policy=NO_DELAY, should_retry=lambda e: False)

        self.assertEqual(state["n"], 1)

    async def test_single_retry_sleeps_base_delay(self):
        sleeps = []

        async def fake_sleep(s):
            sleeps.append(s)

        async def fn():
            raise RuntimeError("down")

        with self.assertRaises(RuntimeError):
            await retry_call(
                fn,
                policy=RetryPolicy(retries=1, base_delay_seconds=1.0),
                should_retry=lambda e: True,
                sleep=fake_sleep,
            )
        self.assertEqual(sleeps, [1.0])

    def test_backoff_is_capped(self):
        policy = RetryPolicy(retries=5, base_delay_seconds=1.0, max_delay_seconds=3.0)
        self.assertEqual([_sleep_seconds(i, policy) for i in (1, 2, 3)], [1.0, 2.0, 3.0])


if __name__ == "__main__":
    unittest.main()
