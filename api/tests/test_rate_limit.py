from survey_insights.services.rate_limit import SlidingWindowLimiter


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limit_is_enforced_per_key_within_window():
    clock = _Clock()
    limiter = SlidingWindowLimiter(clock=clock)
    results = [limiter.hit("login:1.2.3.4", 3, 60) for _ in range(3)]
    assert [r.remaining for r in results] == [2, 1, 0]
    assert all(r.allowed for r in results)

    blocked = limiter.hit("login:1.2.3.4", 3, 60)
    assert not blocked.allowed
    assert blocked.retry_after == 61
    assert limiter.hit("login:5.6.7.8", 3, 60).allowed


def test_old_hits_expire_after_window():
    clock = _Clock()
    limiter = SlidingWindowLimiter(clock=clock)
    limiter.hit("k", 1, 60)
    clock.now += 30
    assert limiter.hit("k", 1, 60).retry_after == 31
    clock.now += 30
    assert limiter.hit("k", 1, 60).allowed


def test_reset_clears_all_keys():
    limiter = SlidingWindowLimiter(clock=_Clock())
    limiter.hit("k", 1, 60)
    limiter.reset()
    assert limiter.hit("k", 1, 60).allowed
