from libflix.domain.models import ResolutionFailure, ResolutionSuccess
from libflix.services.result_cache import ResultCache

from conftest import FakeClock


def _success(item_id="1", url="https://covers.example/a.jpg", ts=0.0):
    return ResolutionSuccess(item_id=item_id, url=url, width=400, height=600, resolved_at=ts)


def _failure(item_id="1"):
    return ResolutionFailure(item_id=item_id, title="T", author="A")


def test_success_and_failure_have_separate_ttls():
    clock = FakeClock()
    cache = ResultCache(success_ttl=100, failure_ttl=10, clock=clock)
    cache.put("ok", _success("ok"))
    cache.put("bad", _failure("bad"))

    clock.advance(11)
    assert cache.get("ok") is not None
    assert cache.get("bad") is None

    clock.advance(90)
    assert cache.get("ok") is None


def test_older_write_does_not_replace_newer():
    clock = FakeClock(start=500)
    cache = ResultCache(clock=clock)
    newer = _success(url="https://covers.example/new.jpg")
    assert cache.put("1", newer, timestamp=500)
    assert not cache.put("1", _failure(), timestamp=400)
    assert cache.get("1") is newer


def test_failed_urls_expire_with_failure_ttl():
    clock = FakeClock()
    cache = ResultCache(success_ttl=100, failure_ttl=10, clock=clock)
    cache.mark_failed("https://x.example/a.jpg")
    assert cache.is_failed("https://x.example/a.jpg")
    clock.advance(11)
    assert not cache.is_failed("https://x.example/a.jpg")


def test_clear_failed_single_and_all():
    cache = ResultCache(clock=FakeClock())
    cache.mark_failed("a")
    cache.mark_failed("b")
    assert cache.clear_failed("a") == 1
    assert cache.clear_failed("missing") == 0
    assert cache.clear_failed() == 1
    assert not cache.is_failed("b")


def test_sweep_removes_expired_entries():
    clock = FakeClock()
    cache = ResultCache(success_ttl=100, failure_ttl=10, clock=clock)
    cache.put("ok", _success("ok"))
    cache.put("bad", _failure("bad"))
    cache.mark_failed("u")
    clock.advance(50)
    assert cache.sweep() == 2
    assert cache.stats() == {'cached': 1, 'failures': 0, 'failed_urls': 0}
    assert cache.sweep(max_age=10) == 1
    assert cache.stats()['cached'] == 0


def test_sweep_max_age_applies_to_failures_and_failed_urls():
    clock = FakeClock()
    cache = ResultCache(success_ttl=1800, failure_ttl=600, clock=clock)
    cache.put("bad", _failure("bad"))
    cache.mark_failed("https://x.example/a.jpg")
    clock.advance(100)

    assert cache.sweep() == 0
    assert cache.sweep(max_age=10) == 2
    assert cache.get("bad") is None
    assert not cache.is_failed("https://x.example/a.jpg")


def test_clear_drops_results_and_failed_urls():
    cache = ResultCache(clock=FakeClock())
    cache.put("1", _success())
    cache.put("2", _failure("2"))
    cache.mark_failed("u")
    cache.clear()
    assert cache.stats() == {'cached': 0, 'failures': 0, 'failed_urls': 0}
