"""
Tests for the token store and its sweeper.
"""
import threading
import time
from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler

from wkit.wtoken.store import TokenStore, TokenSweeper


def test_zero_or_negative_duration_is_never_readable():
    store = TokenStore()
    store.store_token("alice", "t0", 0)
    store.store_token("bob", "t1", timedelta(seconds=-5))

    assert store.get_token("alice") is None
    assert store.get_token("bob") is None
    assert len(store) == 0


def test_token_readable_before_expiry():
    store = TokenStore()
    store.store_token("alice", "secret", timedelta(minutes=5))

    assert store.get_token("alice") == "secret"
    assert store.get_token("nobody") is None


def test_overwrite_is_visible_immediately():
    store = TokenStore()
    store.store_token("alice", "old", 60)
    store.store_token("alice", "new", 60)
    assert store.get_token("alice") == "new"


def test_expired_token_removed_on_read():
    """Lazy expiry: reading an expired entry deletes it."""
    store = TokenStore()
    store.store_token("alice", "short", 0.05)
    assert len(store) == 1

    time.sleep(0.1)

    assert store.get_token("alice") is None
    assert len(store) == 0


def test_clean_expired_tokens():
    store = TokenStore()
    store.store_token("a", "1", 0)
    store.store_token("b", "2", -1)
    store.store_token("c", "3", 3600)

    assert store.clean_expired_tokens() == 2
    assert len(store) == 1
    assert store.get_token("c") == "3"


def test_delete_token():
    store = TokenStore()
    store.store_token("a", "1", 60)
    store.delete_token("a")
    store.delete_token("missing")
    assert store.get_token("a") is None


def test_concurrent_writes_and_reads():
    store = TokenStore()

    def worker(n):
        for i in range(200):
            store.store_token(f"user-{n}-{i}", str(i), 60)
            assert store.get_token(f"user-{n}-{i}") == str(i)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) == 8 * 200


def test_sweeper_schedules_interval_job():
    store = TokenStore()
    sweeper = TokenSweeper(store, interval_minutes=30)

    sweeper.start()
    try:
        assert sweeper.running
        assert sweeper.scheduler.running
        job = sweeper.scheduler.get_job(sweeper.job_id)
        assert job is not None
        assert job.trigger.interval == timedelta(minutes=30)
    finally:
        sweeper.shutdown()

    assert not sweeper.running
    assert sweeper.job_id is None
    assert not sweeper.scheduler.running


def test_sweeper_job_removes_expired_tokens():
    store = TokenStore()
    store.store_token("a", "1", 0)
    sweeper = TokenSweeper(store)

    sweeper.start()
    try:
        sweeper.scheduler.get_job(sweeper.job_id).func()
    finally:
        sweeper.shutdown()

    assert len(store) == 0


def test_sweepers_share_a_caller_scheduler():
    """Two sweepers on one scheduler keep separate jobs; the scheduler outlives them."""
    scheduler = BackgroundScheduler()
    first = TokenSweeper(TokenStore(), interval_minutes=5, scheduler=scheduler)
    second = TokenSweeper(TokenStore(), interval_minutes=10, scheduler=scheduler)

    first.start()
    second.start()
    try:
        assert first.job_id != second.job_id
        assert len(scheduler.get_jobs()) == 2

        first.shutdown()

        assert scheduler.running
        remaining = scheduler.get_jobs()
        assert [job.id for job in remaining] == [second.job_id]
        assert remaining[0].trigger.interval == timedelta(minutes=10)

        second.shutdown()
        assert scheduler.running
        assert scheduler.get_jobs() == []
    finally:
        scheduler.shutdown(wait=False)
