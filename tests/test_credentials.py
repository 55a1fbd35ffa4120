"""Tests for credential parsing and the rotating credential pool."""

import threading

import pytest

from storycast.credentials import CredentialPool, fingerprint, parse_credentials


# --- parse_credentials ---

def test_parse_comma_and_newline_separated():
    raw = "key-alpha-0001, key-bravo-0002\nkey-charlie-03\r\n"
    assert parse_credentials(raw) == ["key-alpha-0001", "key-bravo-0002", "key-charlie-03"]


def test_parse_strips_quotes_and_drops_short_tokens():
    raw = "\"key-alpha-0001\", 'key-bravo-0002', short"
    assert parse_credentials(raw) == ["key-alpha-0001", "key-bravo-0002"]


def test_parse_deduplicates():
    assert parse_credentials("key-alpha-0001,key-alpha-0001") == ["key-alpha-0001"]


@pytest.mark.parametrize("raw", [None, "", "   ", "API_KEY", "undefined,key-alpha-0001"])
def test_parse_invalid_config_uses_fallback(raw):
    assert parse_credentials(raw, fallback=("fallback-token-1",)) == ["fallback-token-1"]


def test_parse_all_short_uses_fallback():
    assert parse_credentials("a,b,c", fallback=("fallback-token-1",)) == ["fallback-token-1"]


def test_parse_default_fallback_is_empty():
    assert parse_credentials(None) == []


def test_fingerprint_hides_token():
    assert fingerprint("key-alpha-0001") == "...0001"


# --- reserve ---

def test_reserve_increments_counter(tokens, clock):
    pool = CredentialPool(tokens, clock=clock)
    cred = pool.reserve()
    assert cred.token == "key-alpha-0001"
    assert cred.request_count == 1


def test_reserve_sticks_until_budget_spent_then_rotates(tokens, clock):
    pool = CredentialPool(tokens, max_requests=2, clock=clock)
    got = [pool.reserve().token for _ in range(5)]
    assert got == [
        "key-alpha-0001", "key-alpha-0001",
        "key-bravo-0002", "key-bravo-0002",
        "key-charlie-03",
    ]


def test_reserve_never_exceeds_budget_until_window_resets(clock):
    pool = CredentialPool(["key-alpha-0001"], max_requests=3, window_seconds=60, clock=clock)
    for _ in range(3):
        assert pool.reserve() is not None
    clock.advance(59)
    assert pool.reserve() is None
    clock.advance(1)
    cred = pool.reserve()
    assert cred is not None
    assert cred.request_count == 1


def test_reset_window_clears_counters(clock):
    pool = CredentialPool(["key-alpha-0001"], max_requests=1, clock=clock)
    pool.reserve()
    assert pool.reserve() is None
    pool.reset_window()
    assert pool.reserve() is not None


def test_reserve_empty_pool_returns_none(clock):
    pool = CredentialPool([], clock=clock)
    assert len(pool) == 0
    assert pool.reserve() is None
    assert pool.all_suspended()


# --- suspend ---

def test_suspended_credential_skipped_until_deadline(clock):
    pool = CredentialPool(["key-alpha-0001"], max_requests=100, clock=clock)
    cred = pool.reserve()
    pool.suspend(cred, duration_ms=5000)
    assert pool.reserve() is None
    clock.advance(4.5)
    assert pool.reserve() is None
    clock.advance(0.5)
    assert pool.reserve() is cred


def test_suspend_advances_to_next_usable(tokens, clock):
    pool = CredentialPool(tokens, clock=clock)
    first = pool.reserve()
    pool.suspend(first)
    assert pool.reserve().token == "key-bravo-0002"


def test_suspend_skips_other_suspended(tokens, clock):
    pool = CredentialPool(tokens, clock=clock)
    pool.suspend("key-bravo-0002")
    pool.suspend("key-alpha-0001")
    assert pool.reserve().token == "key-charlie-03"


def test_suspension_survives_window_reset(clock):
    pool = CredentialPool(["key-alpha-0001"], window_seconds=60, clock=clock)
    pool.suspend("key-alpha-0001", duration_ms=120000)
    clock.advance(61)
    pool.reset_window()
    assert pool.reserve() is None
    clock.advance(60)
    assert pool.reserve() is not None


def test_suspend_unknown_credential_raises(tokens, clock):
    pool = CredentialPool(tokens, clock=clock)
    with pytest.raises(KeyError):
        pool.suspend("key-unknown-999")


def test_all_suspended(tokens, clock):
    pool = CredentialPool(tokens, clock=clock)
    assert not pool.all_suspended()
    for token in tokens:
        pool.suspend(token)
    assert pool.all_suspended()
    clock.advance(60)
    assert not pool.all_suspended()


def test_states_snapshot_fingerprints_tokens(tokens, clock):
    pool = CredentialPool(tokens, clock=clock)
    pool.reserve()
    pool.suspend("key-bravo-0002", duration_ms=30000)
    clock.advance(10.5)
    states = pool.states()
    assert [s["key"] for s in states] == ["...0001", "...0002", "...e-03"]
    assert states[0] == {"key": "...0001", "suspended": False, "remaining_cooldown": 0, "requests": 1}
    assert states[1]["suspended"] is True
    assert states[1]["remaining_cooldown"] == 20
    assert all("key-" not in s["key"] for s in states)


def test_concurrent_reserves_respect_budget(clock):
    pool = CredentialPool(["key-alpha-0001", "key-bravo-0002"], max_requests=50, clock=clock)
    results = []

    def worker():
        for _ in range(40):
            cred = pool.reserve()
            if cred is not None:
                results.append(cred.token)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 100
    assert results.count("key-alpha-0001") == 50
    assert results.count("key-bravo-0002") == 50
