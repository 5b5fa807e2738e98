"""Tests for request metadata scoring, frequency tracking and the exit node feed."""

import pytest
import redis
import requests

from suspicion.feeds import CACHE_KEY, ExitNodeFeed, parse_feed
from suspicion.services import RequestFrequencyTracker, SuspicionScorer, referer_host

from .conftest import BROWSER_HEADERS, FakeMonotonic

UA = BROWSER_HEADERS["user_agent"]
ACCEPT = BROWSER_HEADERS["accept"]
LANG = BROWSER_HEADERS["accept_language"]


@pytest.fixture
def scorer():
    return SuspicionScorer()


class TestSuspicionScorer:
    def test_browser_request_is_clean(self, scorer):
        result = scorer.analyze(UA, "https://www.google.com/", ACCEPT, LANG)

        assert result.score == 0
        assert result.is_suspicious is False

    def test_command_line_client(self, scorer):
        result = scorer.analyze("curl/8.4.0", "", "", "")

        assert result.score == 50
        assert result.is_suspicious is True
        assert result.reasons[0] == "Bot-like user agent: curl"

    def test_bot_patterns_score_once(self, scorer):
        result = scorer.analyze("python-requests/2.31 scrapy bot", "", ACCEPT, LANG)

        assert result.score == 30

    def test_missing_user_agent(self, scorer):
        result = scorer.analyze("", "", ACCEPT, LANG)

        assert result.score == 20
        assert result.reasons == ["Missing or very short user agent"]

    @pytest.mark.parametrize(
        "referer",
        ["http://promo.tk/landing", "https://bit.ly/abc", "http://localhost:3000/form", "tinyurl.com/xyz"],
    )
    def test_low_trust_referer(self, scorer, referer):
        result = scorer.analyze(UA, referer, ACCEPT, LANG)

        assert result.score == 15

    def test_referer_path_is_not_matched(self, scorer):
        result = scorer.analyze(UA, "https://www.example.org/page.tk", ACCEPT, LANG)

        assert result.score == 0

    def test_exit_node(self, scorer):
        result = scorer.analyze(UA, "", ACCEPT, LANG, is_known_exit_node=True)

        assert result.score == 25
        assert "Anonymizing exit node detected" in result.reasons

    def test_high_frequency(self, scorer):
        assert scorer.analyze(UA, "", ACCEPT, LANG, recent_request_count=50).score == 0
        assert scorer.analyze(UA, "", ACCEPT, LANG, recent_request_count=51).score == 20

    def test_threshold(self):
        scorer = SuspicionScorer(suspicion_threshold=20)

        assert scorer.analyze(UA, "", ACCEPT, "").is_suspicious is False
        assert scorer.analyze(UA, "", "", "").is_suspicious is True

    def test_referer_host(self):
        assert referer_host("https://Bit.ly/abc?x=1") == "bit.ly"
        assert referer_host("tinyurl.com/xyz") == "tinyurl.com/xyz"


class TestRequestFrequencyTracker:
    def test_trailing_window(self):
        clock = FakeMonotonic()
        tracker = RequestFrequencyTracker(window_seconds=60, clock=clock)

        for _ in range(3):
            tracker.hit("203.0.113.5")
            clock.advance(20)
        # first hit is now exactly 60 s old
        assert tracker.count("203.0.113.5") == 2
        assert tracker.hit("203.0.113.5") == 3
        assert tracker.count("198.51.100.1") == 0

    def test_sweep_drops_idle_ips(self):
        clock = FakeMonotonic()
        tracker = RequestFrequencyTracker(window_seconds=60, clock=clock)
        tracker.hit("203.0.113.5")
        clock.advance(30)
        tracker.hit("198.51.100.1")
        clock.advance(45)

        assert tracker.sweep() == 1
        assert len(tracker) == 1
        assert tracker.count("198.51.100.1") == 1


class FakeResponse:
    def __init__(self, text, status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeRedis:
    def __init__(self, fail=False):
        self.data = {}
        self.fail = fail

    def setex(self, key, ttl, value):
        if self.fail:
            raise redis.ConnectionError("connection refused")
        self.data[key] = value.encode("utf-8")

    def get(self, key):
        if self.fail:
            raise redis.ConnectionError("connection refused")
        return self.data.get(key)


FEED_TEXT = "# tor exit list\n185.220.101.1\n185.220.101.2\n\n"


class TestExitNodeFeed:
    def test_parse_feed(self):
        assert parse_feed(FEED_TEXT) == {"185.220.101.1", "185.220.101.2"}

    def test_refresh_and_lookup(self, monkeypatch):
        monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse(FEED_TEXT))
        feed = ExitNodeFeed(url="https://feed.example/list")

        assert feed.refresh() == 2
        assert feed.contains("185.220.101.1")
        assert not feed.contains("203.0.113.5")
        assert not feed.contains("")

    def test_refresh_failure_keeps_previous_list(self, monkeypatch):
        monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse(FEED_TEXT))
        feed = ExitNodeFeed()
        feed.refresh()

        def unreachable(url, timeout):
            raise requests.ConnectionError("no route to host")

        monkeypatch.setattr(requests, "get", unreachable)

        assert feed.refresh() == 0
        assert feed.contains("185.220.101.2")

    def test_http_error_is_a_failed_refresh(self, monkeypatch):
        monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse("", status_code=503))

        assert ExitNodeFeed().refresh() == 0

    def test_redis_shares_list_between_processes(self, monkeypatch):
        monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse(FEED_TEXT))
        shared = FakeRedis()
        writer = ExitNodeFeed(redis_client=shared)
        reader = ExitNodeFeed(redis_client=shared)

        writer.refresh()

        assert CACHE_KEY in shared.data
        assert reader.contains("185.220.101.1")

    def test_stale_copy_is_reloaded_from_redis(self):
        clock = FakeMonotonic()
        shared = FakeRedis()
        feed = ExitNodeFeed(ttl=60, redis_client=shared, clock=clock)

        assert not feed.contains("185.220.101.1")
        shared.data[CACHE_KEY] = b"185.220.101.1"
        assert not feed.contains("185.220.101.1")

        clock.advance(61)
        assert feed.contains("185.220.101.1")

    def test_redis_down_falls_back_to_memory(self, monkeypatch):
        monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse(FEED_TEXT))
        feed = ExitNodeFeed(ttl=0, redis_client=FakeRedis(fail=True))

        assert feed.refresh() == 2
        assert feed.contains("185.220.101.1")
