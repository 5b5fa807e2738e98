"""End-to-end tests for the defence pipeline on the in-memory store."""

import pytest

from decision_engine.config import ShieldConfig
from decision_engine.decisions import Decision, ReasonCode, ShieldRequest
from escalation.services import EscalationState
from security_events.events import EventType, Severity

from .conftest import BROWSER_HEADERS, FailingStore

IP = "203.0.113.5"
SPAM_TEXT = "URGENTE!!! Gana dinero facil http://x.com http://y.com"
CLEAN_FIELDS = {
    "name": "Maria Lopez",
    "email": "maria@gmail.com",
    "problem_description": "Hola, necesito ayuda con la instalacion de mi equipo, gracias.",
}


def make_request(ip=IP, endpoint="/api/contact", fields=None, **headers):
    values = dict(BROWSER_HEADERS)
    values.update(headers)
    return ShieldRequest(
        ip=ip,
        endpoint=endpoint,
        method="POST" if fields is not None else "GET",
        submitted_fields=fields,
        **values,
    )


def events_of(store, event_type):
    return [e for e in store.events if e.event_type == event_type]


class TestRateLimiting:
    @pytest.mark.asyncio
    async def test_fourth_request_is_rejected(self, pipeline, store):
        for _ in range(3):
            decision = await pipeline.evaluate(make_request())
            assert decision.allowed is True

        decision = await pipeline.evaluate(make_request())

        assert decision.allowed is False
        assert decision.reason_code == ReasonCode.RATE_LIMIT_EXCEEDED
        assert decision.http_status == 429
        assert decision.retry_after_seconds > 0
        assert len(events_of(store, EventType.RATE_LIMIT_EXCEEDED)) == 1

    @pytest.mark.asyncio
    async def test_progressive_delay(self, pipeline, sleep):
        decisions = [await pipeline.evaluate(make_request()) for _ in range(3)]

        assert [d.delay_ms for d in decisions] == [0, 500, 1000]
        assert sleep.calls == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_rejection_is_not_delayed(self, make_pipeline, store, sleep):
        pipeline = make_pipeline(store, ShieldConfig(max_requests=1))

        await pipeline.evaluate(make_request())
        decision = await pipeline.evaluate(make_request())

        assert decision.reason_code == ReasonCode.RATE_LIMIT_EXCEEDED
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_global_limiter_spans_endpoints(self, make_pipeline, store):
        pipeline = make_pipeline(store, ShieldConfig(global_max_requests=2))

        await pipeline.evaluate(make_request(endpoint="/api/contact"))
        await pipeline.evaluate(make_request(endpoint="/api/quote"))
        decision = await pipeline.evaluate(make_request(endpoint="/api/other"))

        assert decision.reason_code == ReasonCode.RATE_LIMIT_EXCEEDED
        event = events_of(store, EventType.RATE_LIMIT_EXCEEDED)[0]
        assert event.request_data["limiter"] == "global"

    @pytest.mark.asyncio
    async def test_check_global(self, make_pipeline, store):
        pipeline = make_pipeline(store, ShieldConfig(global_max_requests=1))

        assert (await pipeline.check_global(make_request(endpoint="/"))).allowed is True
        decision = await pipeline.check_global(make_request(endpoint="/about"))

        assert decision.http_status == 429
        assert ("203.0.113.5", "/") not in store.rate_windows

    @pytest.mark.asyncio
    async def test_repeated_violations_escalate_to_block(self, make_pipeline, store):
        pipeline = make_pipeline(store, ShieldConfig(max_requests=1))

        decisions = [await pipeline.evaluate(make_request()) for _ in range(6)]

        assert [d.reason_code for d in decisions] == [ReasonCode.OK] + [ReasonCode.RATE_LIMIT_EXCEEDED] * 5
        assert store.reputations[IP].blocked_count == 1
        assert store.reputations[IP].permanent is False

        decision = await pipeline.evaluate(make_request())
        assert decision.reason_code == ReasonCode.IP_BLOCKED
        assert decision.http_status == 403


class TestWhitelist:
    @pytest.mark.asyncio
    async def test_whitelisted_ip_is_never_limited(self, make_pipeline, store, sleep):
        pipeline = make_pipeline(store, ShieldConfig(max_requests=1))

        decisions = [await pipeline.evaluate(make_request(ip="127.0.0.1", fields={"problem_description": SPAM_TEXT}))
                     for _ in range(20)]

        assert all(d.allowed for d in decisions)
        assert store.rate_windows == {}
        assert store.reputations == {}
        assert sleep.calls == []
        assert len(events_of(store, EventType.WHITELISTED_REQUEST)) == 20

    @pytest.mark.asyncio
    async def test_whitelisted_cidr(self, pipeline):
        decision = await pipeline.evaluate(make_request(ip="192.168.1.20", user_agent="curl/8.0"))

        assert decision.allowed is True
        assert decision.suspicion_analysis is None


class TestBlockedIp:
    @pytest.mark.asyncio
    async def test_blocked_ip_is_rejected(self, pipeline, store):
        await pipeline.reputation.block(IP, "manual", permanent=True)

        decision = await pipeline.evaluate(make_request())

        assert decision.reason_code == ReasonCode.IP_BLOCKED
        assert decision.http_status == 403
        event = events_of(store, EventType.BLOCKED_IP_ATTEMPT)[0]
        assert event.severity == Severity.ERROR
        assert "permanent" in event.details
        assert store.rate_windows == {}

    @pytest.mark.asyncio
    async def test_temporary_block_lapses(self, pipeline, clock):
        await pipeline.reputation.block(IP, "manual", duration_hours=24)
        assert (await pipeline.evaluate(make_request())).reason_code == ReasonCode.IP_BLOCKED

        clock.advance(hours=24, minutes=1)

        assert (await pipeline.evaluate(make_request())).allowed is True


class TestSpam:
    @pytest.mark.asyncio
    async def test_spam_submission_is_rejected(self, pipeline, store):
        fields = {"name": "", "email": "", "problem_description": SPAM_TEXT}

        decision = await pipeline.evaluate(make_request(fields=fields))

        assert decision.allowed is False
        assert decision.reason_code == ReasonCode.SPAM_DETECTED
        assert decision.http_status == 403
        assert decision.spam_analysis.is_spam is True
        assert decision.spam_analysis.score >= 50
        event = events_of(store, EventType.SPAM_DETECTED)[0]
        assert event.request_data["spam"]["score"] == decision.spam_analysis.score

    @pytest.mark.asyncio
    async def test_clean_submission_is_allowed(self, pipeline, store):
        decision = await pipeline.evaluate(make_request(fields=CLEAN_FIELDS))

        assert decision.allowed is True
        assert decision.spam_analysis.score == 0
        assert len(events_of(store, EventType.REQUEST_ALLOWED)) == 1

    @pytest.mark.asyncio
    async def test_content_field_aliases(self, pipeline):
        decision = await pipeline.evaluate(make_request(fields={"problemDescription": SPAM_TEXT}))

        assert decision.reason_code == ReasonCode.SPAM_DETECTED

    @pytest.mark.asyncio
    async def test_third_spam_submission_blocks_ip(self, pipeline, store, clock):
        fields = {"problem_description": SPAM_TEXT}

        for _ in range(3):
            assert (await pipeline.evaluate(make_request(fields=fields))).reason_code == ReasonCode.SPAM_DETECTED

        record = store.reputations[IP]
        assert record.permanent is False
        assert record.blocked_until is not None
        assert (await pipeline.evaluate(make_request(fields=CLEAN_FIELDS))).reason_code == ReasonCode.IP_BLOCKED

    @pytest.mark.asyncio
    async def test_requests_without_content_skip_spam(self, pipeline):
        decision = await pipeline.evaluate(make_request())

        assert decision.spam_analysis is None


class TestSuspicion:
    @pytest.mark.asyncio
    async def test_suspicious_request_is_allowed_and_recorded(self, pipeline, store):
        decision = await pipeline.evaluate(make_request(user_agent="curl/8.4.0", accept="", accept_language=""))

        assert decision.allowed is True
        assert decision.suspicion_analysis.is_suspicious is True
        assert len(events_of(store, EventType.SUSPICIOUS_ACTIVITY)) == 1
        assert await pipeline.escalation.status(IP) == EscalationState.WATCHED

    @pytest.mark.asyncio
    async def test_exit_node_lookup(self, make_pipeline, store):
        pipeline = make_pipeline(store, exit_node_lookup=lambda ip: ip == IP)

        decision = await pipeline.evaluate(make_request())

        assert "Anonymizing exit node detected" in decision.suspicion_analysis.reasons

    @pytest.mark.asyncio
    async def test_broken_exit_node_lookup_is_ignored(self, make_pipeline, store):
        def lookup(ip):
            raise RuntimeError("feed broken")

        pipeline = make_pipeline(store, exit_node_lookup=lookup)

        assert (await pipeline.evaluate(make_request())).allowed is True

    @pytest.mark.asyncio
    async def test_site_wide_traffic_counts_towards_frequency(self, pipeline):
        for _ in range(60):
            assert (await pipeline.check_global(make_request(endpoint="/gallery"))).allowed is True

        decision = await pipeline.evaluate(make_request(fields=CLEAN_FIELDS))

        assert decision.allowed is True
        assert "High request frequency: 61 requests/minute" in decision.suspicion_analysis.reasons

    @pytest.mark.asyncio
    async def test_whitelisted_traffic_is_not_counted(self, pipeline):
        for _ in range(60):
            await pipeline.check_global(make_request(ip="127.0.0.1", endpoint="/gallery"))

        assert pipeline.frequency.count("127.0.0.1") == 0


class TestFailOpen:
    @pytest.mark.asyncio
    async def test_store_outage_allows_request(self, make_pipeline, clock):
        pipeline = make_pipeline(FailingStore(clock=clock))

        decision = await pipeline.evaluate(make_request(fields=CLEAN_FIELDS))

        assert decision.allowed is True
        assert decision.reason_code == ReasonCode.OK
        assert any("get_reputation failed" in e for e in decision.errors)
        assert any("upsert_rate_window failed" in e for e in decision.errors)

    @pytest.mark.asyncio
    async def test_store_outage_still_rejects_spam(self, make_pipeline, clock):
        pipeline = make_pipeline(FailingStore(clock=clock))

        decision = await pipeline.evaluate(make_request(fields={"problem_description": SPAM_TEXT}))

        assert decision.reason_code == ReasonCode.SPAM_DETECTED


class TestDecision:
    def test_to_dict(self):
        decision = Decision.reject(429, ReasonCode.RATE_LIMIT_EXCEEDED, retry_after_seconds=30)

        assert decision.to_dict() == {
            "allowed": False,
            "http_status": 429,
            "reason_code": "RATE_LIMIT_EXCEEDED",
            "retry_after_seconds": 30,
        }

    def test_allow(self):
        assert Decision.allow().to_dict() == {"allowed": True, "http_status": 200, "reason_code": "OK"}
