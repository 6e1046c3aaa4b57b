"""
API 路由测试（TestClient + 内存存储，不启动调度器）
"""

import asyncio
import contextlib
import threading
import time
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from civic_pulse.alerts import evaluate_alert
from civic_pulse.alerts.pubsub import AlertEvent, Subscription
from civic_pulse.api.main import create_app
from civic_pulse.api.routes.alerts import _log_pump_result, _pump_events
from civic_pulse.classifier import ClassificationResult, ContentItem, ThreatLevel

from conftest import mock_provider, ai_payload


VIOLENT_TEXT = "They will attack and destroy everything, riot in the streets!"
POSITIVE_TEXT = "Wonderful news, so proud of our community today!"


@pytest.fixture
def client(rule_service):
    app = create_app(service=rule_service, start_scheduler_on_startup=False)
    with TestClient(app) as test_client:
        yield test_client


def _raise_alert(client, text=VIOLENT_TEXT):
    data = client.post("/api/sentiment/analyze", json={"text": text, "platform": "twitter"}).json()["data"]
    return data["alert"]["id"]


def _sample_alert():
    result = ClassificationResult(score=-0.9, threat_level=ThreatLevel.CRITICAL)
    return evaluate_alert(result, ContentItem(text=VIOLENT_TEXT))


def _wait_until(condition, attempts=50, interval=0.05):
    for _ in range(attempts):
        if condition():
            return True
        time.sleep(interval)
    return condition()


class TestInfo:

    def test_root(self, client):
        body = client.get("/").json()
        assert body["success"] is True
        assert body["data"]["message"] == "CivicPulse API"

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["data"]["status"] == "healthy"
        assert body["data"]["ai_enabled"] is False
        assert body["data"]["scanner_state"] == "idle"


class TestAnalyze:
    """测试单条分类"""

    def test_violent_text(self, client):
        response = client.post("/api/sentiment/analyze", json={"text": VIOLENT_TEXT, "platform": "twitter"})
        body = response.json()

        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"]["tier"] == "rule"
        assert body["data"]["result"]["threat_level"] == "critical"
        assert body["data"]["alert"]["severity"] == "critical"
        assert body["data"]["alert"]["auto_generated"] is True
        assert "request_id" in body["meta"]

    def test_positive_text(self, client):
        body = client.post("/api/sentiment/analyze", json={"text": POSITIVE_TEXT}).json()

        result = body["data"]["result"]
        assert result["polarity"] == "positive"
        assert result["threat_level"] == "none"
        assert body["data"]["alert"] is None

    def test_unknown_platform_accepted(self, client):
        body = client.post("/api/sentiment/analyze", json={"text": "good", "platform": "myspace"}).json()
        assert body["success"] is True

    def test_empty_text_rejected(self, client):
        response = client.post("/api/sentiment/analyze", json={"text": ""})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_ai_tier_reported(self, config, store):
        from civic_pulse.service import build_service
        service = build_service(config=config, store=store, provider=mock_provider(ai_payload()))
        app = create_app(service=service, start_scheduler_on_startup=False)

        with TestClient(app) as client:
            body = client.post("/api/sentiment/analyze", json={"text": "Great progress"}).json()

        assert body["data"]["tier"] == "ai"
        assert body["data"]["result"]["region"] == "Centre"


class TestBulk:
    """测试批量分类"""

    def test_results_in_input_order(self, client):
        items = [{"text": POSITIVE_TEXT}, {"text": VIOLENT_TEXT}, {"text": "good roads"}]
        body = client.post("/api/sentiment/bulk", json={"items": items}).json()

        results = body["data"]["results"]
        assert [r["index"] for r in results] == [0, 1, 2]
        assert all(r["success"] for r in results)
        assert results[1]["result"]["threat_level"] == "critical"
        assert body["meta"]["succeeded"] == 3

    def test_empty_batch_rejected(self, client):
        assert client.post("/api/sentiment/bulk", json={"items": []}).status_code == 422


class TestStats:

    def test_stats(self, client):
        client.post("/api/sentiment/analyze", json={"text": "Vote today #CMR"})
        client.post("/api/sentiment/analyze", json={"text": VIOLENT_TEXT})

        data = client.get("/api/sentiment/stats").json()["data"]
        assert data["total_classified"] == 2
        assert data["active_alerts"] == 1
        assert data["trending_topics"] == 2

    def test_regions(self, client):
        client.post("/api/sentiment/analyze", json={"text": "Power cut again in Douala"})
        client.post("/api/sentiment/analyze", json={"text": "Wonderful market day in Douala"})
        client.post("/api/sentiment/analyze", json={"text": "Riot in Bamenda, they will attack"})
        client.post("/api/sentiment/analyze", json={"text": "No place named here"})

        body = client.get("/api/sentiment/regions", params={"hours": 24}).json()

        assert body["success"] is True
        assert body["meta"]["window_hours"] == 24
        regions = {r["region"]: r for r in body["data"]["regions"]}
        assert set(regions) == {"Littoral", "Northwest"}
        assert regions["Littoral"]["content_volume"] == 2
        assert regions["Northwest"]["threat_level"] == "high"
        assert body["data"]["regions"][0]["region"] == "Littoral"

    def test_regions_window_validated(self, client):
        assert client.get("/api/sentiment/regions", params={"hours": 0}).status_code == 422

    def test_regions_store_down(self, client, rule_service):
        with patch.object(rule_service.gateway.store, "fetch_regional_since", side_effect=Exception("down")):
            body = client.get("/api/sentiment/regions").json()
        assert body["success"] is False
        assert body["error"]["code"] == "DATABASE_UNAVAILABLE"


class TestAlerts:
    """测试告警路由"""

    def test_active_alerts(self, client):
        alert_id = _raise_alert(client)
        body = client.get("/api/alerts/active").json()
        assert [a["id"] for a in body["data"]["alerts"]] == [alert_id]

    def test_acknowledge_unknown_is_404(self, client):
        response = client.post("/api/alerts/missing/acknowledge", json={"actor_id": "op-1"})
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    def test_acknowledge_twice(self, client):
        alert_id = _raise_alert(client)

        first = client.post(f"/api/alerts/{alert_id}/acknowledge", json={"actor_id": "op-1"}).json()
        second = client.post(f"/api/alerts/{alert_id}/acknowledge", json={"actor_id": "op-2"}).json()

        assert first["data"]["already_acknowledged"] is False
        assert second["success"] is True
        assert second["data"]["already_acknowledged"] is True
        assert second["data"]["alert"]["acknowledged_by"] == "op-1"
        assert client.get("/api/alerts/active").json()["data"]["alerts"] == []

    def test_dismiss_hides_for_session_only(self, client):
        alert_id = _raise_alert(client)

        response = client.post(f"/api/alerts/{alert_id}/dismiss", json={"session_id": "s1"})
        assert response.json()["data"]["dismissed"] is True

        assert client.get("/api/alerts/active", params={"session_id": "s1"}).json()["data"]["total"] == 0
        assert client.get("/api/alerts/active", params={"session_id": "s2"}).json()["data"]["total"] == 1

    def test_dismiss_unknown_is_404(self, client):
        response = client.post("/api/alerts/missing/dismiss", json={"session_id": "s1"})
        assert response.status_code == 404


class TestFeed:
    """测试 WebSocket 推送"""

    def test_receives_raised_event(self, client, rule_service):
        with client.websocket_connect("/api/alerts/feed?session_id=ops-1&role=operator") as ws:
            rule_service.orchestrator.process(ContentItem(text=VIOLENT_TEXT))
            message = ws.receive_json()

        assert message["event"] == "raised"
        assert message["foreground"] is True
        assert message["alert"]["severity"] == "critical"

    def test_receives_acknowledged_event(self, client, rule_service):
        alert_id = _raise_alert(client)
        with client.websocket_connect("/api/alerts/feed?session_id=an-1&role=analyst") as ws:
            rule_service.manager.acknowledge(alert_id, "op-1")
            message = ws.receive_json()

        assert message["event"] == "acknowledged"
        assert message["alert"]["acknowledged_by"] == "op-1"

    def test_unauthorized_role_rejected(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/api/alerts/feed?session_id=x&role=citizen") as ws:
                ws.receive_json()
        assert exc_info.value.code == 1008

    def test_disconnect_unsubscribes(self, client, rule_service):
        with client.websocket_connect("/api/alerts/feed?session_id=s1&role=admin"):
            assert rule_service.broker.subscriber_count() == 1
        # 服务端在收到断开后才取消订阅
        assert _wait_until(lambda: rule_service.broker.subscriber_count() == 0)

    def test_one_connection_closing_keeps_the_other(self, client, rule_service):
        """同一会话的两个连接，关闭其中一个后另一个仍能收到推送"""
        url = "/api/alerts/feed?session_id=ops-1&role=operator"
        with client.websocket_connect(url) as remaining:
            with client.websocket_connect(url):
                assert rule_service.broker.subscriber_count() == 2
            assert _wait_until(lambda: rule_service.broker.subscriber_count() == 1)

            rule_service.orchestrator.process(ContentItem(text=VIOLENT_TEXT))
            message = remaining.receive_json()

        assert message["event"] == "raised"

class TestPump:
    """测试推送协程"""

    def test_wakes_on_delivery_without_executor(self):
        """发布者线程投递后协程被唤醒，等待期间不使用线程池"""
        subscription = Subscription("s1", "admin")
        websocket = Mock()
        websocket.send_json = AsyncMock()

        async def run():
            loop = asyncio.get_running_loop()
            loop.run_in_executor = Mock(side_effect=AssertionError("executor used"))
            pump = asyncio.create_task(_pump_events(websocket, subscription))
            await asyncio.sleep(0.05)

            publisher = threading.Thread(
                target=subscription.deliver,
                args=(AlertEvent("raised", _sample_alert()),)
            )
            publisher.start()
            publisher.join()

            for _ in range(100):
                if websocket.send_json.await_count:
                    break
                await asyncio.sleep(0.01)
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump

        asyncio.run(run())

        websocket.send_json.assert_awaited_once()
        assert websocket.send_json.await_args[0][0]["event"] == "raised"
        assert subscription.pending() == 0

    def test_notifier_cleared_after_cancel(self):
        subscription = Subscription("s1", "admin")
        websocket = Mock()
        websocket.send_json = AsyncMock()

        async def run():
            pump = asyncio.create_task(_pump_events(websocket, subscription))
            await asyncio.sleep(0.01)
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump

        asyncio.run(run())

        subscription.deliver(AlertEvent("raised", _sample_alert()))
        assert subscription.pending() == 1


class TestPumpResult:
    """测试推送任务结束时的异常记录"""

    def test_failure_is_logged(self):
        task = Mock()
        task.cancelled.return_value = False
        task.exception.return_value = RuntimeError("socket closed")

        with patch("civic_pulse.api.routes.alerts.logging") as mock_logging:
            _log_pump_result(task)

        mock_logging.error.assert_called_once()
        assert "socket closed" in mock_logging.error.call_args[0][0]

    def test_cancelled_is_silent(self):
        task = Mock()
        task.cancelled.return_value = True

        with patch("civic_pulse.api.routes.alerts.logging") as mock_logging:
            _log_pump_result(task)

        task.exception.assert_not_called()
        mock_logging.error.assert_not_called()
