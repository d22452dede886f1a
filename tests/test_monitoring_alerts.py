"""Tests for the alert system."""

import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

from polymarket_orders.monitoring.alerts import (
    Alert,
    AlertManager,
    CallbackAlertSink,
    ConsoleAlertSink,
    WebhookAlertSink,
    interrupted_alert,
    stop_order_alert,
)
from polymarket_orders.orders import ConditionalOrder, OrderResult, OrderStatus, Side, TriggerDirection


def _order() -> ConditionalOrder:
    return ConditionalOrder(
        id="stop_1_abc",
        token_id="tok1",
        side=Side.SELL,
        trigger_price=Decimal("0.40"),
        amount=Decimal("10"),
        trigger_direction=TriggerDirection.BELOW,
        status=OrderStatus.IN_PROGRESS,
        created_at="2024-01-01T00:00:00+00:00",
    )


class TestAlertBuilders:
    def test_triggered_order_is_info(self) -> None:
        result = OrderResult(success=True, order_id="0xabc", executed_price=Decimal("0.38"))
        alert = stop_order_alert(_order(), result)
        assert alert.level == "info"
        assert alert.order_id == "stop_1_abc"
        assert alert.token_id == "tok1"
        assert "triggered" in alert.message
        assert "0xabc" in alert.message

    def test_failed_order_is_error(self) -> None:
        result = OrderResult(success=False, error="not enough balance", error_code="ExchangeRejected")
        alert = stop_order_alert(_order(), result)
        assert alert.level == "error"
        assert alert.message == "Stop order stop_1_abc failed: not enough balance"

    def test_interrupted_order_is_error(self) -> None:
        alert = interrupted_alert(_order())
        assert alert.level == "error"
        assert "interrupted" in alert.message
        assert alert.to_dict()["order_id"] == "stop_1_abc"


class TestConsoleAlertSink:
    def test_error_logs_warning(self) -> None:
        sink = ConsoleAlertSink()
        with patch("polymarket_orders.monitoring.alerts.logger") as mock_logger:
            sink.send(Alert("stop order failed", "error", "stop_1"))
            mock_logger.warning.assert_called_once()
            assert "stop order failed" in mock_logger.warning.call_args[0][1]
            mock_logger.info.assert_not_called()

    def test_info_logs_info(self) -> None:
        sink = ConsoleAlertSink()
        with patch("polymarket_orders.monitoring.alerts.logger") as mock_logger:
            sink.send(Alert("stop order triggered"))
            mock_logger.info.assert_called_once()
            mock_logger.warning.assert_not_called()


class TestCallbackAlertSink:
    def test_invokes_callback(self) -> None:
        received: list[Alert] = []
        alert = Alert("hello", order_id="stop_1")
        CallbackAlertSink(received.append).send(alert)
        assert received == [alert]


class TestWebhookAlertSink:
    def test_posts_json_payload(self) -> None:
        sink = WebhookAlertSink("https://hooks.example.com/test")
        with patch("urllib.request.urlopen") as mock_urlopen:
            mock_urlopen.return_value.__enter__ = MagicMock()
            mock_urlopen.return_value.__exit__ = MagicMock()
            sink.send(Alert("webhook test", "error", "stop_1", "tok1"))
            mock_urlopen.assert_called_once()
            req = mock_urlopen.call_args[0][0]
            assert req.full_url == "https://hooks.example.com/test"
            assert json.loads(req.data) == {
                "text": "webhook test",
                "level": "error",
                "order_id": "stop_1",
                "token_id": "tok1",
                "source": "polymarket-orders",
            }

    def test_handles_failure_gracefully(self) -> None:
        sink = WebhookAlertSink("https://hooks.example.com/fail")
        with patch("urllib.request.urlopen", side_effect=OSError("network error")):
            sink.send(Alert("this will fail"))


class TestAlertManager:
    def test_dispatches_to_all_sinks(self) -> None:
        manager = AlertManager()
        sink_a = MagicMock()
        sink_b = MagicMock()
        manager.register(sink_a)
        manager.register(sink_b)
        alert = Alert("alert message")
        manager.alert(alert)
        sink_a.send.assert_called_once_with(alert)
        sink_b.send.assert_called_once_with(alert)

    def test_sink_count(self) -> None:
        manager = AlertManager()
        assert manager.sink_count == 0
        manager.register(ConsoleAlertSink())
        assert manager.sink_count == 1

    def test_continues_on_sink_failure(self) -> None:
        manager = AlertManager()
        failing_sink = MagicMock()
        failing_sink.send.side_effect = RuntimeError("broken")
        good_sink = MagicMock()
        manager.register(failing_sink)
        manager.register(good_sink)
        alert = Alert("partial failure")
        manager.alert(alert)
        good_sink.send.assert_called_once_with(alert)
