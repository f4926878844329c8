import logging
from unittest import TestCase

from payout.logging_config import LOGGING_CONFIG, LogEventSink


class TestLogEventSink(TestCase):
    def test_renders_event_and_fields(self):
        sink = LogEventSink()
        with self.assertLogs("payout.engine", level="INFO") as cm:
            sink.emit("fee_estimate", lamports=5000)
            sink.emit("initialized")
        self.assertEqual(cm.output, ["INFO:payout.engine:fee_estimate lamports=5000", "INFO:payout.engine:initialized"])

    def test_level_is_respected(self):
        sink = LogEventSink(logging.getLogger("payout.test"))
        with self.assertLogs("payout.test", level="WARNING") as cm:
            sink.emit("confirmation_pending", level=logging.DEBUG, attempt=1)
            sink.emit("wallet_empty", level=logging.WARNING, network="devnet")
        self.assertEqual(cm.output, ["WARNING:payout.test:wallet_empty network=devnet"])

    def test_libraries_are_quieted(self):
        for name in ("httpx", "httpcore", "solana"):
            self.assertEqual(LOGGING_CONFIG["loggers"][name]["level"], "WARNING")
