"""Test action input handling and output writing."""

from __future__ import annotations

import io
import os
import tempfile
from pathlib import Path
from unittest import TestCase
from unittest.mock import AsyncMock, patch

from solders.keypair import Keypair

from payout import cli
from payout.errors import ConfigurationError
from payout.models import PayoutOutcome

RECIPIENT = str(Keypair().pubkey())


def action_env(**extra) -> dict[str, str]:
    env = {
        "SENDER_WALLET_SECRET": "secret",
        "INPUT_RECIPIENT-WALLET-ADDRESS": RECIPIENT,
        "INPUT_AMOUNT": "0.25",
        "INPUT_TOKEN": "SOL",
    }
    env.update(extra)
    return env


class TestReadInputs(TestCase):
    def test_action_inputs_with_defaults(self):
        inputs = cli.read_inputs(cli.parse_args([]), action_env())
        self.assertEqual(inputs["recipient"], RECIPIENT)
        self.assertEqual(inputs["amount"], "0.25")
        self.assertEqual(inputs["token"], "SOL")
        self.assertEqual(inputs["network"], "mainnet-beta")
        self.assertEqual(inputs["timeout_ms"], 300_000)

    def test_flags_win_over_inputs(self):
        args = cli.parse_args(["-a", "3", "-n", "devnet", "--timeout", "60000"])
        inputs = cli.read_inputs(args, action_env(INPUT_NETWORK="testnet"))
        self.assertEqual(inputs["amount"], "3")
        self.assertEqual(inputs["network"], "devnet")
        self.assertEqual(inputs["timeout_ms"], 60_000)

    def test_missing_secret(self):
        env = action_env()
        del env["SENDER_WALLET_SECRET"]
        with self.assertRaisesRegex(ConfigurationError, "SENDER_WALLET_SECRET is not set"):
            cli.read_inputs(cli.parse_args([]), env)

    def test_missing_required_input(self):
        env = action_env()
        del env["INPUT_AMOUNT"]
        with self.assertRaisesRegex(ConfigurationError, "Input required and not supplied: amount"):
            cli.read_inputs(cli.parse_args([]), env)

    def test_bad_timeout(self):
        with self.assertRaisesRegex(ConfigurationError, "whole number of milliseconds"):
            cli.read_inputs(cli.parse_args([]), action_env(INPUT_TIMEOUT="soon"))


class TestWriteOutputs(TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.output_file = Path(tmp.name) / "output"
        self.output_file.touch()
        self.env = {"GITHUB_OUTPUT": str(self.output_file)}

    def test_success(self):
        out = io.StringIO()
        cli.write_outputs(PayoutOutcome.succeeded("5ig"), self.env, out)
        self.assertEqual(self.output_file.read_text(), "success=true\nerror=\ntransaction=5ig\n")
        self.assertIn("transaction=5ig", out.getvalue())

    def test_multiline_error_uses_a_delimiter(self):
        out = io.StringIO()
        outcome = PayoutOutcome.failed("Transaction failed to send: boom\nTransaction logs:\nProgram log: x")
        cli.write_outputs(outcome, {**self.env, "GITHUB_ACTIONS": "true"}, out)

        lines = self.output_file.read_text().splitlines()
        self.assertEqual(lines[0], "success=false")
        key, delimiter = lines[1].split("<<")
        self.assertEqual(key, "error")
        self.assertTrue(delimiter.startswith("ghadelimiter_"))
        self.assertEqual(lines[2:5], outcome.error.splitlines())
        self.assertEqual(lines[5], delimiter)
        self.assertEqual(lines[6], "transaction=")
        self.assertIn("::error::Transaction failed to send: boom%0ATransaction logs:", out.getvalue())

    def test_no_output_file(self):
        out = io.StringIO()
        cli.write_outputs(PayoutOutcome.failed("nope"), {}, out)
        self.assertEqual(out.getvalue(), "success=false\nerror=nope\ntransaction=\n")


@patch("payout.cli.load_dotenv")
@patch("payout.cli.setup_logging")
class TestMain(TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.output_file = Path(tmp.name) / "output"
        self.secret = str(Keypair())

    def env(self, **extra):
        return action_env(SENDER_WALLET_SECRET=self.secret, GITHUB_OUTPUT=str(self.output_file),
                          INPUT_NETWORK="devnet", **extra)

    def test_success_exits_zero(self, *_):
        run_payout = AsyncMock(return_value=PayoutOutcome.succeeded("5ig"))
        with patch.dict(os.environ, self.env(), clear=True), patch("payout.cli.run_payout", run_payout):
            self.assertEqual(cli.main(["--skip-probe"]), 0)

        request, network = run_payout.await_args.args
        self.assertEqual(request.recipient, RECIPIENT)
        self.assertEqual(network.name, "devnet")
        self.assertIn("success=true", self.output_file.read_text())

    def test_configuration_error_exits_one(self, *_):
        run_payout = AsyncMock()
        with patch.dict(os.environ, self.env(INPUT_AMOUNT="-4"), clear=True), \
                patch("payout.cli.run_payout", run_payout):
            self.assertEqual(cli.main(["--skip-probe"]), 1)

        run_payout.assert_not_awaited()
        written = self.output_file.read_text()
        self.assertIn("success=false", written)
        self.assertIn("Amount must be a positive number", written)
        self.assertNotIn(self.secret, written)

    def test_unexpected_error_is_reported(self, *_):
        run_payout = AsyncMock(side_effect=RuntimeError("socket closed"))
        with patch.dict(os.environ, self.env(), clear=True), patch("payout.cli.run_payout", run_payout):
            self.assertEqual(cli.main(["--skip-probe"]), 1)
        self.assertIn("error=RuntimeError: socket closed", self.output_file.read_text())
