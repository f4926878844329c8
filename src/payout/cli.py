"""Command line / GitHub Action entry point.

Reads the request from flags or from the ``INPUT_*`` variables GitHub sets for
action inputs, runs one payout and writes ``success``, ``error`` and
``transaction`` back, to ``$GITHUB_OUTPUT`` when it exists and to stdout.
"""
import argparse
import asyncio
import os
import uuid
from typing import Mapping, TextIO

from dotenv import load_dotenv

from payout import logger
from payout.config import cfg, network_config
from payout.errors import ConfigurationError, PayoutError
from payout.logging_config import setup_logging
from payout.models import PayoutOutcome, PayoutRequest
from payout.orchestrator import run_payout
from payout.rpc import probe_rpc

SECRET_ENV = "SENDER_WALLET_SECRET"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="payout", description="Send SOL or an SPL token to one recipient.")
    parser.add_argument("-r", "--recipient",
                        help="Recipient wallet address.",
                        )
    parser.add_argument("-a", "--amount",
                        help="Amount to send, in SOL or in whole tokens.",
                        )
    parser.add_argument("-t", "--token",
                        help="'SOL' / 'NATIVE' or an SPL token mint address.",
                        )
    parser.add_argument("-n", "--network",
                        help="Cluster name (mainnet-beta, devnet, testnet, localnet).",
                        )
    parser.add_argument("--timeout",
                        help="Milliseconds to wait for confirmation.",
                        )
    parser.add_argument("--skip-probe",
                        action="store_true",
                        help="Don't check the RPC endpoint's health before starting.",
                        )
    return parser.parse_args(argv)


def get_input(env: Mapping[str, str], name: str) -> str:
    """Same lookup as @actions/core getInput: INPUT_<NAME> with spaces as underscores."""
    return env.get(f"INPUT_{name.replace(' ', '_').upper()}", "").strip()


def read_inputs(args: argparse.Namespace, env: Mapping[str, str] = os.environ) -> dict:
    secret = env.get(SECRET_ENV, "")
    if not secret.strip():
        raise ConfigurationError(
            f"Environment variable {SECRET_ENV} is not set, please set it in the repository secrets"
        )

    recipient = args.recipient or get_input(env, "recipient-wallet-address")
    amount = args.amount or get_input(env, "amount")
    token = args.token or get_input(env, "token")
    if not recipient:
        raise ConfigurationError("Input required and not supplied: recipient-wallet-address")
    if not amount:
        raise ConfigurationError("Input required and not supplied: amount")
    if not token:
        raise ConfigurationError("Input required and not supplied: token")

    network = args.network or get_input(env, "network") or cfg["default_network"]
    timeout = args.timeout or get_input(env, "timeout") or cfg["timeout"]["confirmation_ms"]
    try:
        timeout_ms = int(timeout)
    except ValueError:
        raise ConfigurationError(f"Timeout must be a whole number of milliseconds, got {timeout!r}") from None

    return {
        "sender_secret": secret,
        "recipient": recipient,
        "amount": amount,
        "token": token,
        "network": network,
        "timeout_ms": timeout_ms,
    }


def _escape_annotation(text: str) -> str:
    return text.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def write_outputs(outcome: PayoutOutcome, env: Mapping[str, str] = os.environ, stream: TextIO | None = None) -> None:
    outputs = outcome.as_outputs()
    path = env.get("GITHUB_OUTPUT")
    if path:
        with open(path, "a", encoding="utf-8") as f:
            for key, value in outputs.items():
                if "\n" in value:
                    delimiter = f"ghadelimiter_{uuid.uuid4()}"
                    f.write(f"{key}<<{delimiter}\n{value}\n{delimiter}\n")
                else:
                    f.write(f"{key}={value}\n")

    for key, value in outputs.items():
        print(f"{key}={value}", file=stream)
    if not outcome.success and env.get("GITHUB_ACTIONS") == "true":
        print(f"::error::{_escape_annotation(outcome.error)}", file=stream)


async def run(args: argparse.Namespace, env: Mapping[str, str] = os.environ) -> PayoutOutcome:
    request = PayoutRequest.parse(**read_inputs(args, env))
    network = network_config(request.network)
    probe = cfg["probe"]
    if probe["enabled"] and not args.skip_probe:
        await probe_rpc(
            network.rpc_url, timeout=network.rpc_timeout, max_retries=probe["retries"], retry_delay=probe["delay"]
        )
    return await run_payout(request, network)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    setup_logging()
    args = parse_args(argv)
    try:
        outcome = asyncio.run(run(args))
    except PayoutError as e:
        outcome = PayoutOutcome.failed(str(e))
    except Exception as e:
        logger.exception("Unexpected error during payout")
        outcome = PayoutOutcome.failed(f"{e.__class__.__name__}: {e}")

    if outcome.success:
        logger.info("✓ Payment sent: %s", outcome.transaction)
    else:
        logger.error("❌ Error: %s", outcome.error)
    write_outputs(outcome)
    return 0 if outcome.success else 1
