"""Test raw unit conversion and mint decoding."""

from __future__ import annotations

from decimal import Decimal
from unittest import IsolatedAsyncioTestCase, TestCase

from solders.keypair import Keypair
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from spl.token.constants import TOKEN_PROGRAM_ID

from ledger_fakes import FakeLedger, RecordingEvents, mint_data
from payout.errors import InvalidTokenError
from payout.token import decode_mint, fetch_token_metadata, to_raw_units


class TestToRawUnits(TestCase):
    def test_exact_amounts(self):
        self.assertEqual(to_raw_units(Decimal("1.5"), 9), 1_500_000_000)
        self.assertEqual(to_raw_units(Decimal("2.5"), 6), 2_500_000)
        self.assertEqual(to_raw_units(Decimal("7"), 0), 7)

    def test_excess_precision_rounds_down(self):
        self.assertEqual(to_raw_units(Decimal("0.1234569"), 6), 123_456)
        self.assertEqual(to_raw_units(Decimal("1.999999999999"), 9), 1_999_999_999)
        self.assertEqual(to_raw_units(Decimal("0.0000001"), 6), 0)

    def test_never_sends_more_than_requested(self):
        for text in ["0.1", "0.3333333333", "12.000000001", "99999.999999999", "0.000001", "5e-7"]:
            amount = Decimal(text)
            for decimals in (0, 2, 6, 9):
                with self.subTest(amount=text, decimals=decimals):
                    raw = to_raw_units(amount, decimals)
                    self.assertLessEqual(Decimal(raw).scaleb(-decimals), amount)
                    # and never more than one base unit short
                    self.assertGreater(Decimal(raw + 1).scaleb(-decimals), amount)


class TestDecodeMint(TestCase):
    def setUp(self):
        self.mint = Keypair().pubkey()

    def test_decodes_supply_and_decimals(self):
        meta = decode_mint(self.mint, TOKEN_PROGRAM_ID, mint_data(decimals=6, supply=42_000_000))
        self.assertEqual((meta.mint, meta.supply, meta.decimals), (self.mint, 42_000_000, 6))

    def test_wrong_owner(self):
        with self.assertRaisesRegex(InvalidTokenError, "not the token program"):
            decode_mint(self.mint, SYSTEM_PROGRAM_ID, mint_data(decimals=6))

    def test_short_data(self):
        with self.assertRaisesRegex(InvalidTokenError, "not a mint"):
            decode_mint(self.mint, TOKEN_PROGRAM_ID, bytes(40))

    def test_uninitialized(self):
        with self.assertRaisesRegex(InvalidTokenError, "not initialized"):
            decode_mint(self.mint, TOKEN_PROGRAM_ID, mint_data(decimals=6, initialized=False))


class TestFetchTokenMetadata(IsolatedAsyncioTestCase):
    async def test_existing_mint(self):
        ledger = FakeLedger()
        mint = Keypair().pubkey()
        ledger.add_mint(mint, decimals=9)
        meta = await fetch_token_metadata(ledger, str(mint), RecordingEvents())
        self.assertEqual(meta.decimals, 9)

    async def test_missing_mint(self):
        mint = Keypair().pubkey()
        with self.assertRaisesRegex(InvalidTokenError, f"Invalid SPL token: {mint}.*not found"):
            await fetch_token_metadata(FakeLedger(), str(mint), RecordingEvents())

    async def test_malformed_mint_address_makes_no_network_call(self):
        ledger = FakeLedger()
        with self.assertRaisesRegex(InvalidTokenError, "Invalid SPL token: USDC"):
            await fetch_token_metadata(ledger, "USDC", RecordingEvents())
        self.assertEqual(ledger.calls, [])
