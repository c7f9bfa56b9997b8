"""Unit tests for the rule-based parser"""

import asyncio
import pytest
from datetime import datetime
from decimal import Decimal
from unittest.mock import patch
from src.constants import TransactionType, TransactionMode, TransactionCategory
from src.models.transaction import now_millis
from src.parsing.rule_based_parser import RuleBasedParser
from src.sources.sms_source import SAMPLE_MESSAGES

ICICI_CARD_SMS = (
    "ICICI Bank Credit Card XX7004 debited for INR 624.00 on 26-Aug-25 for Satguru. "
    "To dispute call 18001080/SMS BLOCK 7004 to 9215676766"
)
AXIS_UPI_SMS = "AXIS Bank UPI: Payment of INR 45.00 to Uber on 23-Aug-25. UPI Ref: 412345678901"


@pytest.fixture
def parser():
    return RuleBasedParser()


def test_card_debit_with_dispute_info(parser):
    """Card debit with merchant after the date and a dispute helpline"""
    txn = parser.parse(ICICI_CARD_SMS)

    assert txn is not None
    assert txn.amount == Decimal("624.00")
    assert txn.type == TransactionType.DEBIT
    assert txn.mode == TransactionMode.CARD
    assert "ICICI" in txn.source
    assert txn.target == "Satguru"
    assert txn.category == TransactionCategory.OTHER
    assert "18001080" in txn.other_info
    assert txn.date_of_transaction == int(datetime(2025, 8, 26).timestamp() * 1000)
    assert txn.original_message == ICICI_CARD_SMS


def test_upi_payment(parser):
    txn = parser.parse(AXIS_UPI_SMS)

    assert txn is not None
    assert txn.amount == Decimal("45.00")
    assert txn.mode == TransactionMode.UPI
    assert txn.category == TransactionCategory.TRANSPORT
    assert txn.target == "Uber"


def test_otp_message_is_not_a_transaction(parser):
    assert parser.parse("Your OTP is 445566") is None


@pytest.mark.parametrize("message", [
    "Your a/c was debited for INR 50.00 on 01-Sep-25 for Zomato.",
    "ICICI Bank card debited for 50 on 01-Sep-25 for Zomato.",
    "HDFC Bank: flat INR 200 off on Swiggy this weekend",
])
def test_gate_failures_return_none(parser, message):
    assert parser.parse(message) is None


def test_gate_failure_skips_field_extraction(parser):
    with patch('src.parsing.field_extractors.extract_amount') as mock_amount:
        assert parser.parse("Your OTP is 445566") is None
        mock_amount.assert_not_called()


def test_amount_with_thousands_separator(parser):
    txn = parser.parse("HDFC Bank: Your account XX1234 is debited for INR 1,200.00 on 19-Aug-25 for Flipkart.")
    assert txn.amount == Decimal("1200.00")


def test_zero_amount_is_rejected(parser):
    assert parser.parse("ICICI Bank card debited for INR 0.00 on 01-Sep-25 for Satguru.") is None


def test_missing_amount_is_rejected(parser):
    assert parser.parse("ICICI Bank: your INR account was debited on 01-Sep-25") is None


def test_unparsable_date_defaults_to_now(parser):
    before = now_millis()
    txn = parser.parse("KOTAK Bank: Your account debited for INR 899.00 for Amazon. Available balance")
    after = now_millis()

    assert txn is not None
    assert before <= txn.date_of_transaction <= after


def test_food_keyword_wins_over_shopping(parser):
    txn = parser.parse("HDFC Bank: debited for INR 500.00 on 01-Sep-25 for Zomato order via Amazon Pay.")
    assert txn.category == TransactionCategory.FOOD


def test_parse_is_idempotent(parser):
    first = parser.parse(ICICI_CARD_SMS)
    second = parser.parse(ICICI_CARD_SMS)
    assert first.comparable_fields() == second.comparable_fields()


def test_extractor_error_treated_as_not_found(parser):
    """A crashing extractor degrades to its sentinel instead of failing the parse"""
    with patch('src.parsing.field_extractors.extract_target', side_effect=RuntimeError("boom")):
        txn = parser.parse(ICICI_CARD_SMS)

    assert txn is not None
    assert txn.target == "Unknown"
    assert txn.amount == Decimal("624.00")


def test_amount_extractor_error_yields_none(parser):
    with patch('src.parsing.field_extractors.extract_amount', side_effect=ValueError("bad")):
        assert parser.parse(ICICI_CARD_SMS) is None


def test_sample_messages_all_positive(parser):
    results = [parser.parse(message) for message in SAMPLE_MESSAGES]
    parsed = [txn for txn in results if txn is not None]

    assert len(parsed) == len(SAMPLE_MESSAGES)
    assert all(txn.amount > 0 for txn in parsed)


def test_extract_matches_parse(parser):
    txn = asyncio.run(parser.extract(ICICI_CARD_SMS))
    assert txn.comparable_fields() == parser.parse(ICICI_CARD_SMS).comparable_fields()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
