"""Pattern library for pulling transaction fields out of bank SMS text.

Every extractor is an ordered first-match-wins chain: patterns are tried in
list order and the first one that yields a usable value wins.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from src.constants import (
    TransactionType,
    TransactionMode,
    TransactionCategory,
    UNKNOWN_SOURCE,
    UNKNOWN_TARGET,
)

_NUMERAL = r"(\d+(?:,\d{3})*(?:\.\d{2})?)"

AMOUNT_PATTERNS = [
    re.compile(r"(?:INR|Rs\.?|₹)\s*" + _NUMERAL),
    re.compile(r"debited for INR\s*" + _NUMERAL),
    re.compile(r"credited with INR\s*" + _NUMERAL),
    re.compile(r"amount\s*(?:INR|Rs\.?|₹)?\s*" + _NUMERAL),
]

DATE_PATTERNS = [
    re.compile(r"on\s*(\d{1,2})-(\w{3})-(\d{2,4})", re.ASCII),
    re.compile(r"on\s*(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})", re.ASCII),
    re.compile(r"dated\s*(\d{1,2})-(\w{3})-(\d{2,4})", re.ASCII),
    re.compile(r"(\d{1,2})-(\w{3})-(\d{2,4})", re.ASCII),
]

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

# Bank code -> aliases as they appear in notifications
BANK_PATTERNS = {
    "ICICI": ["ICICI", "ICICI Bank"],
    "HDFC": ["HDFC", "HDFC Bank"],
    "SBI": ["SBI", "State Bank"],
    "AXIS": ["AXIS", "Axis Bank"],
    "KOTAK": ["KOTAK", "Kotak"],
    "PNB": ["PNB", "Punjab National"],
    "BOB": ["BOB", "Bank of Baroda"],
    "CANARA": ["CANARA", "Canara Bank"],
}

# Masked card/account token must start within this many characters of the alias
CARD_TOKEN_WINDOW = 40

_TERMINATORS = r"(?:on|available|to|upi|sms)"
_PHRASE = r"([A-Za-z0-9\s&'-]+)"

TARGET_PATTERNS = [
    # "for Merchant." / "for Merchant on"
    re.compile(r"for\s+" + _PHRASE + r"(?:\.|\s+" + _TERMINATORS + r")", re.IGNORECASE),
    # "at Merchant." / "at Merchant on"
    re.compile(r"at\s+" + _PHRASE + r"(?:\.|\s+" + _TERMINATORS + r")", re.IGNORECASE),
    # "to Merchant on" (UPI payments)
    re.compile(r"to\s+" + _PHRASE + r"\s+on", re.IGNORECASE),
    # "Payment of 45.00 to Merchant"
    re.compile(r"payment\s+(?:of\s+[\d,.]+\s+)?to\s+" + _PHRASE + r"(?:\s+on|\.|$)", re.IGNORECASE),
    # Anything right after the amount
    re.compile(
        r"(?:inr|rs\.?)\s*[\d,.]+\s+(?:on\s+[\d-]+\s+)?(?:for\s+|to\s+|at\s+)?"
        r"([A-Za-z0-9\s&'-]+?)(?:\s*\.|\s+(?:on|available|to|upi|sms|thank))",
        re.IGNORECASE,
    ),
]

TARGET_EXCLUDED_WORDS = {
    "inr", "rs", "available", "balance", "account", "card", "bank",
    "credit", "debit", "payment", "transaction", "sms", "call", "dispute",
    "thank", "you", "banking", "with", "us", "ref", "upi", "gpay",
}

FOOD_KEYWORDS = ["zomato", "swiggy", "restaurant", "food", "cafe", "hotel", "domino", "mcdonald", "kfc", "pizza"]
SHOPPING_KEYWORDS = ["amazon", "flipkart", "myntra", "ajio", "shopping", "mall", "store", "market"]
TRANSPORT_KEYWORDS = ["uber", "ola", "rapido", "metro", "bus", "taxi", "petrol", "diesel", "fuel"]
ENTERTAINMENT_KEYWORDS = ["netflix", "hotstar", "prime", "spotify", "movie", "cinema", "pvr", "inox"]
UTILITY_KEYWORDS = ["electricity", "water", "gas", "internet", "mobile", "recharge", "bill"]

# Priority order matters: the first group with a hit decides the category
CATEGORY_RULES = [
    (FOOD_KEYWORDS, TransactionCategory.FOOD),
    (SHOPPING_KEYWORDS, TransactionCategory.SHOPPING),
    (TRANSPORT_KEYWORDS, TransactionCategory.TRANSPORT),
    (ENTERTAINMENT_KEYWORDS, TransactionCategory.ENTERTAINMENT),
    (UTILITY_KEYWORDS, TransactionCategory.OTHER),
]

OTHER_INFO_PATTERNS = [
    re.compile(r"To dispute call\s+([\d\s/-]+)", re.IGNORECASE),
    re.compile(r"SMS\s+([A-Z]+)\s+\d+\s+to\s+(\d+)", re.IGNORECASE),
    re.compile(r"call\s+([\d\s/-]+)", re.IGNORECASE),
    re.compile(r"helpline\s+([\d\s/-]+)", re.IGNORECASE),
]

DEBIT_CREDIT_KEYWORDS = ["debited", "credited", "debit", "credit", "payment", "paid", "spent"]
CURRENCY_KEYWORDS = ["inr", "rs", "₹"]
DEBIT_KEYWORDS = ["debited", "debit"]
UPI_KEYWORDS = ["upi", "gpay", "paytm", "phonepe"]


def all_bank_aliases() -> list[str]:
    return [alias for aliases in BANK_PATTERNS.values() for alias in aliases]


def is_transaction_message(message: str) -> bool:
    """
    Cheap keyword gate run before any field extraction.

    A message qualifies only if it mentions a debit/credit keyword, a
    currency keyword and at least one known bank alias.
    """
    lower_message = message.lower()
    return (
        any(keyword in lower_message for keyword in DEBIT_CREDIT_KEYWORDS)
        and any(keyword in lower_message for keyword in CURRENCY_KEYWORDS)
        and any(alias.lower() in lower_message for alias in all_bank_aliases())
    )


def extract_amount(message: str) -> Optional[Decimal]:
    """
    Extract the transaction amount.

    Args:
        message: Raw SMS text

    Returns:
        Amount with thousands separators removed, or None if no pattern matched
    """
    for pattern in AMOUNT_PATTERNS:
        match = pattern.search(message)
        if not match:
            continue
        try:
            return Decimal(match.group(1).replace(",", ""))
        except InvalidOperation:
            continue
    return None


def extract_date(message: str) -> Optional[int]:
    """
    Extract the transaction date as a millisecond epoch (local midnight).

    Returns None when no pattern yields a real calendar date; callers fall
    back to the processing time.
    """
    for pattern in DATE_PATTERNS:
        match = pattern.search(message)
        if not match:
            continue

        day_str, month_str, year_str = match.groups()
        year = int(year_str)
        if len(year_str) == 2:
            year += 2000

        if len(month_str) == 3:
            month = MONTHS.get(month_str.lower())
            if month is None:
                continue
        else:
            month = int(month_str)

        try:
            return int(datetime(year, month, int(day_str)).timestamp() * 1000)
        except (ValueError, OverflowError, OSError):
            continue
    return None


def extract_source(message: str) -> str:
    """Bank name (plus masked card token when present) or the Unknown Bank sentinel"""
    lower_message = message.lower()
    for aliases in BANK_PATTERNS.values():
        for alias in sorted(aliases, key=len, reverse=True):
            if alias.lower() not in lower_message:
                continue
            card_pattern = re.compile(
                re.escape(alias) + r".{0,%d}?\b([A-Za-z]{2}\d{4})\b" % CARD_TOKEN_WINDOW,
                re.IGNORECASE,
            )
            card_match = card_pattern.search(message)
            if card_match:
                return f"{alias} {card_match.group(1)}"
            return alias
    return UNKNOWN_SOURCE


def is_valid_target(target: str) -> bool:
    """A merchant candidate needs one word that is neither jargon nor a number"""
    if len(target) < 2:
        return False

    words = re.split(r"\s+", target.lower())
    valid_words = [
        word for word in words
        if word and word not in TARGET_EXCLUDED_WORDS and not word.isdigit()
    ]
    return bool(valid_words) and len(" ".join(valid_words)) >= 2


def extract_target(message: str) -> str:
    """
    Extract the merchant/counterparty.

    Each pattern's matches are tried left to right before moving on to the
    next pattern. Falls back to the Unknown sentinel.
    """
    for pattern in TARGET_PATTERNS:
        for match in pattern.finditer(message):
            target = match.group(1).strip()
            if is_valid_target(target):
                return target
    return UNKNOWN_TARGET


def extract_transaction_type(message: str) -> TransactionType:
    lower_message = message.lower()
    if any(keyword in lower_message for keyword in DEBIT_KEYWORDS):
        return TransactionType.DEBIT
    return TransactionType.CREDIT


def extract_transaction_mode(message: str) -> TransactionMode:
    lower_message = message.lower()
    if any(keyword in lower_message for keyword in UPI_KEYWORDS):
        return TransactionMode.UPI
    return TransactionMode.CARD


def categorize_transaction(message: str, target: str) -> TransactionCategory:
    """Keyword categorization over both the message and the extracted target"""
    lower_message = message.lower()
    lower_target = target.lower()

    for keywords, category in CATEGORY_RULES:
        if any(kw in lower_message or kw in lower_target for kw in keywords):
            return category
    return TransactionCategory.OTHER


def extract_other_info(message: str) -> str:
    """First dispute/helpline/shortcode phrase, verbatim; empty string if none"""
    for pattern in OTHER_INFO_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(0)
    return ""
