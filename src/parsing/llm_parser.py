"""LLM-backed transaction extraction with rule-based fallback"""

import asyncio
import json
import math
import re
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Type
from src.constants import (
    TransactionType,
    TransactionMode,
    TransactionCategory,
    UNKNOWN_SOURCE,
    UNKNOWN_TARGET,
    MAX_STORABLE_INT,
    LLM_TEXT_TIMEOUT_SECONDS,
    LLM_IMAGE_TIMEOUT_SECONDS,
)
from src.models.transaction import Transaction, now_millis
from src.parsing.rule_based_parser import RuleBasedParser
from src.tools.llm_client import TextGenerator
from src.utils.errors import ExtractionError, LLMError
from src.utils.logging import get_logger
from src.utils.metrics import llm_fallbacks

logger = get_logger(__name__)

_CODE_FENCE = re.compile(r"```[a-zA-Z]*")


def build_transaction_prompt(message: str) -> str:
    """
    Build the structured-extraction prompt for one SMS.

    Args:
        message: Raw SMS text (double quotes are swapped for single quotes)

    Returns:
        Prompt asking for a single JSON object
    """
    quoted = message.replace('"', "'")
    return f"""You are an expert at parsing banking SMS messages into structured transaction data.

First, determine if this SMS is actually a banking transaction message (contains debit/credit with amount and merchant).
If it's NOT a transaction (like OTP, promotional message, etc.), return: {{"is_transaction": false}}

If it IS a transaction, parse and extract the details. Return a JSON object with these exact keys:
- is_transaction: true
- source: The bank/source (e.g., "ICICI Bank Credit Card XX7004")
- target: The merchant/business name where money was spent. Extract the actual merchant name, not "Unknown". Examples: "Satguru", "Amazon", "Zomato", "BigBasket", "PVR Cinemas", "Netflix", "Uber", "Metro Card", "PhonePe", "McDonald's"
- amount: Numeric amount only (e.g., 624.00)
- date_of_transaction: Unix timestamp in milliseconds for the transaction date
- type: Either "DEBIT" or "CREDIT"
- mode: Either "CARD" or "UPI"
- category: One of "SHOPPING", "FOOD", "ENTERTAINMENT", "LOANS", "TRANSPORT", "OTHER"
- other_info: Any additional info like dispute numbers or reference IDs

IMPORTANT: For the target field, carefully identify the merchant name from phrases like:
- "for [MERCHANT]" -> extract MERCHANT
- "to [MERCHANT]" -> extract MERCHANT
- "at [MERCHANT]" -> extract MERCHANT
- "Payment to [MERCHANT]" -> extract MERCHANT
Do NOT return "Unknown" unless absolutely no merchant can be identified.

Categories guide:
- FOOD: Zomato, Swiggy, restaurants, cafes, food delivery
- SHOPPING: Amazon, Flipkart, BigBasket, retail stores, e-commerce
- TRANSPORT: Uber, Ola, fuel, metro, taxi
- ENTERTAINMENT: Netflix, movies, streaming services, PVR
- LOANS: EMIs, loan payments, credit payments
- OTHER: Utilities, bills, salary credits, PhonePe, unknown merchants

SMS Message: "{quoted}"

Output only valid JSON, no other text:"""


def sanitize_to_json(text: str) -> str:
    """Strip Markdown code fences and keep the outermost {...} span"""
    no_fences = _CODE_FENCE.sub("", text.strip()).replace("```", "").strip()
    start = no_fences.find("{")
    end = no_fences.rfind("}")
    if start >= 0 and end > start:
        return no_fences[start:end + 1]
    return no_fences


def _enum_or_default(enum_cls: Type[Enum], value: Any, default: Enum) -> Enum:
    if not isinstance(value, str):
        return default
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        return default


def _text_or_default(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _timestamp_or_now(value: Any) -> int:
    if isinstance(value, bool):
        return now_millis()
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    # Out-of-range values (including inf/nan) cannot be stored
    if isinstance(value, (int, float)) and 0 < value <= MAX_STORABLE_INT:
        return int(value)
    return now_millis()


def parse_transaction_result(raw_output: str, original_message: str) -> Optional[Transaction]:
    """
    Turn raw model output into a Transaction.

    The untyped JSON is read into a dict first, then every field is pulled
    out with its own default before the typed record is built.

    Returns:
        Transaction, or None when the model flagged the text as not a transaction

    Raises:
        ExtractionError: If the output is not a JSON object or has no positive amount
    """
    json_text = sanitize_to_json(raw_output)
    try:
        data: Dict[str, Any] = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Model output is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise ExtractionError(f"Expected a JSON object, got {type(data).__name__}")

    if data.get("is_transaction", True) is False:
        return None

    raw_amount = data.get("amount")
    if isinstance(raw_amount, bool) or raw_amount is None:
        raise ExtractionError("Model output has no amount")
    try:
        amount = Decimal(str(raw_amount).replace(",", "").strip())
    except InvalidOperation:
        raise ExtractionError(f"Unparsable amount: {raw_amount!r}")
    if not amount.is_finite() or amount <= 0:
        raise ExtractionError(f"Non-positive amount: {raw_amount!r}")
    if not math.isfinite(float(amount)):
        raise ExtractionError(f"Amount out of range: {raw_amount!r}")

    return Transaction(
        source=_text_or_default(data.get("source"), UNKNOWN_SOURCE),
        target=_text_or_default(data.get("target"), UNKNOWN_TARGET),
        amount=amount,
        date_of_transaction=_timestamp_or_now(data.get("date_of_transaction")),
        type=_enum_or_default(TransactionType, data.get("type"), TransactionType.DEBIT),
        mode=_enum_or_default(TransactionMode, data.get("mode"), TransactionMode.CARD),
        category=_enum_or_default(TransactionCategory, data.get("category"), TransactionCategory.OTHER),
        other_info=_text_or_default(data.get("other_info"), ""),
        original_message=original_message,
    )


class LlmTransactionParser:
    """
    Primary extraction tier.

    Wraps a TextGenerator and delegates to the fallback parser whenever the
    model times out, errors, or returns output that cannot become a valid
    Transaction. A model verdict of "not a transaction" is returned as None
    without consulting the fallback.
    """

    def __init__(
        self,
        generator: TextGenerator,
        fallback: Optional[RuleBasedParser] = None,
        text_timeout_seconds: float = LLM_TEXT_TIMEOUT_SECONDS,
        image_timeout_seconds: float = LLM_IMAGE_TIMEOUT_SECONDS,
    ):
        self.generator = generator
        self.fallback = fallback or RuleBasedParser()
        self.text_timeout_seconds = text_timeout_seconds
        self.image_timeout_seconds = image_timeout_seconds

    async def extract(self, message: str, image: Optional[bytes] = None) -> Optional[Transaction]:
        try:
            return await self._extract_with_llm(message, image)
        except asyncio.TimeoutError:
            logger.warning("LLM extraction timed out, falling back to rules")
            llm_fallbacks.labels(reason="timeout").inc()
        except ExtractionError as e:
            logger.warning(f"LLM output rejected, falling back to rules: {e}")
            llm_fallbacks.labels(reason="invalid_output").inc()
        except Exception as e:
            logger.error(f"LLM extraction failed, falling back to rules: {e}")
            llm_fallbacks.labels(reason="backend_error").inc()

        return await self.fallback.extract(message)

    async def _extract_with_llm(self, message: str, image: Optional[bytes]) -> Optional[Transaction]:
        prompt = build_transaction_prompt(message)
        timeout = self.image_timeout_seconds if image is not None else self.text_timeout_seconds
        raw_output = await asyncio.wait_for(self._run_generation(prompt, image), timeout=timeout)
        return parse_transaction_result(raw_output, message)

    async def _run_generation(self, prompt: str, image: Optional[bytes]) -> str:
        parts = []
        async for chunk in self.generator.generate(prompt, image):
            parts.append(chunk)
        output = "".join(parts)
        if not output.strip():
            raise LLMError("Backend finished without producing any text")
        return output


async def parse_with_ai(
    message: str,
    generator: TextGenerator,
    image: Optional[bytes] = None,
) -> Optional[Transaction]:
    """One-shot LLM extraction with rule-based fallback"""
    return await LlmTransactionParser(generator).extract(message, image)
