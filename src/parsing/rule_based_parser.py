"""Deterministic rule-based transaction parser (offline baseline tier)"""

from typing import Any, Callable, Optional
from src.constants import TransactionCategory, TransactionMode, TransactionType, UNKNOWN_SOURCE, UNKNOWN_TARGET
from src.models.transaction import Transaction, now_millis
from src.parsing import field_extractors as fx
from src.utils.logging import get_logger

logger = get_logger(__name__)


class RuleBasedParser:
    """Runs the field extractors against a single message"""

    def parse(self, message: str) -> Optional[Transaction]:
        """
        Parse one message into a Transaction.

        Args:
            message: Raw SMS text

        Returns:
            Transaction, or None if the message is not a transaction or has
            no positive amount. Never raises.
        """
        if not self._safe(fx.is_transaction_message, False, message):
            return None

        amount = self._safe(fx.extract_amount, None, message)
        if amount is None or amount <= 0:
            return None

        date_of_transaction = self._safe(fx.extract_date, None, message) or now_millis()
        source = self._safe(fx.extract_source, UNKNOWN_SOURCE, message)
        target = self._safe(fx.extract_target, UNKNOWN_TARGET, message)
        txn_type = self._safe(fx.extract_transaction_type, TransactionType.CREDIT, message)
        mode = self._safe(fx.extract_transaction_mode, TransactionMode.CARD, message)
        category = self._safe(fx.categorize_transaction, TransactionCategory.OTHER, message, target)
        other_info = self._safe(fx.extract_other_info, "", message)

        return Transaction(
            source=source,
            target=target,
            amount=amount,
            date_of_transaction=date_of_transaction,
            type=txn_type,
            mode=mode,
            category=category,
            other_info=other_info,
            original_message=message,
        )

    async def extract(self, message: str) -> Optional[Transaction]:
        """Extraction strategy entry point shared with the LLM tier"""
        return self.parse(message)

    @staticmethod
    def _safe(extractor: Callable[..., Any], default: Any, *args) -> Any:
        # An extractor blowing up means "field not found", never a failed parse
        try:
            return extractor(*args)
        except Exception as e:
            name = getattr(extractor, "__name__", repr(extractor))
            logger.warning(f"Extractor {name} failed: {e}")
            return default
