"""Batch orchestrator - drives both extraction tiers over a message corpus"""

import asyncio
import random
import time
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional
from src.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_PACING_MIN_MS,
    DEFAULT_PACING_MAX_MS,
    DEFAULT_INTER_CHUNK_PAUSE_MS,
    LLM_TEXT_TIMEOUT_SECONDS,
    LLM_IMAGE_TIMEOUT_SECONDS,
    LLM_READINESS_TIMEOUT_SECONDS,
)
from src.db.transaction_store import TransactionStore
from src.models.processing_status import ProcessingStatus
from src.models.transaction import Transaction
from src.orchestrator.retry_handler import retry_with_exponential_backoff
from src.orchestrator.state_manager import save_processing_status
from src.parsing.llm_parser import LlmTransactionParser
from src.parsing.rule_based_parser import RuleBasedParser
from src.tools.llm_client import TextGenerator
from src.utils.config_loader import load_config, get_batch_config, get_llm_config
from src.utils.errors import ConfigurationError, SpendParserError, StateManagerError
from src.utils.logging import get_logger
from src.utils.metrics import (
    batch_run_duration,
    batch_in_progress,
    messages_processed,
    transactions_detected,
    llm_readiness_failures,
)

logger = get_logger(__name__)

StatusCallback = Callable[[ProcessingStatus], None]


class BatchOrchestrator:
    """
    Runs extraction over a corpus in fixed-size chunks.

    Messages inside a chunk are extracted concurrently; chunks run strictly
    one after another. Results are persisted and progress is published only
    after a whole chunk has finished.
    """

    def __init__(
        self,
        store: TransactionStore,
        rule_parser: Optional[RuleBasedParser] = None,
        config: Optional[Dict[str, Any]] = None,
        run_id: Optional[str] = None,
    ):
        self.run_id = run_id or str(uuid.uuid4())
        self.config = config if config is not None else load_config()
        self.store = store
        self.rule_parser = rule_parser or RuleBasedParser()

        batch_config = get_batch_config(self.config)
        self.llm_config = get_llm_config(self.config)

        self.chunk_size = int(batch_config.get('chunk_size', DEFAULT_CHUNK_SIZE))
        if self.chunk_size < 1:
            raise ConfigurationError(f"batch.chunk_size must be positive, got {self.chunk_size}")

        pacing_min = batch_config.get('pacing_min_ms', DEFAULT_PACING_MIN_MS) / 1000
        pacing_max = batch_config.get('pacing_max_ms', DEFAULT_PACING_MAX_MS) / 1000
        self.pacing_range = (min(pacing_min, pacing_max), max(pacing_min, pacing_max))
        self.inter_chunk_pause = batch_config.get('inter_chunk_pause_ms', DEFAULT_INTER_CHUNK_PAUSE_MS) / 1000
        self.run_timeout = batch_config.get('run_timeout_seconds')

        self._status = ProcessingStatus()
        self._subscribers: List[StatusCallback] = []
        self._tier = "rule_based"

    @property
    def status(self) -> ProcessingStatus:
        """Latest published progress snapshot"""
        return self._status

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """
        Register an observer for progress snapshots.

        Returns:
            Function that removes the observer
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def reset(self) -> None:
        """Zero the progress counters; persisted transactions are left alone"""
        self._publish(ProcessingStatus())

    async def process_all(
        self,
        messages: Iterable[str],
        generator: Optional[TextGenerator] = None,
    ) -> ProcessingStatus:
        """
        Extract transactions from every message and persist them.

        Args:
            messages: Raw SMS bodies
            generator: Optional text generation backend for the LLM tier

        Returns:
            Final progress snapshot

        Raises:
            Any unexpected error, after is_processing has been cleared.
            Transactions from completed chunks stay persisted.
        """
        messages = list(messages)
        start_time = time.time()
        logger.info(f"Starting batch run: {self.run_id}", total_messages=len(messages))
        batch_in_progress.set(1)

        try:
            if self.run_timeout:
                await asyncio.wait_for(self._run(messages, generator), timeout=self.run_timeout)
            else:
                await self._run(messages, generator)
        except Exception as e:
            logger.error(f"Batch run {self.run_id} failed: {e}", status=self._status.model_dump())
            raise
        finally:
            self._publish(self._status.model_copy(update={'is_processing': False}))
            batch_in_progress.set(0)
            batch_run_duration.observe(time.time() - start_time)

        logger.info(
            f"Batch run complete: {self.run_id}",
            extractor=self._tier,
            processed=self._status.processed_messages,
            detected=self._status.detected_transactions,
            duration_seconds=round(time.time() - start_time, 2)
        )
        return self._status

    async def _run(self, messages: List[str], generator: Optional[TextGenerator]) -> None:
        total = len(messages)
        self._publish(ProcessingStatus(total_messages=total, is_processing=True))

        # Full replace: every run starts from an empty store
        self.store.clear_all()

        extractor = await self._select_extractor(generator)

        processed = 0
        detected = 0
        chunks = [messages[i:i + self.chunk_size] for i in range(0, total, self.chunk_size)]

        for index, chunk in enumerate(chunks):
            results = await asyncio.gather(*(self._extract_one(extractor, message) for message in chunk))

            found = [txn for txn in results if txn is not None]
            for txn in found:
                self.store.add(txn)

            processed = min(processed + len(chunk), total)
            detected += len(found)
            messages_processed.inc(len(chunk))
            transactions_detected.labels(extractor=self._tier).inc(len(found))

            self._publish(self._status.model_copy(update={
                'processed_messages': processed,
                'detected_transactions': detected,
            }))
            logger.debug(
                f"Chunk {index + 1}/{len(chunks)} done",
                processed=processed,
                detected=detected
            )

            if index < len(chunks) - 1 and self.inter_chunk_pause > 0:
                await asyncio.sleep(self.inter_chunk_pause)

    async def _select_extractor(self, generator: Optional[TextGenerator]):
        """LLM tier if the backend becomes ready, otherwise the rule-based tier"""
        self._tier = "rule_based"
        if generator is None:
            logger.info("No text generator supplied, using rule-based parsing")
            return self.rule_parser

        readiness_timeout = self.llm_config.get('readiness_timeout_seconds', LLM_READINESS_TIMEOUT_SECONDS)

        async def check_ready():
            return await asyncio.wait_for(generator.ensure_ready(), timeout=readiness_timeout)

        try:
            ready = await retry_with_exponential_backoff(
                check_ready,
                max_retries=int(self.llm_config.get('readiness_retries', 2)),
                base_delay=self.llm_config.get('readiness_base_delay_seconds', 1),
            )
        except SpendParserError as e:
            logger.warning(f"Text generator not ready: {e}")
            ready = False

        if not ready:
            llm_readiness_failures.inc()
            logger.warning("Degrading to rule-based parsing for this run", run_id=self.run_id)
            return self.rule_parser

        self._tier = "llm"
        return LlmTransactionParser(
            generator,
            fallback=self.rule_parser,
            text_timeout_seconds=self.llm_config.get('text_timeout_seconds', LLM_TEXT_TIMEOUT_SECONDS),
            image_timeout_seconds=self.llm_config.get('image_timeout_seconds', LLM_IMAGE_TIMEOUT_SECONDS),
        )

    async def _extract_one(self, extractor, message: str) -> Optional[Transaction]:
        # Pacing keeps bursts against the backend small
        delay = random.uniform(*self.pacing_range)
        if delay > 0:
            await asyncio.sleep(delay)
        return await extractor.extract(message)

    def _publish(self, status: ProcessingStatus) -> None:
        self._status = status

        try:
            save_processing_status(self.run_id, status.model_dump())
        except StateManagerError as e:
            logger.error(f"Could not persist progress snapshot: {e}")

        for callback in list(self._subscribers):
            try:
                callback(status)
            except Exception as e:
                logger.error(f"Progress subscriber failed: {e}")
