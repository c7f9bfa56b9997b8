"""Main entry point for the spends parser"""

import asyncio
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables FIRST, before any other imports
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

from src.db.transaction_store import SqliteTransactionStore
from src.orchestrator.batch_orchestrator import BatchOrchestrator
from src.sources.sms_source import load_messages
from src.tools.llm_client import build_generator_from_config
from src.utils.config_loader import load_config, get_llm_config
from src.utils.logging import get_logger

logger = get_logger(__name__)


async def run() -> dict:
    """Process the inbox once and return the store summary"""
    config = load_config()
    store = SqliteTransactionStore(os.getenv("SPENDS_DB_PATH") or config['store']['path'])
    orchestrator = BatchOrchestrator(store, config=config)

    limit = config.get('sources', {}).get('inbox_limit', 100)
    messages = load_messages(limit=limit)
    generator = build_generator_from_config(get_llm_config(config))

    orchestrator.subscribe(
        lambda status: logger.info(
            "Progress",
            processed=status.processed_messages,
            total=status.total_messages,
            detected=status.detected_transactions
        )
    )

    try:
        await orchestrator.process_all(messages, generator)
        return store.summary()
    finally:
        store.close()


def main():
    """Main entry point"""
    logger.info("=" * 60)
    logger.info("SPENDS - bank SMS transaction extraction")
    logger.info("=" * 60)

    try:
        summary = asyncio.run(run())

        logger.info("=" * 60)
        logger.info("SPENDS SUMMARY")
        logger.info("=" * 60)
        logger.info(f"Transactions: {summary['total_count']}")
        logger.info(f"Total debits: {summary['total_debits']:.2f}")
        logger.info(f"Total credits: {summary['total_credits']:.2f}")
        logger.info(f"Categories: {summary['distinct_category_count']}")
        logger.info("=" * 60)

        return summary

    except Exception as e:
        logger.error(f"Main execution failed: {e}")
        raise


if __name__ == "__main__":
    main()
