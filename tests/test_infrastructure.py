"""Unit tests for core infrastructure components."""

import asyncio
import sqlite3
import pytest
from decimal import Decimal
from pathlib import Path
from src.constants import TransactionType, TransactionMode, TransactionCategory
from src.models.transaction import Transaction

FIXTURES = Path(__file__).parent / "fixtures"


def make_transaction(**overrides) -> Transaction:
    fields = {
        'source': "ICICI Bank XX7004",
        'target': "Satguru",
        'amount': Decimal("624.00"),
        'date_of_transaction': 1756166400000,
        'type': TransactionType.DEBIT,
        'mode': TransactionMode.CARD,
        'category': TransactionCategory.FOOD,
        'original_message': "ICICI Bank Credit Card XX7004 debited for INR 624.00",
    }
    fields.update(overrides)
    return Transaction(**fields)


# --- configuration ---

def test_load_default_config():
    """Test that the shipped settings file loads"""
    from src.utils.config_loader import load_config, get_batch_config, get_llm_config

    config = load_config()
    assert config['version'] == 1
    assert get_batch_config(config)['chunk_size'] == 10
    assert get_llm_config(config)['text_timeout_seconds'] == 30


def test_load_config_missing_file(tmp_path):
    from src.utils.config_loader import load_config
    from src.utils.errors import ConfigurationError

    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "missing.yaml"))


def test_load_config_missing_keys(tmp_path):
    from src.utils.config_loader import load_config
    from src.utils.errors import ConfigurationError

    config_file = tmp_path / "settings.yaml"
    config_file.write_text("version: 1\nbatch:\n  chunk_size: 5\n")

    with pytest.raises(ConfigurationError, match="llm"):
        load_config(str(config_file))


def test_load_config_invalid_yaml(tmp_path):
    from src.utils.config_loader import load_config
    from src.utils.errors import ConfigurationError

    config_file = tmp_path / "settings.yaml"
    config_file.write_text("batch: [unclosed\n")

    with pytest.raises(ConfigurationError):
        load_config(str(config_file))


def test_load_config_env_override(tmp_path, monkeypatch):
    from src.utils.config_loader import load_config

    config_file = tmp_path / "settings.yaml"
    config_file.write_text("version: 2\nbatch: {}\nllm: {}\nstore: {}\n")
    monkeypatch.setenv("SPENDS_CONFIG", str(config_file))

    assert load_config()['version'] == 2


# --- transaction store ---

def test_store_add_and_list_order(store):
    older = make_transaction(date_of_transaction=1755000000000, target="Older")
    newer = make_transaction(date_of_transaction=1756166400000, target="Newer")

    first_id = store.add(older)
    second_id = store.add(newer)
    assert second_id > first_id

    transactions = store.list_all()
    assert [txn.target for txn in transactions] == ["Newer", "Older"]
    assert transactions[0].id == second_id
    assert transactions[0].amount == Decimal("624.0")
    assert transactions[0].category == TransactionCategory.FOOD


def test_store_clear_all(store):
    store.add(make_transaction())
    store.clear_all()
    assert store.list_all() == []


def test_store_summary(store):
    store.add(make_transaction(amount=Decimal("100"), category=TransactionCategory.FOOD))
    store.add(make_transaction(amount=Decimal("250.50"), category=TransactionCategory.SHOPPING))
    store.add(make_transaction(amount=Decimal("5000"), type=TransactionType.CREDIT,
                               category=TransactionCategory.OTHER))

    summary = store.summary()
    assert summary == {
        'total_count': 3,
        'total_debits': 350.5,
        'total_credits': 5000.0,
        'distinct_category_count': 3,
    }


def test_store_summary_empty(store):
    assert store.summary() == {
        'total_count': 0,
        'total_debits': 0.0,
        'total_credits': 0.0,
        'distinct_category_count': 0,
    }


def test_store_spend_by_category(store):
    store.add(make_transaction(amount=Decimal("100"), category=TransactionCategory.FOOD))
    store.add(make_transaction(amount=Decimal("50"), category=TransactionCategory.FOOD))
    store.add(make_transaction(amount=Decimal("400"), category=TransactionCategory.SHOPPING))
    store.add(make_transaction(amount=Decimal("9000"), type=TransactionType.CREDIT))

    totals = store.spend_by_category()
    assert list(totals) == ["SHOPPING", "FOOD"]
    assert totals["FOOD"] == Decimal("150.0")


def test_store_raw_query(store):
    store.add(make_transaction(target="Zomato"))
    store.add(make_transaction(target="Uber", category=TransactionCategory.TRANSPORT))

    rows = store.raw_query("SELECT target, category FROM transactions ORDER BY target;")
    assert rows == [
        {'target': "Uber", 'category': "TRANSPORT"},
        {'target': "Zomato", 'category': "FOOD"},
    ]


@pytest.mark.parametrize("sql", [
    "DELETE FROM transactions",
    "DROP TABLE transactions",
    "SELECT 1; DELETE FROM transactions",
])
def test_store_raw_query_rejects_writes(store, sql):
    from src.utils.errors import StoreError

    store.add(make_transaction())
    with pytest.raises(StoreError):
        store.raw_query(sql)
    assert len(store.list_all()) == 1


def test_store_rejects_unstorable_amount(store):
    from src.utils.errors import StoreError

    store.add(make_transaction())
    with pytest.raises(StoreError):
        store.add(make_transaction(amount=Decimal("1e999999")))

    assert len(store.list_all()) == 1


def test_store_raw_query_bad_sql(store):
    from src.utils.errors import StoreError

    with pytest.raises(StoreError):
        store.raw_query("SELECT nope FROM missing_table")


def test_store_migrates_legacy_salary_category(tmp_path):
    """Rows written under the retired SALARY category come back as OTHER"""
    from src.db.transaction_store import SqliteTransactionStore

    db_path = str(tmp_path / "transactions.db")
    first = SqliteTransactionStore(db_path)
    first.add(make_transaction(type=TransactionType.CREDIT))
    first.close()

    connection = sqlite3.connect(db_path)
    connection.execute("UPDATE transactions SET category = 'SALARY'")
    connection.commit()
    connection.close()

    reopened = SqliteTransactionStore(db_path)
    try:
        transactions = reopened.list_all()
        assert transactions[0].category == TransactionCategory.OTHER
        assert reopened.raw_query("SELECT DISTINCT category FROM transactions") == [{'category': "OTHER"}]
    finally:
        reopened.close()


def test_store_persists_between_connections(tmp_path):
    from src.db.transaction_store import SqliteTransactionStore

    db_path = str(tmp_path / "nested" / "transactions.db")
    first = SqliteTransactionStore(db_path)
    first.add(make_transaction())
    first.close()

    second = SqliteTransactionStore(db_path)
    try:
        assert len(second.list_all()) == 1
    finally:
        second.close()


def test_database_schemas_valid():
    """Test that database schemas are valid SQL."""
    from src.db.schemas import TRANSACTIONS_TABLE_SCHEMA

    assert "CREATE TABLE" in TRANSACTIONS_TABLE_SCHEMA
    assert "PRIMARY KEY" in TRANSACTIONS_TABLE_SCHEMA
    assert "CHECK (amount > 0)" in TRANSACTIONS_TABLE_SCHEMA


# --- model ---

def test_transaction_rejects_non_positive_amount():
    from pydantic import ValidationError

    with pytest.raises(ValidationError):
        make_transaction(amount=Decimal("0"))


def test_transaction_rejects_unstorable_date():
    from pydantic import ValidationError

    with pytest.raises(ValidationError):
        make_transaction(date_of_transaction=10**20)


def test_comparable_fields_ignore_bookkeeping():
    first = make_transaction(created_at=1, updated_at=1)
    second = make_transaction(id=7, created_at=2, updated_at=3)
    assert first.comparable_fields() == second.comparable_fields()


# --- state manager ---

def test_state_manager_save_restore():
    """Test progress snapshot save/restore with the in-memory backend"""
    from src.orchestrator.state_manager import save_processing_status, restore_processing_status

    status = {'total_messages': 13, 'processed_messages': 10, 'detected_transactions': 9, 'is_processing': True}
    save_processing_status('test_run_123', status)

    assert restore_processing_status('test_run_123') == status


def test_state_manager_restore_unknown_run():
    from src.orchestrator.state_manager import restore_processing_status

    assert restore_processing_status('never-started') == {}


def test_state_manager_health_check():
    """Test Redis health check."""
    from src.orchestrator.state_manager import check_redis_health

    # Should return True or False depending on Redis availability
    result = check_redis_health()
    assert isinstance(result, bool)


# --- LLM client ---

def test_llm_cost_calculation():
    """Test LLM cost calculation."""
    from src.tools.llm_client import calculate_cost

    # Test GPT-4o-mini pricing (0.15 per 1M tokens)
    cost = calculate_cost(1_000_000, "openai/gpt-4o-mini")
    assert cost == pytest.approx(0.15)

    # Test Claude Haiku pricing (0.80 per 1M tokens)
    cost = calculate_cost(1_000_000, "anthropic/claude-haiku-4.5")
    assert cost == pytest.approx(0.80)

    # Unknown models use the default price
    assert calculate_cost(1000, "some/other-model") == pytest.approx(0.00015)


def test_generator_without_api_key_is_not_ready(monkeypatch):
    """Missing credentials surface as a readiness failure"""
    from src.tools.llm_client import OpenRouterTextGenerator
    from src.utils.errors import BackendNotReadyError

    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    generator = OpenRouterTextGenerator()

    with pytest.raises(BackendNotReadyError):
        asyncio.run(generator.ensure_ready())


def test_generator_satisfies_protocol():
    from src.tools.llm_client import OpenRouterTextGenerator, TextGenerator

    assert isinstance(OpenRouterTextGenerator(api_key="test"), TextGenerator)


def test_build_generator_without_key(monkeypatch):
    from src.tools.llm_client import build_generator_from_config

    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    assert build_generator_from_config({'model': "openai/gpt-4o-mini"}) is None


def test_build_generator_with_key(monkeypatch):
    from src.tools.llm_client import build_generator_from_config

    monkeypatch.setenv("OPENROUTER_API_KEY", "test-key")
    monkeypatch.delenv("DEFAULT_LLM_MODEL", raising=False)
    generator = build_generator_from_config({'model': "openai/gpt-4o-mini", 'max_tokens': 256})

    assert generator.model == "openai/gpt-4o-mini"
    assert generator.max_tokens == 256


# --- SMS source ---

def test_load_messages_defaults_to_samples(monkeypatch):
    from src.sources.sms_source import load_messages, SAMPLE_MESSAGES

    monkeypatch.delenv("SMS_EXPORT_PATH", raising=False)
    assert load_messages() == SAMPLE_MESSAGES


def test_load_messages_missing_export_falls_back(tmp_path):
    from src.sources.sms_source import load_messages, SAMPLE_MESSAGES

    assert load_messages(str(tmp_path / "absent.csv")) == SAMPLE_MESSAGES


def test_read_inbox_export_newest_first():
    from src.sources.sms_source import read_inbox_export

    messages = read_inbox_export(str(FIXTURES / "sample_inbox.csv"))
    assert len(messages) == 4
    assert "Satguru" in messages[0]
    assert "OTP" in messages[1]
    assert "Zomato" in messages[-1]


def test_read_inbox_export_limit():
    from src.sources.sms_source import read_inbox_export

    messages = read_inbox_export(str(FIXTURES / "sample_inbox.csv"), limit=2)
    assert len(messages) == 2


def test_load_messages_from_env(monkeypatch):
    from src.sources.sms_source import load_messages

    monkeypatch.setenv("SMS_EXPORT_PATH", str(FIXTURES / "sample_inbox.csv"))
    assert len(load_messages()) == 4


def test_export_without_body_column_falls_back(tmp_path):
    from src.sources.sms_source import load_messages, SAMPLE_MESSAGES

    export = tmp_path / "inbox.csv"
    export.write_text("date,text\n2025-08-20,hello\n")
    assert load_messages(str(export)) == SAMPLE_MESSAGES


# --- logging ---

def test_logger_does_not_duplicate_handlers():
    from src.utils.logging import get_logger

    first = get_logger("tests.duplicate")
    second = get_logger("tests.duplicate")

    assert first.logger is second.logger
    assert len(second.logger.handlers) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
