"""Shared fixtures: fake text generation backends and a no-delay batch config"""

import asyncio
import json
import pytest
from src.db.transaction_store import SqliteTransactionStore


class FakeGenerator:
    """
    In-process TextGenerator.

    `reply` maps a prompt to the full model output; the output is streamed
    back in small chunks. Prompts containing `hang_marker` never finish.
    """

    def __init__(self, reply, ready=True, hang_marker=None, delay=0.0, chunk_size=7):
        self.reply = reply
        self.ready = ready
        self.hang_marker = hang_marker
        self.delay = delay
        self.chunk_size = chunk_size
        self.prompts = []
        self.images = []
        self.ready_calls = 0

    async def ensure_ready(self) -> bool:
        self.ready_calls += 1
        if isinstance(self.ready, Exception):
            raise self.ready
        return self.ready

    async def generate(self, prompt, image=None):
        self.prompts.append(prompt)
        self.images.append(image)
        if self.hang_marker and self.hang_marker in prompt:
            await asyncio.sleep(3600)
        if self.delay:
            await asyncio.sleep(self.delay)

        output = self.reply(prompt) if callable(self.reply) else self.reply
        if isinstance(output, Exception):
            raise output
        for i in range(0, len(output), self.chunk_size):
            yield output[i:i + self.chunk_size]


def llm_json(**overrides) -> str:
    """Well-formed model answer for a transaction"""
    payload = {
        "is_transaction": True,
        "source": "ICICI Bank Credit Card XX7004",
        "target": "Satguru Sweets",
        "amount": 624.00,
        "date_of_transaction": 1756166400000,
        "type": "DEBIT",
        "mode": "CARD",
        "category": "FOOD",
        "other_info": "To dispute call 18001080",
    }
    payload.update(overrides)
    return json.dumps(payload)


@pytest.fixture
def fake_generator():
    """Factory for FakeGenerator instances"""
    return FakeGenerator


@pytest.fixture
def model_answer():
    """Factory for well-formed model answers"""
    return llm_json


@pytest.fixture
def batch_config():
    """Configuration with all pacing delays disabled"""
    return {
        'version': 1,
        'batch': {
            'chunk_size': 10,
            'pacing_min_ms': 0,
            'pacing_max_ms': 0,
            'inter_chunk_pause_ms': 0,
            'run_timeout_seconds': None,
        },
        'llm': {
            'readiness_retries': 1,
            'readiness_base_delay_seconds': 0,
            'readiness_timeout_seconds': 0.5,
            'text_timeout_seconds': 0.2,
            'image_timeout_seconds': 0.5,
        },
        'store': {'path': ':memory:'},
    }


@pytest.fixture
def store():
    """Fresh in-memory transaction store"""
    transaction_store = SqliteTransactionStore(":memory:")
    yield transaction_store
    transaction_store.close()


@pytest.fixture(autouse=True)
def in_memory_state(monkeypatch):
    """Keep progress snapshots in-process during tests"""
    monkeypatch.setenv("STATE_BACKEND", "memory")
