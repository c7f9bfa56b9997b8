"""Prometheus metrics definitions"""

from prometheus_client import Counter, Histogram, Gauge


# Batch processing
batch_run_duration = Histogram(
    'spends_batch_run_duration_seconds',
    'Time to process a full message corpus',
    buckets=[1, 5, 15, 30, 60, 120, 300]
)

batch_in_progress = Gauge(
    'spends_batch_in_progress',
    'Whether a batch run is currently active (0/1)'
)

messages_processed = Counter(
    'spends_messages_processed_total',
    'Messages attempted by the batch orchestrator'
)

transactions_detected = Counter(
    'spends_transactions_detected_total',
    'Transactions extracted and persisted',
    labelnames=['extractor']  # llm, rule_based
)

# LLM tier
llm_fallbacks = Counter(
    'spends_llm_fallbacks_total',
    'LLM extractions that fell back to the rule-based parser',
    labelnames=['reason']  # timeout, invalid_output, backend_error
)

llm_tokens_counter = Counter(
    'spends_llm_tokens_used_total',
    'Total LLM tokens consumed',
    labelnames=['model_name']
)

llm_cost_counter = Counter(
    'spends_llm_cost_dollars_total',
    'Total LLM cost in USD',
    labelnames=['model_name']
)

llm_api_latency = Histogram(
    'spends_llm_api_latency_seconds',
    'Latency of streamed LLM generations',
    labelnames=['model_name'],
    buckets=[0.5, 1, 2, 5, 10, 30, 60]
)

llm_readiness_failures = Counter(
    'spends_llm_readiness_failures_total',
    'Batch runs that degraded to rule-based parsing'
)
