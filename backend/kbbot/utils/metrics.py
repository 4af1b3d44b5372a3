"""Prometheus metrics shared by the sync and answer pipelines."""
from prometheus_client import Counter

SYNC_RUNS = Counter(
    "kbbot_sync_runs_total",
    "Synchronization passes by outcome",
    ["outcome"],
)

SYNC_DOCUMENTS = Counter(
    "kbbot_sync_documents_total",
    "Documents handled by synchronization passes by resulting status",
    ["status"],
)

ANSWERS = Counter(
    "kbbot_answers_total",
    "Answered questions by outcome",
    ["outcome"],
)

CORPUS_FALLBACKS = Counter(
    "kbbot_corpus_fallbacks_total",
    "Corpus loads that fell back to a lower tier",
    ["tier"],
)

PROMPT_TRUNCATIONS = Counter(
    "kbbot_prompt_truncations_total",
    "Prompts rebuilt with truncated context because of the token budget",
)
