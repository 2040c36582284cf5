"""Shared test fixtures and configuration."""

import logging
import os

import pytest

from repo_search.search.bm25_engine import BM25SearchEngine


# Environment that pins every setting tests rely on
TEST_ENV = {
    "REPO_SEARCH_BM25_K1": "1.5",
    "REPO_SEARCH_BM25_B": "0.75",
    "REPO_SEARCH_BM25_DELTA": "0.5",
    "REPO_SEARCH_MIN_TOKEN_LENGTH": "2",
    "REPO_SEARCH_MAX_TOKEN_LENGTH": "50",
    "REPO_SEARCH_DEFAULT_LIMIT": "10",
    "REPO_SEARCH_STORAGE_BACKEND": "json",
    "REPO_SEARCH_LOG_LEVEL": "warning",
    "REPO_SEARCH_LOG_JSON": "true",
}

for key, value in TEST_ENV.items():
    os.environ[key] = value


SAMPLE_DOCUMENTS = [
    (
        "src/cart.js",
        "function calculateTotal(items) { return items.reduce((sum, item) => sum + item.price, 0); }",
        {"filePath": "src/cart.js", "language": "javascript"},
    ),
    (
        "src/calculator.ts",
        "class Calculator { add(a: number, b: number) { return a + b; } }",
        {"filePath": "src/calculator.ts", "language": "typescript"},
    ),
    (
        "lib/auth/session.py",
        "def refresh_session_token(session): session.token = issue_token(session.user_id)",
        {"filePath": "lib/auth/session.py", "language": "python"},
    ),
    (
        "docs/auth.md",
        "Sessions expire after one hour. Refreshing the session token extends the expiry.",
        {"filePath": "docs/auth.md", "language": "markdown", "isCode": False},
    ),
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Reset settings env vars and point storage at a per-test directory."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("REPO_SEARCH_STORAGE_DIR", str(tmp_path / "store"))


@pytest.fixture
def engine() -> BM25SearchEngine:
    """Engine preloaded with a small mixed code/prose corpus."""
    search_engine = BM25SearchEngine(name="test")
    for doc_id, content, metadata in SAMPLE_DOCUMENTS:
        search_engine.add_document(doc_id, content, metadata)
    return search_engine


@pytest.fixture(autouse=True)
def restore_root_logger():
    """configure_logging swaps root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
