"""Command line driver: index a source tree, query it, inspect stored corpora."""

# ruff: noqa: T201  # CLI prints results to stdout

from __future__ import annotations

import argparse
from collections.abc import Iterator, Sequence
import logging
from pathlib import Path

import anyio
import orjson

from repo_search.config import Settings
from repo_search.observability.logging import configure_logging
from repo_search.observability.metrics import init_metrics
from repo_search.observability.tracing import bind_log_context, init_tracing
from repo_search.search.bm25_engine import BM25SearchEngine, SearchFilters
from repo_search.search.storage import SnapshotStoreBase
from repo_search.search.storage_factory import snapshot_store_from_settings


logger = logging.getLogger(__name__)

LANGUAGE_BY_SUFFIX = {
    ".c": "c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".cs": "csharp",
    ".go": "go",
    ".h": "c",
    ".hpp": "cpp",
    ".java": "java",
    ".js": "javascript",
    ".jsx": "javascript",
    ".kt": "kotlin",
    ".md": "markdown",
    ".php": "php",
    ".py": "python",
    ".rb": "ruby",
    ".rs": "rust",
    ".swift": "swift",
    ".ts": "typescript",
    ".tsx": "typescript",
}
PROSE_LANGUAGES = frozenset({"markdown"})
MAX_FILE_BYTES = 1_000_000
SKIPPED_DIRS = frozenset({".git", "node_modules", "__pycache__", ".venv", "dist", "build"})


def detect_language(path: Path) -> str | None:
    return LANGUAGE_BY_SUFFIX.get(path.suffix.lower())


def iter_source_files(root: Path, patterns: Sequence[str] | None = None) -> Iterator[Path]:
    """Yield indexable files under ``root`` in a stable order."""
    candidates = (
        sorted({path for pattern in patterns for path in root.rglob(pattern)}) if patterns else sorted(root.rglob("*"))
    )
    for path in candidates:
        if not path.is_file() or SKIPPED_DIRS.intersection(path.relative_to(root).parts):
            continue
        if not patterns and detect_language(path) is None:
            continue
        if path.stat().st_size > MAX_FILE_BYTES:
            logger.debug("Skipping %s: larger than %d bytes", path, MAX_FILE_BYTES)
            continue
        yield path


async def _load_or_create(store: SnapshotStoreBase, corpus_id: str, settings: Settings) -> BM25SearchEngine:
    engine = await store.load(corpus_id)
    if engine is None:
        engine = BM25SearchEngine(settings.engine_config(), name=corpus_id)
    return engine


async def _cmd_index(args: argparse.Namespace, settings: Settings, store: SnapshotStoreBase) -> int:
    root = Path(args.directory).resolve()
    if not root.is_dir():
        print(f"Not a directory: {root}")
        return 2

    if args.rebuild:
        engine = BM25SearchEngine(settings.engine_config(), name=args.corpus)
    else:
        engine = await _load_or_create(store, args.corpus, settings)

    indexed = 0
    for path in iter_source_files(root, args.pattern):
        relative = path.relative_to(root).as_posix()
        language = detect_language(path)
        content = path.read_text(encoding="utf-8", errors="replace")
        metadata = {"filePath": relative, "language": language, "isCode": language not in PROSE_LANGUAGES}
        if engine.add_document(relative, content, metadata) is not None:
            indexed += 1

    await store.save(args.corpus, engine)
    print(orjson.dumps({"corpus": args.corpus, "indexed": indexed, **engine.get_stats().to_dict()}).decode())
    return 0


async def _cmd_query(args: argparse.Namespace, settings: Settings, store: SnapshotStoreBase) -> int:
    engine = await store.load(args.corpus)
    if engine is None:
        print(f"No index stored for corpus '{args.corpus}'")
        return 1
    results = engine.search(
        args.text,
        limit=settings.default_limit if args.limit is None else args.limit,
        min_score=args.min_score,
        include_positions=args.positions,
        filters=SearchFilters(language=args.language, file_path=args.path),
    )
    for result in results:
        print(orjson.dumps(result.to_dict()).decode())
    return 0


async def _cmd_stats(args: argparse.Namespace, settings: Settings, store: SnapshotStoreBase) -> int:
    engine = await store.load(args.corpus)
    if engine is None:
        print(f"No index stored for corpus '{args.corpus}'")
        return 1
    print(orjson.dumps(engine.get_stats().to_dict()).decode())
    return 0


async def _cmd_drop(args: argparse.Namespace, settings: Settings, store: SnapshotStoreBase) -> int:
    deleted = await store.delete(args.corpus)
    print(f"Deleted '{args.corpus}'" if deleted else f"No index stored for corpus '{args.corpus}'")
    return 0 if deleted else 1


async def _cmd_list(args: argparse.Namespace, settings: Settings, store: SnapshotStoreBase) -> int:
    for entry in await store.list_corpora():
        saved_at = entry.saved_at.isoformat() if entry.saved_at else "-"
        print(f"{entry.corpus_id}\t{entry.doc_count}\t{saved_at}")
    return 0


_COMMANDS = {
    "index": _cmd_index,
    "query": _cmd_query,
    "stats": _cmd_stats,
    "drop": _cmd_drop,
    "list": _cmd_list,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="repo-search", description="BM25 keyword search over source trees")
    parser.add_argument("--storage-dir", type=Path, help="Override REPO_SEARCH_STORAGE_DIR")
    parser.add_argument("--backend", choices=["json", "sqlite"], help="Override REPO_SEARCH_STORAGE_BACKEND")
    sub = parser.add_subparsers(dest="command", required=True)

    index = sub.add_parser("index", help="Index files under a directory")
    index.add_argument("directory")
    index.add_argument("--corpus", required=True, help="Identifier the snapshot is stored under")
    index.add_argument("--pattern", action="append", help="Glob pattern to include (repeatable)")
    index.add_argument("--rebuild", action="store_true", help="Start from an empty index")

    query = sub.add_parser("query", help="Search a stored corpus")
    query.add_argument("corpus")
    query.add_argument("text")
    query.add_argument("--limit", type=int)
    query.add_argument("--min-score", type=float, default=0.0)
    query.add_argument("--language")
    query.add_argument("--path", help="Only files whose path contains this substring")
    query.add_argument("--positions", action="store_true", help="Include matched term positions")

    stats = sub.add_parser("stats", help="Show corpus statistics")
    stats.add_argument("corpus")

    drop = sub.add_parser("drop", help="Delete a stored corpus")
    drop.add_argument("corpus")

    sub.add_parser("list", help="List stored corpora")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {}
    if args.storage_dir is not None:
        overrides["storage_dir"] = args.storage_dir
    if args.backend is not None:
        overrides["storage_backend"] = args.backend
    settings = Settings(**overrides)
    configure_logging(settings.log_level, settings.log_json)
    init_tracing()
    init_metrics()

    store = snapshot_store_from_settings(settings)
    handler = _COMMANDS[args.command]
    corpus = getattr(args, "corpus", None) or ""

    async def _run() -> int:
        with bind_log_context(corpus=corpus):
            return await handler(args, settings, store)

    return anyio.run(_run)


if __name__ == "__main__":
    raise SystemExit(main())
