"""Embedded relevance search for source code.

This package provides a pure-Python search stack:
- analyzers: code-aware tokenizer, stopword filters and a pluggable stemmer
- indexer: document store and inverted index with incremental statistics
- stats: IDF and BM25+ term weighting
- bm25_engine: query processing and the engine facade
- snapshot: export/import of the full engine state
- storage / sqlite_storage: durable snapshot stores keyed by corpus id
"""
