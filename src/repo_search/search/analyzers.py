"""Analyzer utilities for source-code relevance search.

The design mirrors a composable tokenizer/filter pipeline: a tokenizer turns
raw text into candidate tokens and each filter narrows or rewrites the
stream. Analyzers hold only immutable configuration, so ``tokenize`` is pure
and may be called from anywhere without shared state.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
import re
from typing import Protocol


DEFAULT_MIN_TOKEN_LENGTH = 2
DEFAULT_MAX_TOKEN_LENGTH = 50

DEFAULT_STOPWORDS: frozenset[str] = frozenset(
    {
        "a",
        "all",
        "also",
        "an",
        "and",
        "any",
        "are",
        "as",
        "at",
        "be",
        "both",
        "but",
        "by",
        "can",
        "could",
        "did",
        "do",
        "does",
        "each",
        "else",
        "few",
        "for",
        "from",
        "had",
        "has",
        "have",
        "he",
        "here",
        "how",
        "if",
        "in",
        "is",
        "it",
        "its",
        "just",
        "may",
        "might",
        "more",
        "most",
        "must",
        "new",
        "no",
        "not",
        "now",
        "of",
        "old",
        "on",
        "only",
        "or",
        "other",
        "own",
        "same",
        "shall",
        "should",
        "so",
        "some",
        "such",
        "than",
        "that",
        "the",
        "then",
        "there",
        "they",
        "this",
        "to",
        "too",
        "very",
        "was",
        "were",
        "what",
        "when",
        "where",
        "which",
        "who",
        "why",
        "will",
        "with",
        "would",
        "yes",
    }
)

# Language keywords that carry no ranking signal inside code.
CODE_STOPWORDS: frozenset[str] = frozenset(
    {
        "async",
        "await",
        "break",
        "case",
        "catch",
        "class",
        "const",
        "continue",
        "default",
        "delete",
        "do",
        "else",
        "enum",
        "export",
        "extends",
        "false",
        "finally",
        "for",
        "from",
        "function",
        "if",
        "implements",
        "import",
        "in",
        "instanceof",
        "interface",
        "let",
        "new",
        "null",
        "of",
        "private",
        "protected",
        "public",
        "return",
        "static",
        "super",
        "switch",
        "this",
        "throw",
        "true",
        "try",
        "type",
        "typeof",
        "undefined",
        "var",
        "void",
        "while",
        "with",
        "yield",
    }
)

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_IDENTIFIER_SEPARATORS = re.compile(r"[_.]")
_STRUCTURAL_PUNCTUATION = re.compile(r"[{}()\[\];:,]")
_WHITESPACE = re.compile(r"\s+")
_NUMERIC = re.compile(r"^\d+$")


class Stemmer(Protocol):
    """Protocol implemented by stemming strategies."""

    def stem(self, token: str) -> str:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[str]) -> Iterator[str]:  # pragma: no cover - interface definition
        ...


def _strip_ies(word: str) -> str:
    return word[:-3] + "y"


def _strip_es(word: str) -> str | None:
    stem = word[:-2]
    if len(stem) < 2 or stem.endswith(("s", "x", "z", "ch", "sh")):
        return None
    return stem


def _strip_with_min_stem(suffix_length: int, min_stem: int) -> Callable[[str], str | None]:
    def strip(word: str) -> str | None:
        stem = word[:-suffix_length]
        return stem if len(stem) >= min_stem else None

    return strip


# (suffix, word length must exceed, rewrite); a rewrite returning None falls through.
_SUFFIX_RULES: tuple[tuple[str, int, Callable[[str], str | None]], ...] = (
    ("ization", 7, lambda word: word[:-7] + "ize"),
    ("ation", 5, lambda word: word[:-5] + "ate"),
    ("ing", 4, _strip_with_min_stem(3, 3)),
    ("ies", 4, _strip_ies),
    ("es", 3, _strip_es),
    ("ed", 3, _strip_with_min_stem(2, 2)),
    ("ly", 3, lambda word: word[:-2]),
    ("ness", 4, lambda word: word[:-4]),
    ("ment", 4, lambda word: word[:-4]),
    ("s", 3, lambda word: None if word.endswith("ss") else word[:-1]),
)


class SuffixStemmer:
    """Deterministic suffix-stripping stemmer; the first matching rule wins."""

    def stem(self, token: str) -> str:
        for suffix, min_length, rewrite in _SUFFIX_RULES:
            if len(token) > min_length and token.endswith(suffix):
                stemmed = rewrite(token)
                if stemmed is not None:
                    return stemmed
        return token


class NoopStemmer:
    """Stemmer that returns tokens untouched."""

    def stem(self, token: str) -> str:
        return token


class LengthFilter:
    """Drops tokens outside the configured length window."""

    def __init__(self, min_length: int, max_length: int) -> None:
        self.min_length = min_length
        self.max_length = max_length

    def __call__(self, tokens: Iterable[str]) -> Iterator[str]:
        for token in tokens:
            if self.min_length <= len(token) <= self.max_length:
                yield token


class NumericFilter:
    """Drops purely numeric tokens while keeping alphanumeric ones."""

    def __call__(self, tokens: Iterable[str]) -> Iterator[str]:
        for token in tokens:
            if not _NUMERIC.match(token):
                yield token


class StopFilter:
    """Removes stopwords from the stream, comparing case-insensitively."""

    def __init__(self, stopwords: Iterable[str]) -> None:
        self.stopwords = frozenset(word.lower() for word in stopwords)

    def __call__(self, tokens: Iterable[str]) -> Iterator[str]:
        for token in tokens:
            if token.lower() not in self.stopwords:
                yield token


class StemFilter:
    """Applies a stemming strategy to every token."""

    def __init__(self, stemmer: Stemmer) -> None:
        self.stemmer = stemmer

    def __call__(self, tokens: Iterable[str]) -> Iterator[str]:
        for token in tokens:
            yield self.stemmer.stem(token)


def split_code_identifiers(text: str) -> str:
    """Rewrite code so identifiers and punctuation split on whitespace.

    ``calculateTotal(items.length)`` becomes ``calculate Total items length``.
    """

    rewritten = _CAMEL_BOUNDARY.sub(r"\1 \2", text)
    rewritten = _IDENTIFIER_SEPARATORS.sub(" ", rewritten)
    return _STRUCTURAL_PUNCTUATION.sub(" ", rewritten)


class CodeAnalyzer:
    """Tokenizer + filter pipeline tuned for source code and prose."""

    def __init__(
        self,
        *,
        min_token_length: int = DEFAULT_MIN_TOKEN_LENGTH,
        max_token_length: int = DEFAULT_MAX_TOKEN_LENGTH,
        stopwords: Sequence[str] | None = None,
        code_stopwords: Sequence[str] | None = None,
        stemmer: Stemmer | None = None,
    ) -> None:
        self.min_token_length = min_token_length
        self.max_token_length = max_token_length
        self.stemmer: Stemmer = stemmer if stemmer is not None else SuffixStemmer()
        generic = DEFAULT_STOPWORDS if stopwords is None else stopwords
        keywords = CODE_STOPWORDS if code_stopwords is None else code_stopwords
        self._text_filters: tuple[TokenFilter, ...] = (
            LengthFilter(min_token_length, max_token_length),
            NumericFilter(),
            StopFilter(generic),
        )
        self._code_filters: tuple[TokenFilter, ...] = (*self._text_filters, StopFilter(keywords))
        self._stem_filter = StemFilter(self.stemmer)

    def tokenize(self, text: object, *, is_code: bool = False, preserve_case: bool = False) -> list[str]:
        """Return the normalized terms for ``text``; non-string input yields ``[]``."""

        if not isinstance(text, str) or not text:
            return []

        processed = split_code_identifiers(text) if is_code else text
        if not preserve_case:
            processed = processed.lower()

        stream: Iterable[str] = (token for token in _WHITESPACE.split(processed) if token)
        for token_filter in self._code_filters if is_code else self._text_filters:
            stream = token_filter(stream)
        return list(self._stem_filter(stream))


_DEFAULT_ANALYZER = CodeAnalyzer()


def tokenize(text: object, *, is_code: bool = False, preserve_case: bool = False) -> list[str]:
    """Tokenize with the default analyzer settings."""

    return _DEFAULT_ANALYZER.tokenize(text, is_code=is_code, preserve_case=preserve_case)
