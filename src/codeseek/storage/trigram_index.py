"""Trigram index over files, stored in Tantivy.

Each indexed file becomes one document whose ``trigrams`` field holds the
distinct 3-byte windows of its lower-cased content, hex-encoded so that every
trigram is a single alphanumeric token. A query for a literal string returns
the files that contain all of the literal's trigrams: a superset of the files
that contain the literal, to be confirmed by matching the file itself.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import tantivy

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 1 << 20
MAX_TEXT_TRIGRAMS = 20_000
BINARY_SNIFF_BYTES = 8192
META_FILE = "names.json"

# Regex syntax characters; a pattern free of them is searched as a literal
_REGEX_META = frozenset(".^$*+?{}[]\\|()")


def _build_schema() -> tantivy.Schema:
    builder = tantivy.SchemaBuilder()
    builder.add_integer_field("file_id", stored=True, indexed=True)
    builder.add_text_field("path", stored=True, tokenizer_name="raw")
    builder.add_text_field("trigrams", stored=False, tokenizer_name="default")
    return builder.build()


def trigrams_of(data: bytes) -> set[str]:
    """Return the hex-encoded trigrams of ``data``, case-folded."""
    data = data.lower()
    return {data[i:i + 3].hex() for i in range(len(data) - 2)}


class TrigramQuery:
    """Set of trigrams a candidate file must contain. Empty matches every file."""

    __slots__ = ("trigrams",)

    def __init__(self, trigrams: frozenset[str] = frozenset()) -> None:
        self.trigrams = trigrams

    @classmethod
    def for_literal(cls, text: str) -> TrigramQuery:
        return cls(frozenset(trigrams_of(text.encode("utf-8"))))

    @classmethod
    def for_pattern(cls, pattern: str, ignore_case: bool = False) -> TrigramQuery:
        """Query for a regex source: its trigrams if it is a plain literal.

        Trigrams are folded for ASCII only, so a case-insensitive pattern with
        other characters cannot be narrowed and matches every file.
        """
        if any(ch in _REGEX_META for ch in pattern):
            return cls()
        if ignore_case and not pattern.isascii():
            return cls()
        return cls.for_literal(pattern)

    def __bool__(self) -> bool:
        return bool(self.trigrams)

    def __repr__(self) -> str:
        return f"TrigramQuery({len(self.trigrams)} trigrams)"


class TrigramIndexBuilder:
    """Writes a new trigram index into the (not yet existing) directory ``path``."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._path.mkdir(parents=True)
        self._index = tantivy.Index(_build_schema(), path=str(self._path))
        self._writer: tantivy.IndexWriter | None = self._index.writer(heap_size=50_000_000)
        self._roots: list[str] = []
        self._names: list[str] = []
        self.skipped = 0

    @property
    def file_count(self) -> int:
        return len(self._names)

    def add_root(self, root: Path) -> None:
        self._roots.append(str(root))

    def add_file(self, path: Path) -> None:
        """Index one file. Binary and oversized files are skipped, not errors."""
        path = Path(path)
        if path.stat().st_size > MAX_FILE_SIZE:
            logger.debug("%s: skipped, too large", path)
            self.skipped += 1
            return
        data = path.read_bytes()
        if b"\x00" in data[:BINARY_SNIFF_BYTES]:
            logger.debug("%s: skipped, binary file", path)
            self.skipped += 1
            return
        trigrams = trigrams_of(data)
        if len(trigrams) > MAX_TEXT_TRIGRAMS:
            logger.debug("%s: skipped, too many trigrams (%d)", path, len(trigrams))
            self.skipped += 1
            return

        file_id = len(self._names)
        self._writer.add_document(tantivy.Document(
            file_id=file_id,
            path=[str(path)],
            trigrams=[" ".join(sorted(trigrams))],
        ))
        self._names.append(str(path))

    def flush(self) -> None:
        """Commit every added document and write the index metadata."""
        self._writer.commit()
        self._writer.wait_merging_threads()
        self._writer = None
        meta = {"roots": self._roots, "names": self._names}
        (self._path / META_FILE).write_text(json.dumps(meta), encoding="utf-8")
        logger.debug(
            "Flushed %s: %d files, %d skipped", self._path, len(self._names), self.skipped,
        )

    def abort(self) -> None:
        """Discard uncommitted documents and stop the writer's merge threads.

        The index directory can be removed safely afterwards.
        """
        if self._writer is None:
            return
        self._writer.rollback()
        self._writer.wait_merging_threads()
        self._writer = None


class TrigramIndexSearcher:
    """Read-only view of a published trigram index.

    ``path`` may be the published link; it is resolved once, so the searcher
    keeps reading the same generation after a newer one is published.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path).resolve()
        if not (self._path / META_FILE).exists():
            raise FileNotFoundError(f"No index found at {path}")
        meta = json.loads((self._path / META_FILE).read_text(encoding="utf-8"))
        self.roots: list[str] = meta["roots"]
        self._names: list[str] = meta["names"]
        self._index = tantivy.Index(_build_schema(), path=str(self._path))
        self._index.reload()

    def __len__(self) -> int:
        return len(self._names)

    def name(self, file_id: int) -> str:
        """Return the path of the file with id ``file_id``."""
        return self._names[file_id]

    def posting_query(self, query: TrigramQuery) -> list[int]:
        """Return the ids of files containing every trigram of ``query``, ascending."""
        if not query:
            return list(range(len(self._names)))
        searcher = self._index.searcher()
        if searcher.num_docs == 0:
            return []
        parsed = self._index.parse_query(" AND ".join(sorted(query.trigrams)), ["trigrams"])
        results = searcher.search(parsed, limit=searcher.num_docs)
        return sorted(searcher.doc(addr)["file_id"][0] for _score, addr in results.hits)
