"""Content and file-name search over the published trigram indices."""

from __future__ import annotations

import logging
import re
import time
from contextlib import closing
from dataclasses import dataclass, field

from codeseek.storage.trigram_index import TrigramIndexSearcher, TrigramQuery
from codeseek.tools.context_match import find_matches

logger = logging.getLogger(__name__)

DEFAULT_MAX_HITS = 100
# Hits a single file may add past max_hits before it is cut off
FILE_HIT_SLACK = 20


class SearchError(Exception):
    """Raised for a query that cannot be compiled."""


@dataclass
class HitLine:
    number: int
    line: str
    match: bool
    span: tuple[int, int] | None = None  # first match in ``line``


@dataclass
class FileHits:
    path: str
    lines: list[HitLine] = field(default_factory=list)


@dataclass
class SearchResult:
    files: list[FileHits] = field(default_factory=list)
    hits: int = 0
    truncated: bool = False


def _compile(pattern: str, ignore_case: bool, what: str) -> re.Pattern[str]:
    flags = re.IGNORECASE if ignore_case else 0
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise SearchError(f"Bad {what} regular expression: {e}") from e


def _relative(path: str, prefix: str) -> str:
    if prefix and path.startswith(prefix):
        return path[len(prefix):].lstrip("/")
    return path


def search_code(
    searcher: TrigramIndexSearcher,
    query: str,
    *,
    file_filter: str | None = None,
    exclude_file_filter: str | None = None,
    max_hits: int = DEFAULT_MAX_HITS,
    ignore_case: bool = False,
    before_lines: int = 0,
    after_lines: int = 0,
) -> SearchResult:
    """Find the lines matching ``query`` in the content index.

    Args:
        searcher: Open content index.
        query: Regular expression matched against each line.
        file_filter: Only search files whose path matches this regex.
        exclude_file_filter: Skip files whose path matches this regex.
        max_hits: Stop after this many matching lines. The file being read
            may add up to FILE_HIT_SLACK more before it is cut off.
        ignore_case: Match query and file filters case-insensitively.
        before_lines: Context lines to include before each hit.
        after_lines: Context lines to include after each hit.

    Paths in the result and in the filters are relative to the index root.
    """
    query_re = _compile(query, ignore_case, "query")
    file_re = _compile(file_filter, ignore_case, "file") if file_filter else None
    exclude_re = (
        _compile(exclude_file_filter, ignore_case, "exclude file") if exclude_file_filter else None
    )
    prefix = searcher.roots[0] if searcher.roots else ""

    t0 = time.perf_counter()
    post = searcher.posting_query(TrigramQuery.for_pattern(query, ignore_case))
    result = SearchResult()

    for file_id in post:
        if result.hits >= max_hits:
            result.truncated = True
            break

        full_path = searcher.name(file_id)
        path = _relative(full_path, prefix)
        if file_re is not None and not file_re.search(path):
            continue
        if exclude_re is not None and exclude_re.search(path):
            continue

        file_hits = FileHits(path)
        try:
            with closing(find_matches(full_path, query_re, before_lines, after_lines)) as matches:
                for m in matches:
                    hit = HitLine(m.lineno, m.line, m.match)
                    found = query_re.search(m.line)
                    if found:
                        hit.span = found.span()
                    file_hits.lines.append(hit)
                    if m.match:
                        result.hits += 1
                        if result.hits >= max_hits + FILE_HIT_SLACK:
                            result.truncated = True
                            break
        except OSError as e:
            logger.warning("Could not read %s: %s", full_path, e)
            continue

        if file_hits.lines:
            result.files.append(file_hits)

    logger.debug(
        "search %r: %d candidates, %d hits in %d files, %.0fms",
        query, len(post), result.hits, len(result.files), (time.perf_counter() - t0) * 1000,
    )
    return result


def search_files(
    searcher: TrigramIndexSearcher,
    file_pattern: str,
    *,
    exclude_file_filter: str | None = None,
    max_hits: int = DEFAULT_MAX_HITS,
    ignore_case: bool = False,
) -> tuple[list[str], bool]:
    """Find file paths matching ``file_pattern`` using the path index.

    Returns the matching corpus-relative paths and whether the list was
    truncated at ``max_hits``.
    """
    file_re = _compile(file_pattern, ignore_case, "file")
    exclude_re = (
        _compile(exclude_file_filter, ignore_case, "exclude file") if exclude_file_filter else None
    )

    paths: list[str] = []
    for shard_id in searcher.posting_query(TrigramQuery.for_pattern(file_pattern, ignore_case)):
        for m in find_matches(searcher.name(shard_id), file_re):
            if exclude_re is not None and exclude_re.search(m.line):
                continue
            if len(paths) >= max_hits:
                return paths, True
            paths.append(m.line)
    return paths, False
