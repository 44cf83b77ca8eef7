#!/usr/bin/env python3
"""CLI: Search the published indices from the command line."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure the package is importable when running as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from codeseek import config
from codeseek.storage.trigram_index import TrigramIndexSearcher
from codeseek.tools.search_code import SearchError, search_code, search_files


def main() -> None:
    parser = argparse.ArgumentParser(description="Search the mirrored code")
    parser.add_argument("pattern", help="Regular expression to search for")
    parser.add_argument("-i", "--ignore-case", action="store_true")
    parser.add_argument("-B", "--before", type=int, default=0, help="Context lines before each hit")
    parser.add_argument("-A", "--after", type=int, default=0, help="Context lines after each hit")
    parser.add_argument(
        "--files",
        action="store_true",
        help="Match the pattern against file paths instead of contents",
    )
    parser.add_argument("--file", default=None, help="Only search files whose path matches this regex")
    parser.add_argument("--exclude", default=None, help="Skip files whose path matches this regex")
    parser.add_argument("--max-hits", type=int, default=100)
    args = parser.parse_args()

    try:
        if args.files:
            searcher = TrigramIndexSearcher(config.FILE_INDEX_PATH)
            paths, truncated = search_files(
                searcher, args.pattern,
                exclude_file_filter=args.exclude,
                max_hits=args.max_hits,
                ignore_case=args.ignore_case,
            )
            for p in paths:
                print(p)
        else:
            searcher = TrigramIndexSearcher(config.CODE_INDEX_PATH)
            result = search_code(
                searcher, args.pattern,
                file_filter=args.file,
                exclude_file_filter=args.exclude,
                max_hits=args.max_hits,
                ignore_case=args.ignore_case,
                before_lines=args.before,
                after_lines=args.after,
            )
            for fh in result.files:
                for hit in fh.lines:
                    sep = ":" if hit.match else "-"
                    print(f"{fh.path}{sep}{hit.number}{sep}{hit.line}")
            truncated = result.truncated
    except (FileNotFoundError, SearchError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if truncated:
        print("... (results truncated, raise --max-hits to see more)", file=sys.stderr)


if __name__ == "__main__":
    main()
