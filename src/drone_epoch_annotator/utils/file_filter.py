# src/drone_epoch_annotator/utils/file_filter.py
from typing import Iterable, List, Optional, TypeVar

from pathspec import PathSpec
from pathspec.patterns.gitwildmatch import GitWildMatchPattern

T = TypeVar("T")


def build_path_spec(patterns: Optional[Iterable[str]]) -> Optional[PathSpec]:
    patterns = [p for p in (patterns or []) if p]
    if not patterns:
        return None
    return PathSpec.from_lines(GitWildMatchPattern, patterns)


def filter_by_patterns(
    items: Iterable[T],
    path_of,
    include_patterns: Optional[List[str]] = None,
    exclude_patterns: Optional[List[str]] = None
) -> List[T]:
    """
    Keep the items whose path matches the include patterns and none of the exclude patterns.

    Args:
        items: Objects to filter, e.g. FileDiff records
        path_of: Callable returning the repository-relative path of an item
        include_patterns: Optional git-style patterns; when empty everything is included
        exclude_patterns: Optional git-style patterns applied after the include pass

    Returns:
        The surviving items in their original order
    """
    include_spec = build_path_spec(include_patterns)
    exclude_spec = build_path_spec(exclude_patterns)

    kept = []
    for item in items:
        path = path_of(item)
        if include_spec and not include_spec.match_file(path):
            continue
        if exclude_spec and exclude_spec.match_file(path):
            continue
        kept.append(item)
    return kept
