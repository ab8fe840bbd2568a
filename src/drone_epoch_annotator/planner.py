# src/drone_epoch_annotator/planner.py
import logging
from typing import Callable, Iterable, List, Optional

from .epoch_rewriter import rewrite_line
from .models import FileDiff, LineKind, PendingAnnotation
from .utils.file_filter import filter_by_patterns

logger = logging.getLogger(__name__)

Rewriter = Callable[[str, int, int], str]


def plan_annotations(
    file_diffs: Iterable[FileDiff],
    rewriter: Rewriter = rewrite_line,
    min_epoch: int = 0,
    max_line_length: int = 0,
    include_patterns: Optional[List[str]] = None,
    exclude_patterns: Optional[List[str]] = None,
    commit_sha: Optional[str] = None,
) -> List[PendingAnnotation]:
    """
    Builds one annotation per inserted line whose rewritten form differs from the original.

    Only added and modified files are considered; binary and deleted files
    never produce annotations. Output follows file order, then line order.
    """
    candidates = filter_by_patterns(
        file_diffs, lambda f: f.path,
        include_patterns=include_patterns, exclude_patterns=exclude_patterns,
    )

    annotations: List[PendingAnnotation] = []
    for file_diff in candidates:
        if not file_diff.is_annotatable:
            logger.debug(f"Skipping {file_diff.path} ({file_diff.status.value})")
            continue
        for hunk in file_diff.hunks:
            for change in hunk.lines:
                if change.kind is not LineKind.INSERT:
                    continue
                rewritten = rewriter(change.content, min_epoch, max_line_length)
                if rewritten == change.content:
                    continue
                logger.debug(f"Epoch found in {file_diff.path}:{change.new_line_number}")
                annotations.append(PendingAnnotation(
                    path=file_diff.path,
                    line=change.new_line_number,
                    body=rewritten,
                    commit_sha=commit_sha,
                ))

    logger.info(f"Planned {len(annotations)} annotation(s) across {len(candidates)} file(s).")
    return annotations
