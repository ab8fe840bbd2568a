# src/drone_epoch_annotator/annotator.py
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from .diff_parser import parse_diff_text, parse_patch
from .models import AnnotationResult, PendingAnnotation, RequestContext
from .planner import plan_annotations
from .reconciler import REVIEW_MARKER, ReconcilePolicy, apply_deletions, reconcile

if TYPE_CHECKING:
    from .plugin_config import PluginConfig
    from .scm_client import GitHubReviewClient

logger = logging.getLogger(__name__)

STRATEGY_BATCHED = "batched"
STRATEGY_PER_COMMIT = "per_commit"

REVIEW_BODY = f"{REVIEW_MARKER}\nEpoch timestamps found in this pull request, shown as UTC dates."

# Policies applied before posting; CLEAN_OUTDATED_SELF_AUTHORED runs after.
PRE_PASS_POLICIES = (ReconcilePolicy.CLEAN_ALL_SELF_AUTHORED, ReconcilePolicy.CLEAN_MARKED_BATCH_COMMENTS)


@dataclass
class AnnotatorOptions:
    self_login: str
    min_epoch: int = 0
    max_line_length: int = 0
    strategy: str = STRATEGY_BATCHED
    policies: List[ReconcilePolicy] = field(default_factory=lambda: [
        ReconcilePolicy.CLEAN_MARKED_BATCH_COMMENTS, ReconcilePolicy.CLEAN_OUTDATED_SELF_AUTHORED,
    ])
    include_patterns: Optional[List[str]] = None
    exclude_patterns: Optional[List[str]] = None

    @classmethod
    def from_config(cls, config: 'PluginConfig') -> 'AnnotatorOptions':
        return cls(
            self_login=config.self_login,
            min_epoch=config.min_epoch,
            max_line_length=config.max_line_length,
            strategy=config.strategy,
            policies=ReconcilePolicy.parse_list(config.cleanup_policies),
            include_patterns=config.include_patterns,
            exclude_patterns=config.exclude_patterns,
        )


async def plan_from_pull_request_diff(client: 'GitHubReviewClient', ctx: RequestContext,
                                      options: AnnotatorOptions) -> List[PendingAnnotation]:
    diff_text = await client.get_pull_request_diff(ctx)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Retrieved diff text (first 1000 chars):\n{diff_text[:1000]}")
    return plan_annotations(
        parse_diff_text(diff_text),
        min_epoch=options.min_epoch,
        max_line_length=options.max_line_length,
        include_patterns=options.include_patterns,
        exclude_patterns=options.exclude_patterns,
        commit_sha=ctx.head_sha,
    )


async def plan_from_commits(client: 'GitHubReviewClient', ctx: RequestContext,
                            options: AnnotatorOptions) -> List[PendingAnnotation]:
    """Walks every commit of the pull request and plans annotations from each file's patch."""
    annotations: List[PendingAnnotation] = []
    for commit in await client.list_commits(ctx):
        sha = commit["sha"]
        logger.debug(f"Processing commit {sha}")
        file_diffs = []
        for file_info in await client.get_commit_files(ctx, sha):
            logger.debug(f"Processing {file_info.get('filename')}")
            file_diffs.append(parse_patch(
                file_info["filename"],
                file_info.get("patch"),
                status=file_info.get("status", "modified"),
                old_path=file_info.get("previous_filename"),
            ))
        annotations.extend(plan_annotations(
            file_diffs,
            min_epoch=options.min_epoch,
            max_line_length=options.max_line_length,
            include_patterns=options.include_patterns,
            exclude_patterns=options.exclude_patterns,
            commit_sha=sha,
        ))
    return annotations


async def post_annotations(client: 'GitHubReviewClient', ctx: RequestContext, options: AnnotatorOptions,
                           annotations: List[PendingAnnotation]) -> int:
    if not annotations:
        logger.info("No new annotations to post.")
        return 0
    if options.strategy == STRATEGY_PER_COMMIT:
        for annotation in annotations:
            await client.create_review_comment(
                ctx, annotation.path, annotation.line, annotation.side,
                annotation.commit_sha or ctx.head_sha, annotation.body,
            )
    else:
        await client.create_review(ctx, REVIEW_BODY, annotations, event="COMMENT")
    logger.info(f"Posted {len(annotations)} annotation(s) to PR #{ctx.pr_number}.")
    return len(annotations)


async def annotate_pull_request(client: 'GitHubReviewClient', ctx: RequestContext,
                                options: AnnotatorOptions) -> AnnotationResult:
    """
    Brings the epoch annotations on one pull request in line with its current diff.

    Existing comments are read first, new annotations are planned from the
    diff, stale self-authored comments are removed, whatever is still missing
    is posted, and finally outdated self-authored threads are cleaned up.
    Any failed API call aborts the run; nothing already done is rolled back.
    """
    result = AnnotationResult()

    threads = await client.list_review_threads(ctx)
    reviews = await client.list_reviews(ctx)
    comments = await client.list_review_comments(ctx)

    if options.strategy == STRATEGY_PER_COMMIT:
        pending = await plan_from_commits(client, ctx, options)
    else:
        pending = await plan_from_pull_request_diff(client, ctx, options)
    result.planned = len(pending)

    pre_pass = [policy for policy in options.policies if policy in PRE_PASS_POLICIES]
    plan = reconcile(threads, reviews, comments, options.self_login, pre_pass, pending=pending)
    result.deleted += await apply_deletions(client, ctx, plan)

    result.posted = await post_annotations(client, ctx, options, plan.annotations_to_post)

    if ReconcilePolicy.CLEAN_OUTDATED_SELF_AUTHORED in options.policies:
        threads = await client.list_review_threads(ctx)
        post_plan = reconcile(threads, [], [], options.self_login, [ReconcilePolicy.CLEAN_OUTDATED_SELF_AUTHORED])
        result.deleted += await apply_deletions(client, ctx, post_plan)

    logger.info(
        f"PR #{ctx.pr_number}: planned {result.planned}, posted {result.posted}, deleted {result.deleted} comment(s)."
    )
    return result
