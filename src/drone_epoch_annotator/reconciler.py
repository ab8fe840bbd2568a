# src/drone_epoch_annotator/reconciler.py
import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterable, List, Set

from .exceptions import ConfigurationError
from .models import (
    PendingAnnotation, ReconcilePlan, RequestContext, ReviewCommentRecord, ReviewRecord, ReviewThread,
)

if TYPE_CHECKING:
    from .scm_client import GitHubReviewClient

logger = logging.getLogger(__name__)

# Every batched review this plugin creates starts with this line, which is how
# earlier runs' reviews are recognised.
REVIEW_MARKER = "<!-- drone-epoch-annotator -->"


class ReconcilePolicy(str, Enum):
    CLEAN_ALL_SELF_AUTHORED = "all"
    CLEAN_OUTDATED_SELF_AUTHORED = "outdated"
    CLEAN_MARKED_BATCH_COMMENTS = "marked"

    @classmethod
    def parse_list(cls, names: Iterable[str]) -> List["ReconcilePolicy"]:
        policies = []
        for name in names:
            try:
                policy = cls(name.strip().lower())
            except ValueError:
                valid = ", ".join(p.value for p in cls)
                raise ConfigurationError(f"Unknown cleanup policy '{name}'. Valid policies: {valid}") from None
            if policy not in policies:
                policies.append(policy)
        return policies


def is_self_authored(thread: ReviewThread, self_login: str) -> bool:
    """True when the thread has comments and every one of them is ours."""
    if thread.has_more_comments: # unseen comments may belong to anyone
        return False
    return bool(thread.comments) and all(c.author_login == self_login for c in thread.comments)


def is_outdated_self_authored(thread: ReviewThread, self_login: str) -> bool:
    return thread.is_outdated and is_self_authored(thread, self_login)


def marked_review_ids(reviews: Iterable[ReviewRecord], self_login: str, marker: str = REVIEW_MARKER) -> Set[int]:
    return {
        review.review_id for review in reviews
        if review.author_login == self_login and (review.body or "").startswith(marker)
    }


def reconcile(
    threads: List[ReviewThread],
    reviews: List[ReviewRecord],
    comments: List[ReviewCommentRecord],
    self_login: str,
    policies: Iterable[ReconcilePolicy],
    pending: Iterable[PendingAnnotation] = (),
    marker: str = REVIEW_MARKER,
) -> ReconcilePlan:
    """
    Works out which existing comments to delete and which annotations still need posting.

    A thread is only ever selected when every comment in it was written by
    ``self_login``. Pending annotations that already exist, unchanged, on a
    current self-authored thread that survives this pass are not posted
    again and that comment is kept.

    Args:
        threads: Review threads currently on the pull request.
        reviews: Reviews currently on the pull request.
        comments: Review comments currently on the pull request.
        self_login: Login of the account this plugin posts as.
        policies: Which cleanup rules apply in this pass.
        pending: Annotations planned for this run.
        marker: Prefix identifying reviews created by the batched strategy.

    Returns:
        A ReconcilePlan with the threads and loose comments to delete and the
        annotations left to post.
    """
    policies = set(policies)
    plan = ReconcilePlan()

    for thread in threads:
        if not is_self_authored(thread, self_login):
            continue
        if ReconcilePolicy.CLEAN_ALL_SELF_AUTHORED in policies:
            plan.threads_to_delete.append(thread)
        elif ReconcilePolicy.CLEAN_OUTDATED_SELF_AUTHORED in policies and thread.is_outdated:
            plan.threads_to_delete.append(thread)

    deleted_thread_ids = {thread.thread_id for thread in plan.threads_to_delete}

    # Comments on current self-authored threads that survive this pass,
    # indexed by (path, line, body)
    existing: Dict[tuple, int] = {}
    for thread in threads:
        if thread.thread_id in deleted_thread_ids or thread.is_outdated:
            continue
        if not is_self_authored(thread, self_login):
            continue
        for comment in thread.comments:
            existing.setdefault((thread.path, thread.line, comment.body), comment.comment_id)

    kept_comment_ids: Set[int] = set()
    queued: Set[tuple] = set()
    for annotation in pending:
        comment_id = existing.get(annotation.key)
        if comment_id is not None:
            kept_comment_ids.add(comment_id)
            logger.debug(f"Annotation already present at {annotation.path}:{annotation.line}, not reposting.")
        elif annotation.key not in queued:
            queued.add(annotation.key)
            plan.annotations_to_post.append(annotation)

    if ReconcilePolicy.CLEAN_MARKED_BATCH_COMMENTS in policies:
        review_ids = marked_review_ids(reviews, self_login, marker)
        # A marked comment inside a thread someone replied to stays, so the
        # reply keeps its context.
        shared_comment_ids = {
            comment.comment_id
            for thread in threads if not is_self_authored(thread, self_login)
            for comment in thread.comments
        }
        for comment in comments:
            if comment.review_id not in review_ids or comment.author_login != self_login:
                continue
            if comment.comment_id in kept_comment_ids or comment.comment_id in shared_comment_ids:
                continue
            plan.comments_to_delete.append(comment.comment_id)

    logger.info(
        f"Reconciled {len(threads)} thread(s): {len(plan.threads_to_delete)} to delete, "
        f"{len(plan.comment_ids)} comment(s) to delete, {len(plan.annotations_to_post)} annotation(s) to post."
    )
    return plan


async def apply_deletions(client: "GitHubReviewClient", ctx: RequestContext, plan: ReconcilePlan) -> int:
    """
    Deletes every comment in the plan concurrently and waits for all of them.

    The first failure is raised once the other deletions have settled.
    Returns the number of comments deleted.
    """
    comment_ids = plan.comment_ids
    if not comment_ids:
        return 0

    logger.info(f"Deleting {len(comment_ids)} review comment(s) on PR #{ctx.pr_number}.")
    results = await asyncio.gather(
        *(client.delete_review_comment(ctx, comment_id) for comment_id in comment_ids),
        return_exceptions=True,
    )
    failures = [result for result in results if isinstance(result, BaseException)]
    for failure in failures:
        logger.error(f"Failed to delete review comment: {failure}")
    if failures:
        raise failures[0]
    return len(comment_ids)
