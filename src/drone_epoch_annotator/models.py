# src/drone_epoch_annotator/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class LineKind(str, Enum):
    INSERT = "insert"
    DELETE = "delete"
    CONTEXT = "context"


class FileStatus(str, Enum):
    ADD = "add"
    MODIFY = "modify"
    DELETE = "delete"
    BINARY = "binary"


@dataclass(frozen=True)
class ChangeLine:
    """
    A single line inside a hunk, without its leading diff marker.
    """
    content: str
    kind: LineKind
    new_line_number: Optional[int] = None # None for deleted lines, they have no new-side position


@dataclass
class Hunk:
    """
    One ``@@ -a,b +c,d @@`` block of a file diff.
    """
    old_start: int
    new_start: int
    lines: List[ChangeLine] = field(default_factory=list)

    @property
    def inserted_lines(self) -> List[ChangeLine]:
        return [line for line in self.lines if line.kind is LineKind.INSERT]


@dataclass
class FileDiff:
    """
    Represents a single file in a diff.
    """
    path: str # Path after the change (the path review comments are anchored to)
    status: FileStatus
    hunks: List[Hunk] = field(default_factory=list)
    old_path: Optional[str] = None # Set for renames

    @property
    def is_annotatable(self) -> bool:
        return self.status in (FileStatus.ADD, FileStatus.MODIFY)


@dataclass(frozen=True)
class PendingAnnotation:
    """
    A review comment this run wants to exist on the pull request.
    """
    path: str
    line: int # New-side line number in the file
    body: str
    side: str = "RIGHT"
    commit_sha: Optional[str] = None # Only used by the per-commit strategy

    @property
    def key(self):
        return (self.path, self.line, self.body)

    def to_review_payload(self) -> dict:
        return {"path": self.path, "line": self.line, "side": self.side, "body": self.body}


@dataclass(frozen=True)
class ThreadComment:
    comment_id: int
    author_login: Optional[str] # None when the author account was deleted
    body: str = ""


@dataclass
class ReviewThread:
    """
    A review thread as reported by the host. Only read and deleted, never edited.
    """
    thread_id: str
    is_outdated: bool
    comments: List[ThreadComment] = field(default_factory=list)
    path: Optional[str] = None
    line: Optional[int] = None # The host reports no line once the thread is outdated
    has_more_comments: bool = False # comments holds only the first page


@dataclass(frozen=True)
class ReviewRecord:
    review_id: int
    author_login: Optional[str]
    body: str = ""


@dataclass(frozen=True)
class ReviewCommentRecord:
    comment_id: int
    review_id: Optional[int]
    author_login: Optional[str]
    path: Optional[str] = None
    line: Optional[int] = None
    body: str = ""


@dataclass(frozen=True)
class RequestContext:
    """
    Identifies the pull request every client call operates on.
    """
    owner: str
    repo: str
    pr_number: int
    head_sha: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass
class ReconcilePlan:
    threads_to_delete: List[ReviewThread] = field(default_factory=list)
    comments_to_delete: List[int] = field(default_factory=list) # Comments outside the deleted threads
    annotations_to_post: List[PendingAnnotation] = field(default_factory=list)

    @property
    def comment_ids(self) -> List[int]:
        """All comment ids to delete, thread comments first, without repeats."""
        ordered: List[int] = []
        seen = set()
        for thread in self.threads_to_delete:
            for comment in thread.comments:
                if comment.comment_id not in seen:
                    seen.add(comment.comment_id)
                    ordered.append(comment.comment_id)
        for comment_id in self.comments_to_delete:
            if comment_id not in seen:
                seen.add(comment_id)
                ordered.append(comment_id)
        return ordered


@dataclass
class AnnotationResult:
    planned: int = 0
    posted: int = 0
    deleted: int = 0
