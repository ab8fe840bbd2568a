# src/drone_epoch_annotator/diff_parser.py
import logging
import re
from typing import Dict, List, Optional

from unidiff import PatchSet, UnidiffParseError
from unidiff.patch import LINE_TYPE_ADDED, LINE_TYPE_CONTEXT, LINE_TYPE_REMOVED, PatchedFile

from .exceptions import MalformedDiffError
from .models import ChangeLine, FileDiff, FileStatus, Hunk, LineKind

logger = logging.getLogger(__name__)

HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

_LINE_KINDS = {
    LINE_TYPE_ADDED: LineKind.INSERT,
    LINE_TYPE_REMOVED: LineKind.DELETE,
    LINE_TYPE_CONTEXT: LineKind.CONTEXT,
}

# Values of the "status" field on files returned by the commits API
_COMMIT_FILE_STATUSES: Dict[str, FileStatus] = {
    "added": FileStatus.ADD,
    "removed": FileStatus.DELETE,
    "modified": FileStatus.MODIFY,
    "renamed": FileStatus.MODIFY,
    "copied": FileStatus.ADD,
    "changed": FileStatus.MODIFY,
    "unchanged": FileStatus.MODIFY,
}


def _check_hunk_headers(diff_text: str) -> None:
    # unidiff silently treats a garbled header as patch info, which would
    # shift every following line number.
    for line_no, line in enumerate(diff_text.split("\n"), 1):
        if line.startswith("@@") and not HUNK_HEADER_RE.match(line):
            raise MalformedDiffError(f"Malformed hunk header on diff line {line_no}: {line[:120]!r}")


def _load_patch_set(diff_text: str) -> PatchSet:
    _check_hunk_headers(diff_text)
    try:
        return PatchSet(diff_text)
    except UnidiffParseError as e:
        logger.debug(f"Problematic diff text (first 500 chars): {diff_text[:500]}")
        raise MalformedDiffError(f"Failed to parse diff: {e}") from e


def _strip_prefix(path: str, prefix: str) -> str:
    return path[len(prefix):] if path.startswith(prefix) else path


def build_hunk(unidiff_hunk) -> Hunk:
    """
    Converts a unidiff hunk into a Hunk, numbering lines on the new side.

    The counter starts at the header's new-range start, advances after every
    inserted or context line and stays put for deleted lines.
    """
    hunk = Hunk(old_start=unidiff_hunk.source_start, new_start=unidiff_hunk.target_start)
    new_line_number = unidiff_hunk.target_start
    for line in unidiff_hunk:
        kind = _LINE_KINDS.get(line.line_type)
        if kind is None: # "\ No newline at end of file" and trailing blank separators
            continue
        content = line.value.rstrip("\r\n")
        if kind is LineKind.DELETE:
            hunk.lines.append(ChangeLine(content, kind))
        else:
            hunk.lines.append(ChangeLine(content, kind, new_line_number))
            new_line_number += 1
    return hunk


def _file_status(patched_file: PatchedFile) -> FileStatus:
    if patched_file.is_binary_file:
        return FileStatus.BINARY
    if patched_file.is_removed_file:
        return FileStatus.DELETE
    if patched_file.is_added_file:
        return FileStatus.ADD
    return FileStatus.MODIFY


def _to_file_diff(patched_file: PatchedFile) -> FileDiff:
    status = _file_status(patched_file)
    new_path = _strip_prefix(patched_file.target_file, "b/")
    old_path = _strip_prefix(patched_file.source_file, "a/")
    if status is FileStatus.DELETE or new_path == "/dev/null":
        new_path = old_path
    file_diff = FileDiff(
        path=new_path,
        status=status,
        old_path=old_path if patched_file.is_rename else None,
    )
    if status is not FileStatus.BINARY:
        file_diff.hunks = [build_hunk(hunk) for hunk in patched_file]
    return file_diff


def parse_diff_text(diff_text: str) -> List[FileDiff]:
    """
    Parses a unified diff (e.g. a pull request diff from the SCM API) into FileDiff objects.

    Args:
        diff_text: The raw diff output as a string.

    Returns:
        One FileDiff per file in the diff, in diff order. Binary files and
        files without hunks (rename-only, mode-only) are included with an
        empty hunk list.

    Raises:
        MalformedDiffError: if a hunk header or hunk body cannot be parsed.
    """
    if not diff_text:
        logger.info("Received empty diff text, returning no parsed files.")
        return []

    parsed_files = [_to_file_diff(patched_file) for patched_file in _load_patch_set(diff_text)]
    for file_diff in parsed_files:
        logger.debug(f"Parsed {file_diff.path} ({file_diff.status.value}) with {len(file_diff.hunks)} hunk(s)")

    logger.info(f"Parsed {len(parsed_files)} files from diff text.")
    return parsed_files


def parse_patch(path: str, patch: Optional[str], status: str = "modified",
                old_path: Optional[str] = None) -> FileDiff:
    """
    Parses the hunk-only patch text the commits API returns for one file.

    ``patch`` is None for binary files and for patches too large to be
    inlined; such files get no hunks.
    """
    file_status = _COMMIT_FILE_STATUSES.get(status, FileStatus.MODIFY)
    if patch is None:
        if file_status is not FileStatus.DELETE:
            file_status = FileStatus.BINARY
        logger.debug(f"No patch text for {path}, treating it as {file_status.value}")
        return FileDiff(path=path, status=file_status, old_path=old_path)

    if not patch.strip():
        return FileDiff(path=path, status=file_status, old_path=old_path)

    if not HUNK_HEADER_RE.match(patch):
        raise MalformedDiffError(f"Patch for {path} does not start with a hunk header: {patch[:120]!r}")

    diff_text = f"--- a/{path}\n+++ b/{path}\n{patch}"
    if not diff_text.endswith("\n"):
        diff_text += "\n"
    patched_files = _load_patch_set(diff_text)
    hunks = [build_hunk(hunk) for hunk in patched_files[0]] if patched_files else []
    return FileDiff(path=path, status=file_status, hunks=hunks, old_path=old_path)
