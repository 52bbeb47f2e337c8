"""Conventional commit parsing and classification.

Raw commits from the branch history are parsed into :class:`ConventionalCommit`
records. A single raw commit may produce several records: squash-merged
"meta" commits often list several conventional headers in their body, and
each of them is released as if it were its own commit.

Commits that do not follow the conventional format are logged and skipped;
they never abort a run.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from .errors import CommitParseError
from .models import Commit, ConventionalCommit, Note, Reference

logger = structlog.get_logger(__name__)

BREAKING_CHANGE_NOTE = "BREAKING CHANGE"
RELEASE_AS_NOTE = "RELEASE AS"

HEADER_PATTERN = re.compile(
    r"^(?P<type>\w[\w-]*)(?:\((?P<scope>[^()\r\n]*)\))?(?P<breaking>!)?: (?P<subject>\S.*)$"
)
# Types a header embedded in a commit body may use. Trailers such as
# "refs: #12" or "Signed-off-by: ..." never start a new record.
META_COMMIT_TYPES = frozenset(
    {
        "build",
        "chore",
        "ci",
        "deps",
        "docs",
        "feat",
        "feature",
        "fix",
        "perf",
        "refactor",
        "revert",
        "style",
        "test",
    }
)
META_HEADER_PATTERN = re.compile(r"^(?P<type>[a-z][a-z0-9-]*)(?:\([^()\r\n]*\))?!?: \S")
FOOTER_PATTERN = re.compile(
    r"^(?P<token>BREAKING[ -]CHANGE|[A-Za-z][\w-]*)(?:: | #)(?P<value>.*)$"
)
ACTION_REFERENCE_PATTERN = re.compile(
    r"\b(?P<action>close[sd]?|fix(?:e[sd])?|resolve[sd]?)\s+#(?P<issue>\d+)", re.IGNORECASE
)
BARE_REFERENCE_PATTERN = re.compile(r"(?<![\w/])#(?P<issue>\d+)\b")
EXTENDED_CONTEXT_PATTERN = re.compile(r"^#### |^[*-] ")


@dataclass
class ParsedMessage:
    """Grammar-level result of parsing one conventional commit message."""

    header: str
    type: str
    subject: str
    scope: str | None = None
    body: str = ""
    notes: list[Note] = field(default_factory=list)
    references: list[Reference] = field(default_factory=list)

    @property
    def breaking(self) -> bool:
        return any(note.title == BREAKING_CHANGE_NOTE for note in self.notes)


def parse_commit_message(message: str) -> list[ParsedMessage]:
    """Parse a raw commit message into one or more conventional messages.

    Args:
        message: Full commit message, header first.

    Returns:
        One ParsedMessage per conventional header, in document order.

    Raises:
        CommitParseError: If the first line is not a conventional header.
    """
    lines = message.strip().splitlines()
    if not lines or not HEADER_PATTERN.match(lines[0].strip()):
        raise CommitParseError(f"Not a conventional commit header: {message[:72]!r}")

    # A new record starts at a header that opens a paragraph or continues a
    # run of headers
    chunks: list[list[str]] = [[lines[0].strip()]]
    previous_blank = False
    previous_header = False
    for line in lines[1:]:
        if (previous_blank or previous_header) and _is_meta_header(line):
            chunks.append([line.strip()])
            previous_header = True
        else:
            chunks[-1].append(line)
            previous_header = False
        previous_blank = line.strip() == ""

    return [_parse_chunk(chunk) for chunk in chunks]


def _is_meta_header(line: str) -> bool:
    match = META_HEADER_PATTERN.match(line)
    return match is not None and match.group("type") in META_COMMIT_TYPES


def _parse_chunk(lines: list[str]) -> ParsedMessage:
    header = lines[0]
    match = HEADER_PATTERN.match(header)
    if match is None:
        raise CommitParseError(f"Not a conventional commit header: {header!r}")

    body_lines: list[str] = []
    footers: list[tuple[str, list[str]]] = []
    for line in lines[1:]:
        footer = FOOTER_PATTERN.match(line)
        if footer:
            footers.append((footer.group("token"), [footer.group("value")]))
        elif footers:
            footers[-1][1].append(line)
        else:
            body_lines.append(line)

    notes: list[Note] = []
    for token, value_lines in footers:
        text = "\n".join(value_lines)
        if token.upper().replace("-", " ") == BREAKING_CHANGE_NOTE:
            notes.append(Note(title=BREAKING_CHANGE_NOTE, text=normalize_note_text(text)))
        elif token.lower() == "release-as":
            notes.append(Note(title=RELEASE_AS_NOTE, text=text.strip()))

    subject = match.group("subject").strip()
    if match.group("breaking") and not any(n.title == BREAKING_CHANGE_NOTE for n in notes):
        notes.append(Note(title=BREAKING_CHANGE_NOTE, text=subject))

    body = "\n".join(body_lines).strip()
    return ParsedMessage(
        header=header,
        type=match.group("type"),
        scope=match.group("scope") or None,
        subject=subject,
        body=body,
        notes=notes,
        references=_find_references(header, "\n".join(lines[1:])),
    )


def _find_references(header: str, rest: str) -> list[Reference]:
    references: list[Reference] = []
    seen: set[str] = set()
    for match in ACTION_REFERENCE_PATTERN.finditer(rest):
        issue = match.group("issue")
        if issue not in seen:
            seen.add(issue)
            references.append(Reference(issue=issue, action=match.group("action").lower()))
    for match in BARE_REFERENCE_PATTERN.finditer(header):
        issue = match.group("issue")
        if issue not in seen:
            seen.add(issue)
            references.append(Reference(issue=issue))
    return references


def normalize_note_text(text: str) -> str:
    """Collapse a multi-line note into release-notes form.

    Lines are joined with spaces and the note ends at the first blank line.
    Once a markdown heading (``#### ``) or list item (``* ``/``- ``) shows up,
    it and every following line are kept on their own line, indented by four
    spaces, and a blank line only ends the note if no such line follows it.

    Example:
        "Config moved\\n* old key removed\\n* new key added" →
        "Config moved\\n    * old key removed\\n    * new key added"
    """
    result = ""
    extended = False
    chunks = text.split("\n")
    for i, chunk in enumerate(chunks):
        if i > 0 and not extended and EXTENDED_CONTEXT_PATTERN.match(chunk):
            result = result.strip() + "\n"
            extended = True
        if chunk.strip() == "":
            following = next((c for c in chunks[i + 1 :] if c.strip()), None)
            if following is not None and EXTENDED_CONTEXT_PATTERN.match(following):
                continue
            break
        if extended:
            result += f"    {chunk}\n"
        else:
            result += f"{chunk} "
    return result.strip()


def parse_conventional_commits(commits: Iterable[Commit]) -> list[ConventionalCommit]:
    """Classify raw commits, expanding meta commits and skipping bad ones.

    Order is preserved across commits, and within one commit the records
    follow the order of headers in the message.
    """
    conventional: list[ConventionalCommit] = []
    for commit in commits:
        try:
            parsed_messages = parse_commit_message(commit.message)
        except CommitParseError:
            logger.warning("commit_parse_failed", sha=commit.sha, message=commit.message[:72])
            continue
        for parsed in parsed_messages:
            conventional.append(
                ConventionalCommit(
                    sha=commit.sha,
                    message=parsed.header,
                    files=commit.files,
                    pull_request=commit.pull_request,
                    type=parsed.type,
                    scope=parsed.scope,
                    bare_message=parsed.subject,
                    notes=parsed.notes,
                    references=parsed.references,
                    breaking=parsed.breaking,
                )
            )
    return conventional
