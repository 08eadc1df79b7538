"""Tolerant parser for section-marked analysis responses."""

import re

from aligned_pipeline.domain.models import MeetingAnalysis

SECTION_LABELS = (
    "Meeting Overview",
    "Key Takeaways",
    "Summary",
    "Discussion Points",
    "Action Items",
    "Decisions Made",
    "Open Questions",
    "Data & Metrics Mentioned",
    "Important Dates & Deadlines",
    "References & Resources",
    "Ideas & Suggestions",
    "Blockers & Risks",
    "Next Steps",
    "Full Transcript",
    "Additional Notes",
)

# A header line: optional emoji/markdown prefix, a known label, optional colon/bold.
_HEADER_RE = re.compile(
    r"^[^\w\n]*(" + "|".join(re.escape(label) for label in SECTION_LABELS) + r")[ \t*:]*$",
    re.IGNORECASE | re.MULTILINE,
)
_CHECKBOX_RE = re.compile(r"^\s*[-*]\s*\[[ xX]?\]\s*(.+)$")
_BULLET_RE = re.compile(r"^\s*[-*]\s+(.+)$")
_MEETING_TYPE_RE = re.compile(
    r"^[^\w\n]*meeting\s*_?type\**\s*:\s*(.+)$", re.IGNORECASE | re.MULTILINE
)
_LANGUAGES_RE = re.compile(
    r"^[^\w\n]*detected\s*_?languages\**\s*:\s*(.+)$", re.IGNORECASE | re.MULTILINE
)
_METADATA_LINE_RE = re.compile(
    r"^\s*(detectedLanguages|meetingType)\s*:.*$\n?", re.MULTILINE
)
_EMPTY_MARKERS = {"none", "none.", "n/a", "-"}

_CANONICAL = {label.lower(): label for label in SECTION_LABELS}


def split_sections(text: str) -> dict[str, str]:
    """
    Splits a response into `{label: body}` using the known section headers.

    Unknown text before the first header is ignored. When a label appears more
    than once, the first occurrence wins.
    """
    sections: dict[str, str] = {}
    matches = list(_HEADER_RE.finditer(text))
    for position, match in enumerate(matches):
        end = matches[position + 1].start() if position + 1 < len(matches) else len(text)
        label = _CANONICAL[match.group(1).lower()]
        sections.setdefault(label, text[match.end():end].strip())
    return sections


def parse_analysis(text: str, transcript: str, is_truncated: bool = False) -> MeetingAnalysis:
    """
    Maps a semi-structured provider response onto a MeetingAnalysis.

    Missing sections produce empty fields; this function never raises on
    malformed input.

    Args:
        text: The raw response text.
        transcript: The transcript that was analyzed, used when the response
            carries no Full Transcript section.
        is_truncated: Whether the provider stopped at its output ceiling.
    """
    sections = split_sections(text)

    return MeetingAnalysis(
        transcript=sections.get("Full Transcript") or transcript,
        summary=_notes_document(text),
        action_points=_action_points(sections.get("Action Items", "")),
        detected_languages=_detected_languages(text),
        is_truncated=is_truncated,
        meeting_type=_meeting_type(text),
    )


def _notes_document(text: str) -> str:
    """Returns the response without its Full Transcript section and metadata lines."""
    matches = list(_HEADER_RE.finditer(text))
    for position, match in enumerate(matches):
        if _CANONICAL[match.group(1).lower()] == "Full Transcript":
            end = matches[position + 1].start() if position + 1 < len(matches) else len(text)
            text = text[: match.start()] + text[end:]
            break
    return _METADATA_LINE_RE.sub("", text).strip()


def _action_points(body: str) -> list[str]:
    lines = body.splitlines()
    items = [m.group(1) for m in map(_CHECKBOX_RE.match, lines) if m]
    if not items:
        items = [m.group(1) for m in map(_BULLET_RE.match, lines) if m]
    cleaned = [_clean(item) for item in items]
    return [item for item in cleaned if item and item.lower() not in _EMPTY_MARKERS]


def _meeting_type(text: str) -> str | None:
    match = _MEETING_TYPE_RE.search(text)
    if not match:
        return None
    return _clean(match.group(1)) or None


def _detected_languages(text: str) -> list[str] | None:
    match = _LANGUAGES_RE.search(text)
    if not match:
        return None
    languages = [_clean(part) for part in match.group(1).split(",")]
    return [language for language in languages if language] or None


def _clean(value: str) -> str:
    return value.replace("**", "").strip().strip("[]*").strip()
