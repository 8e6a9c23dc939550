"""
Caption parsing, free-text transcript parsing and SRT export.
"""

import logging
import math
import re
from dataclasses import dataclass, replace

from .models import Segment

logger = logging.getLogger("shadowing")

# Auto-generated rolling captions repeat the previous line as a near-zero
# duration cue; anything shorter than this is dropped with its text lines.
ECHO_CUE_THRESHOLD = 0.05
MERGE_MAX_CHARS = 200
MERGE_MAX_GAP = 2.0


@dataclass(frozen=True)
class CaptionPolicy:
    """Tunable thresholds for cue filtering, merging and synthetic timing."""

    echo_threshold: float = ECHO_CUE_THRESHOLD
    merge_max_chars: int = MERGE_MAX_CHARS
    merge_max_gap: float = MERGE_MAX_GAP
    seconds_per_word: float = 0.3
    min_sentence_seconds: float = 2.0
    min_line_seconds: float = 1.0
    last_line_seconds: float = 5.0


DEFAULT_POLICY = CaptionPolicy()

_TS = r"(?:(\d{1,2}):)?(\d{2}):(\d{2})[.,](\d{3})"
_CUE_RE = re.compile(_TS + r"\s*-->\s*" + _TS)
_TIMING_TAG_RE = re.compile(r"<\d{2}:\d{2}:\d{2}[.,]\d{3}>")
_CLASS_TAG_RE = re.compile(r"</?c[^>]*>")
_ANY_TAG_RE = re.compile(r"<[^>]+>")
_SENT_END_RE = re.compile(r"[.!?]$")
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+|[^.!?]+$")

_HTML_ENTITIES = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&nbsp;", " "),
)

# [0:00] / [00:00:00], (0:00), and bare 0:00 prefixes
_LINE_TS_PATTERNS = (
    re.compile(r"^\[(\d{1,2}):(\d{2})(?::(\d{2}))?\]\s*[-–—]?\s*"),
    re.compile(r"^\((\d{1,2}):(\d{2})(?::(\d{2}))?\)\s*[-–—]?\s*"),
    re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?\s*[-–—]?\s*"),
)


@dataclass
class TranscriptFormat:
    has_timestamps: bool
    line_count: int
    estimated_segments: int
    description: str


def parse(raw: str, policy: CaptionPolicy = DEFAULT_POLICY) -> list[Segment]:
    """Parse a caption stream or free text into ordered segments.

    Input carrying ``start --> end`` cue lines goes through the cue parser;
    anything else is treated as a plain (optionally timestamped) transcript.
    Malformed or empty input gives an empty list.
    """
    if not raw or not raw.strip():
        return []
    if _CUE_RE.search(raw):
        return parse_vtt(raw, policy)
    return parse_transcript_text(raw, policy)


def _cue_time(groups: tuple) -> float:
    h, m, s, ms = groups
    return int(h or 0) * 3600 + int(m) * 60 + int(s) + int(ms) / 1000.0


def clean_cue_text(text: str) -> str:
    """Strip timing markers and markup, decode entities, collapse whitespace."""
    text = _TIMING_TAG_RE.sub("", text)
    text = _CLASS_TAG_RE.sub("", text)
    text = _ANY_TAG_RE.sub("", text)
    for entity, char in _HTML_ENTITIES:
        text = text.replace(entity, char)
    return " ".join(text.split())


def _select_cue_text(lines: list[str], last_shown: str) -> tuple[str, str]:
    """Pick the text of a cue.

    Returns ``(text, shown)`` where ``shown`` is the row the next rolling cue
    will repeat as its first line.

    With two or more lines the line carrying per-word timing markers holds
    the new words. Plain lines before it repeat the previous cue's new row;
    they are kept only when that row was never emitted (e.g. its own cue was
    dropped as an echo).
    """
    if not lines:
        return "", ""
    if len(lines) == 1:
        text = clean_cue_text(lines[0])
        return text, text
    tagged = next((i for i, ln in enumerate(lines) if _TIMING_TAG_RE.search(ln)), None)
    if tagged is None:
        text = clean_cue_text(lines[-1])
        return text, text
    new_text = clean_cue_text(lines[tagged])
    carried = clean_cue_text(" ".join(lines[:tagged]))
    if carried and carried != last_shown:
        return f"{carried} {new_text}".strip(), new_text
    return new_text, new_text


def _read_cue_lines(lines: list[str], i: int) -> tuple[list[str], int]:
    """Collect the text rows of a cue starting at ``lines[i]``.

    An empty line ends the cue. A whitespace-only first row is YouTube's
    blank top row of a rolling caption and is kept as (empty) content.
    """
    text_lines: list[str] = []
    while i < len(lines) and "-->" not in lines[i]:
        line = lines[i]
        if not line.strip() and (text_lines or not line):
            break
        text_lines.append(line)
        i += 1
    return text_lines, i


def parse_vtt(raw: str, policy: CaptionPolicy = DEFAULT_POLICY) -> list[Segment]:
    """Parse a WebVTT (or SRT) cue stream, dropping echo cues and merging fragments."""
    lines = raw.splitlines()
    cues: list[tuple[float, float, str]] = []
    last_shown = ""
    dropped = 0
    i = 0
    while i < len(lines):
        m = _CUE_RE.search(lines[i])
        i += 1
        if not m:
            continue
        start = _cue_time(m.groups()[:4])
        end = _cue_time(m.groups()[4:])
        text_lines, i = _read_cue_lines(lines, i)
        if end - start < policy.echo_threshold:
            dropped += 1
            continue
        text, shown = _select_cue_text(text_lines, last_shown)
        if not text:
            continue
        cues.append((start, end - start, text))
        last_shown = shown

    if dropped:
        logger.debug("Dropped %d echo cue(s) shorter than %.3fs", dropped, policy.echo_threshold)
    cues.sort(key=lambda c: c[0])
    segments = [
        Segment(id=f"cue-{n}", text=text, start=start, duration=dur)
        for n, (start, dur, text) in enumerate(cues)
    ]
    return merge_segments(segments, policy)


def merge_segments(segments: list[Segment], policy: CaptionPolicy = DEFAULT_POLICY) -> list[Segment]:
    """Greedy left-to-right merge of fragments into sentence-like units.

    A fragment joins the running segment when the running text has no final
    punctuation, the joined text stays under ``merge_max_chars`` and the gap
    is under ``merge_max_gap``. Input segments are not modified.
    """
    if not segments:
        return []
    merged: list[Segment] = []
    current = replace(segments[0])
    for seg in segments[1:]:
        combined = f"{current.text} {seg.text}"
        gap = seg.start - current.end
        if (
            not _SENT_END_RE.search(current.text)
            and len(combined) < policy.merge_max_chars
            and gap < policy.merge_max_gap
        ):
            current = replace(current, text=combined, duration=seg.end - current.start)
        else:
            merged.append(current)
            current = replace(seg)
    merged.append(current)

    logger.debug("Merged %d cue(s) into %d segment(s)", len(segments), len(merged))
    return [replace(s, id=f"seg-{n}") for n, s in enumerate(merged)]


def _parse_line_timestamp(line: str) -> tuple[float | None, str]:
    for pattern in _LINE_TS_PATTERNS:
        m = pattern.match(line)
        if m:
            first, second, third = m.groups()
            if third is not None:
                seconds = int(first) * 3600 + int(second) * 60 + int(third)
            else:
                seconds = int(first) * 60 + int(second)
            return float(seconds), line[m.end():].strip()
    return None, line.strip()


def split_into_sentences(text: str) -> list[str]:
    """Split on . ! ? boundaries, keeping the punctuation."""
    parts = _SENTENCE_RE.findall(text) or [text]
    return [p.strip() for p in parts if p.strip()]


def _has_timestamps(parsed: list[tuple[float | None, str]]) -> bool:
    stamped = sum(1 for ts, _ in parsed if ts is not None)
    return bool(parsed) and stamped * 2 >= len(parsed)


def parse_transcript_text(raw: str, policy: CaptionPolicy = DEFAULT_POLICY) -> list[Segment]:
    """Parse pasted transcript text.

    When at least half of the non-empty lines start with a timestamp, every
    line becomes a segment lasting until the next line's timestamp. Otherwise
    the text is split into sentences with synthetic timing derived from the
    word count.
    """
    lines = [ln for ln in (raw or "").splitlines() if ln.strip()]
    if not lines:
        return []
    parsed = [_parse_line_timestamp(ln) for ln in lines]
    segments: list[Segment] = []

    if _has_timestamps(parsed):
        last = 0.0
        for i, (ts, text) in enumerate(parsed):
            if not text:
                continue
            current = ts if ts is not None else last
            nxt = parsed[i + 1][0] if i + 1 < len(parsed) else None
            if nxt is None:
                nxt = current + policy.last_line_seconds
            duration = max(nxt - current, policy.min_line_seconds)
            segments.append(Segment(id=f"seg-{i}", text=text, start=current, duration=duration))
            last = current + duration
        segments.sort(key=lambda s: s.start)
        return segments

    full_text = " ".join(text for _, text in parsed)
    clock = 0.0
    for idx, sentence in enumerate(split_into_sentences(full_text)):
        words = len(sentence.split())
        duration = float(max(math.ceil(words * policy.seconds_per_word), policy.min_sentence_seconds))
        segments.append(Segment(id=f"seg-{idx}", text=sentence, start=clock, duration=duration))
        clock += duration
    return segments


def validate_transcript_input(text: str) -> tuple[bool, str | None]:
    """Check pasted text before parsing; returns (valid, error message)."""
    trimmed = (text or "").strip()
    if not trimmed:
        return False, "Please enter some text"
    if len(trimmed) < 10:
        return False, "Text is too short. Please enter at least one sentence."
    without_timestamps = re.sub(r"[\[\]()\d:]", "", trimmed).strip()
    if len(without_timestamps) < 10:
        return False, "Please include actual transcript content, not just timestamps."
    return True, None


def detect_transcript_format(text: str) -> TranscriptFormat:
    """Describe how ``parse_transcript_text`` will treat the input."""
    lines = [ln for ln in (text or "").splitlines() if ln.strip()]
    parsed = [_parse_line_timestamp(ln) for ln in lines]
    has_ts = _has_timestamps(parsed)
    if has_ts:
        estimated = len(lines)
        description = "Timestamped transcript detected"
    else:
        estimated = len(split_into_sentences(" ".join(t for _, t in parsed))) if lines else 0
        if len(lines) == 1:
            description = "Single paragraph - will be split into sentences"
        else:
            description = "Plain text - will be split into sentences"
    return TranscriptFormat(
        has_timestamps=has_ts,
        line_count=len(lines),
        estimated_segments=estimated,
        description=description,
    )


def write_srt(segments: list[Segment], path: str, include_translation: bool = False) -> None:
    """Write segments to an SRT file, optionally with the translation as a second line."""

    def fmt(t: float) -> str:
        ms_total = int(round(t * 1000))
        h, rem = divmod(ms_total, 3_600_000)
        m, rem = divmod(rem, 60_000)
        s, ms = divmod(rem, 1000)
        return f"{h:02}:{m:02}:{s:02},{ms:03}"

    with open(path, "w", encoding="utf-8") as f:
        for i, s in enumerate(segments, 1):
            text = s.text
            if include_translation and s.translation:
                text = f"{text}\n{s.translation}"
            f.write(f"{i}\n{fmt(s.start)} --> {fmt(s.end)}\n{text}\n\n")
