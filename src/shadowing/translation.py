"""
Batch translation of transcript segments through a text-generation service.

Segments are grouped into size-bounded batches. Each batch is sent as one
request under a timeout and retried with linear backoff; a batch that keeps
failing is split in half and both halves are translated concurrently, down
to single segments. Anything still unresolved gets FALLBACK_TRANSLATION.
"""

import asyncio
import json
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace

from openai import AsyncOpenAI

from .models import Segment, TranslationProgress

logger = logging.getLogger("shadowing")

FALLBACK_TRANSLATION = "[translation unavailable]"

# A translation capability takes the batch texts and the target language and
# returns the raw response text of the model.
TranslateFn = Callable[[list[str], str], Awaitable[str]]
ProgressFn = Callable[[TranslationProgress], None]


@dataclass(frozen=True)
class TranslationPolicy:
    max_segments: int = 20
    max_chars: int = 2200
    per_segment_overhead: int = 10  # "[12] " markup and newline
    timeout: float = 90.0
    max_attempts: int = 3
    backoff_seconds: float = 1.0


DEFAULT_POLICY = TranslationPolicy()


class TranslationResponseError(ValueError):
    """The model response held no usable translations."""


# (original index, segment)
_Batch = list[tuple[int, Segment]]


def build_batches(segments: list[Segment], policy: TranslationPolicy = DEFAULT_POLICY) -> list[_Batch]:
    """Greedy in-order batching bounded by segment count and estimated characters."""
    batches: list[_Batch] = []
    cur: _Batch = []
    cur_chars = 0
    for idx, seg in enumerate(segments):
        cost = len(seg.text) + policy.per_segment_overhead
        if cur and (len(cur) + 1 > policy.max_segments or cur_chars + cost > policy.max_chars):
            batches.append(cur)
            cur, cur_chars = [], 0
        cur.append((idx, seg))
        cur_chars += cost
    if cur:
        batches.append(cur)
    return batches


def build_prompt(texts: list[str], target_language: str) -> str:
    numbered = "\n".join(f"[{i}] {t}" for i, t in enumerate(texts, 1))
    return f"""Translate each of the following numbered lines into {target_language}.
Translate every line separately and keep the original order.
Return ONLY a JSON object of the form {{"translations": ["...", "..."]}} with exactly {len(texts)} strings.

Lines:
{numbered}"""


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _load_json(content: str):
    text = _FENCE_RE.sub("", content.strip()).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start = text.find(open_ch)
        end = text.rfind(close_ch)
        if start != -1 and end > start:
            try:
                return json.loads(text[start : end + 1])
            except json.JSONDecodeError:
                continue
    raise TranslationResponseError("Model did not return valid JSON")


def _keyed_values(obj: dict) -> list | None:
    """Values of an index-keyed object ("0"/"1"/"[2]") in key order."""
    keyed: list[tuple[int, object]] = []
    for key, value in obj.items():
        m = re.fullmatch(r"\s*\[?\s*(\d+)\s*\]?\s*", str(key))
        if not m:
            continue
        keyed.append((int(m.group(1)), value))
    if not keyed:
        return None
    keyed.sort(key=lambda kv: kv[0])
    return [v for _, v in keyed]


def parse_translation_response(content: str, expected: int) -> list[str | None]:
    """Extract ``expected`` translations by position from a model response.

    Accepts ``{"translations": [...]}``, a bare array, or an object keyed by
    index (bare or bracketed keys), optionally inside a markdown fence. A
    response with the wrong number of items cannot be aligned by position and
    raises; inside a correctly sized response, items that are not non-empty
    strings come back as None.
    """
    data = _load_json(content)
    items = None
    if isinstance(data, dict):
        inner = data.get("translations")
        if isinstance(inner, list):
            items = inner
        elif isinstance(inner, dict):
            logger.warning("Translation response: 'translations' is an index-keyed object")
            items = _keyed_values(inner)
        else:
            logger.warning("Translation response: no 'translations' array, trying index keys")
            items = _keyed_values(data)
    elif isinstance(data, list):
        logger.warning("Translation response: bare array instead of an object")
        items = data
    if items is None:
        raise TranslationResponseError(f"Unrecognized response shape: {type(data).__name__}")

    if len(items) != expected:
        raise TranslationResponseError(
            f"Translation response has {len(items)} item(s), expected {expected}"
        )

    out: list[str | None] = []
    for value in items:
        if isinstance(value, str) and value.strip():
            out.append(value.strip())
        else:
            out.append(None)
    if not any(out):
        raise TranslationResponseError("Response contained no usable translations")
    return out


def make_translate_openai(
    client: AsyncOpenAI,
    model: str = "gpt-4o-mini",
    temperature: float = 0.1,
) -> TranslateFn:
    """Create a translation capability backed by the OpenAI chat API."""

    async def _translate(texts: list[str], target_language: str) -> str:
        response = await client.chat.completions.create(
            model=model,
            messages=[
                {
                    "role": "system",
                    "content": "You are a professional subtitle translator. Always answer with JSON only.",
                },
                {"role": "user", "content": build_prompt(texts, target_language)},
            ],
            temperature=temperature,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content or ""

    return _translate


class BatchTranslator:
    """Resilient batch translation over an unreliable translation capability."""

    def __init__(
        self,
        translate_fn: TranslateFn | None,
        policy: TranslationPolicy = DEFAULT_POLICY,
    ) -> None:
        self.translate_fn = translate_fn
        self.policy = policy

    async def _attempt(self, texts: list[str], target_language: str) -> list[str | None]:
        content = await asyncio.wait_for(
            self.translate_fn(texts, target_language), timeout=self.policy.timeout
        )
        return parse_translation_response(content, len(texts))

    async def _translate_whole(self, batch: _Batch, target_language: str) -> list[str | None] | None:
        texts = [seg.text for _, seg in batch]
        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                return await self._attempt(texts, target_language)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Batch of {len(batch)} timed out after {self.policy.timeout}s "
                    f"(attempt {attempt}/{self.policy.max_attempts})"
                )
            except Exception as e:
                logger.warning(
                    f"Batch of {len(batch)} failed (attempt {attempt}/{self.policy.max_attempts}): {e}"
                )
            if attempt < self.policy.max_attempts:
                await asyncio.sleep(attempt * self.policy.backoff_seconds)
        return None

    async def translate_batch(self, batch: _Batch, target_language: str) -> list[str | None]:
        """Translate one batch, splitting it in half when it keeps failing."""
        result = await self._translate_whole(batch, target_language)
        if result is not None:
            return result
        if len(batch) == 1:
            idx, seg = batch[0]
            logger.error(f"Giving up on segment {idx} ({seg.id}): {seg.text[:50]!r}")
            return [None]
        mid = len(batch) // 2
        logger.info(f"Splitting failed batch of {len(batch)} into {mid} + {len(batch) - mid}")
        left, right = await asyncio.gather(
            self.translate_batch(batch[:mid], target_language),
            self.translate_batch(batch[mid:], target_language),
        )
        return left + right

    async def translate(
        self,
        segments: list[Segment],
        target_language: str,
        on_progress: ProgressFn | None = None,
    ) -> list[Segment]:
        """Return copies of ``segments`` with ``translation`` always populated.

        Top-level batches run one after another so progress is reported in
        order; ``on_progress`` is called after each of them.
        """
        total = len(segments)
        if self.translate_fn is None:
            logger.error("No translation client available; stamping fallback on all segments")
            return [replace(s, translation=FALLBACK_TRANSLATION) for s in segments]

        result = [replace(s) for s in segments]
        completed = 0
        failed = 0
        batches = build_batches(segments, self.policy)
        logger.info(f"Translating {total} segment(s) to {target_language} in {len(batches)} batch(es)")

        for batch in batches:
            translations = await self.translate_batch(batch, target_language)
            for (idx, _), text in zip(batch, translations):
                if text is None:
                    failed += 1
                    text = FALLBACK_TRANSLATION
                result[idx] = replace(result[idx], translation=text)
            completed += len(batch)
            if on_progress is not None:
                on_progress(
                    TranslationProgress(
                        completed=completed, total=total, failed=failed, segments=list(result)
                    )
                )

        if failed:
            logger.warning(f"{failed}/{total} segment(s) fell back to {FALLBACK_TRANSLATION!r}")
        return result


async def translate_segments(
    client: AsyncOpenAI | None,
    segments: list[Segment],
    target_language: str,
    on_progress: ProgressFn | None = None,
    model: str = "gpt-4o-mini",
    policy: TranslationPolicy = DEFAULT_POLICY,
) -> list[Segment]:
    """Translate segments with the OpenAI chat API."""
    translate_fn = make_translate_openai(client, model) if client is not None else None
    return await BatchTranslator(translate_fn, policy).translate(segments, target_language, on_progress)


def get_language_name(language_code: str) -> str:
    """Get human-readable language name from language code."""
    language_names = {
        "ru": "Russian",
        "de": "German",
        "fr": "French",
        "es": "Spanish",
        "it": "Italian",
        "pt": "Portuguese",
        "ja": "Japanese",
        "ko": "Korean",
        "zh": "Chinese",
        "ar": "Arabic",
        "hi": "Hindi",
        "en": "English",
        "uk": "Ukrainian",
        "pl": "Polish",
        "nl": "Dutch",
        "tr": "Turkish",
        "vi": "Vietnamese",
    }
    return language_names.get(language_code.lower(), language_code)
