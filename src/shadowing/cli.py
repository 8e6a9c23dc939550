"""
Command-line interface for the shadowing practice core.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from openai import AsyncOpenAI, OpenAI
from tqdm import tqdm

from .audio import (
    CANONICAL_CHANNELS,
    CANONICAL_SAMPLE_RATE,
    encode_container,
    load_file,
    resample,
    slice_buffer,
)
from .captions import DEFAULT_POLICY, CaptionPolicy, parse, write_srt
from .io_utils import ensure_dir, read_segments_json, write_segments_json
from .models import TranslationProgress
from .pitch import frame_times, normalize, track
from .stt import transcribe_buffer
from .translation import TranslationPolicy, get_language_name, translate_segments
from .tts import synthesize_reference
from .youtube import fetch_captions

logger = logging.getLogger("shadowing")


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    ap = argparse.ArgumentParser(description="Spoken-language shadowing toolkit")
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    sub = ap.add_subparsers(dest="command", required=True)

    # Captions
    cp = sub.add_parser("captions", help="Parse captions/free text (or fetch by video id) into segments")
    src = cp.add_mutually_exclusive_group(required=True)
    src.add_argument("--input", help="Caption file (.vtt/.srt) or plain transcript text file")
    src.add_argument("--video-id", help="YouTube video id to fetch captions for with yt-dlp")
    cp.add_argument("--lang", default="en", help="Caption language to fetch")
    cp.add_argument("--output", required=True, help="Segments JSON output path")
    cp.add_argument("--srt", default=None, help="Also write an SRT file")
    cp.add_argument("--echo-threshold", type=float, default=DEFAULT_POLICY.echo_threshold)
    cp.add_argument("--merge-max-chars", type=int, default=DEFAULT_POLICY.merge_max_chars)
    cp.add_argument("--merge-max-gap", type=float, default=DEFAULT_POLICY.merge_max_gap)

    # Transcription
    tp = sub.add_parser("transcribe", help="Transcribe an audio/video file into segments")
    tp.add_argument("--input", required=True)
    tp.add_argument("--output", required=True)
    tp.add_argument("--whisper-model", default="whisper-1")
    tp.add_argument("--language", default=None)

    # Translation
    xp = sub.add_parser("translate", help="Attach translations to a segments JSON file")
    xp.add_argument("--input", required=True)
    xp.add_argument("--output", required=True)
    xp.add_argument("--target", required=True, help="Target language code or name (e.g. es)")
    xp.add_argument("--model", default=os.getenv("SHADOWING_TRANSLATE_MODEL", "gpt-4o-mini"))
    xp.add_argument("--timeout", type=float, default=TranslationPolicy.timeout)
    xp.add_argument("--max-attempts", type=int, default=TranslationPolicy.max_attempts)
    xp.add_argument("--batch-size", type=int, default=TranslationPolicy.max_segments)
    xp.add_argument("--batch-chars", type=int, default=TranslationPolicy.max_chars)
    xp.add_argument("--srt", default=None, help="Also write a bilingual SRT file")

    # Pitch
    pp = sub.add_parser("pitch", help="Compute the pitch contour of an audio file")
    pp.add_argument("--input", required=True)
    pp.add_argument("--start", type=float, default=None, help="Slice start (seconds)")
    pp.add_argument("--duration", type=float, default=None, help="Slice duration (seconds)")
    pp.add_argument("--normalize", action="store_true", help="Min-max normalize the contour")
    pp.add_argument("--output", default=None, help="JSON output path (default: stdout)")

    # Reference synthesis
    rp = sub.add_parser("reference", help="Synthesize reference speech for a sentence")
    rp.add_argument("--text", required=True)
    rp.add_argument("--output", required=True, help="WAV output path")
    rp.add_argument("--tts-model", default="gpt-4o-mini-tts")
    rp.add_argument("--voice", default=os.getenv("SHADOWING_TTS_VOICE", "alloy"))
    rp.add_argument(
        "--voice-instructions",
        default=os.getenv("OPENAI_TTS_INSTRUCTIONS"),
        help="Optional TTS style instructions (not read aloud)",
    )
    rp.add_argument("--pitch", action="store_true", help="Print the normalized contour as JSON")

    # Audio extraction
    ep = sub.add_parser("extract-audio", help="Convert any audio/video file to 16 kHz mono WAV")
    ep.add_argument("--input", required=True)
    ep.add_argument("--output", required=True)
    ep.add_argument("--sample-rate", type=int, default=CANONICAL_SAMPLE_RATE)

    return ap.parse_args(argv)


def _write_json(data, path: str | None) -> None:
    text = json.dumps(data, ensure_ascii=False, indent=2)
    if path:
        ensure_dir(str(Path(path).parent))
        Path(path).write_text(text, encoding="utf-8")
    else:
        print(text)


def _openai_client(async_client: bool = False):
    if not os.getenv("OPENAI_API_KEY"):
        logger.warning("OPENAI_API_KEY is not set")
        return None
    return AsyncOpenAI() if async_client else OpenAI()


def cmd_captions(args: argparse.Namespace) -> int:
    policy = CaptionPolicy(
        echo_threshold=args.echo_threshold,
        merge_max_chars=args.merge_max_chars,
        merge_max_gap=args.merge_max_gap,
    )
    if args.video_id:
        segments = fetch_captions(args.video_id, args.lang, policy)
    else:
        raw = Path(args.input).read_text(encoding="utf-8")
        segments = parse(raw, policy)
    if not segments:
        logger.warning("No transcript available")
    write_segments_json(segments, args.output)
    if args.srt:
        write_srt(segments, args.srt)
    logger.info(f"Wrote {len(segments)} segment(s) -> {args.output}")
    return 0


def cmd_transcribe(args: argparse.Namespace) -> int:
    buffer = load_file(args.input)
    segments = transcribe_buffer(_openai_client(), buffer, args.whisper_model, args.language)
    write_segments_json(segments, args.output)
    logger.info(f"Wrote {len(segments)} segment(s) -> {args.output}")
    return 0 if segments else 1


def cmd_translate(args: argparse.Namespace) -> int:
    segments = read_segments_json(args.input)
    policy = TranslationPolicy(
        max_segments=args.batch_size,
        max_chars=args.batch_chars,
        timeout=args.timeout,
        max_attempts=args.max_attempts,
    )
    pbar = tqdm(total=len(segments), desc="Translating", unit="seg")

    def on_progress(p: TranslationProgress) -> None:
        pbar.update(p.completed - pbar.n)
        pbar.set_postfix(failed=p.failed)

    try:
        translated = asyncio.run(
            translate_segments(
                _openai_client(async_client=True),
                segments,
                get_language_name(args.target),
                on_progress=on_progress,
                model=args.model,
                policy=policy,
            )
        )
    finally:
        pbar.close()

    write_segments_json(translated, args.output)
    if args.srt:
        write_srt(translated, args.srt, include_translation=True)
    logger.info(f"Wrote {len(translated)} translated segment(s) -> {args.output}")
    return 0


def cmd_pitch(args: argparse.Namespace) -> int:
    buffer = load_file(args.input)
    if args.start is not None or args.duration is not None:
        start = args.start or 0.0
        duration = args.duration if args.duration is not None else buffer.duration - start
        buffer = slice_buffer(buffer, start, duration)
        if buffer is None:
            logger.error("Requested range is outside the audio")
            return 1
    contour = track(buffer)
    if args.normalize:
        contour = normalize(contour)
    _write_json(
        {
            "sample_rate": buffer.sample_rate,
            "times": frame_times(contour, buffer.sample_rate),
            "contour": contour,
        },
        args.output,
    )
    return 0


def cmd_reference(args: argparse.Namespace) -> int:
    client = _openai_client()
    if client is None:
        logger.error("Reference synthesis needs OPENAI_API_KEY")
        return 1
    buffer = synthesize_reference(
        client, args.text, args.tts_model, args.voice, args.voice_instructions
    )
    ensure_dir(str(Path(args.output).parent))
    Path(args.output).write_bytes(encode_container(buffer))
    logger.info(f"Reference audio ({buffer.duration:.2f}s) -> {args.output}")
    if args.pitch:
        _write_json(normalize(track(buffer)), None)
    return 0


def cmd_extract_audio(args: argparse.Namespace) -> int:
    buffer = resample(load_file(args.input), args.sample_rate, CANONICAL_CHANNELS)
    ensure_dir(str(Path(args.output).parent))
    Path(args.output).write_bytes(encode_container(buffer))
    logger.info(f"Extracted {buffer.duration:.2f}s of audio -> {args.output}")
    return 0


COMMANDS = {
    "captions": cmd_captions,
    "transcribe": cmd_transcribe,
    "translate": cmd_translate,
    "pitch": cmd_pitch,
    "reference": cmd_reference,
    "extract-audio": cmd_extract_audio,
}


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    load_dotenv()
    args = parse_args(argv)
    setup_logging(args.verbose)
    sys.exit(COMMANDS[args.command](args))


if __name__ == "__main__":
    main()
