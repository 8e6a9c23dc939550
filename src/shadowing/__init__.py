"""
Shadowing Core - transcript normalization and prosodic features for speaking practice.

A toolkit for:
- Parsing auto-generated captions and pasted transcripts into timed segments
- Decoding, resampling and slicing audio, and writing 16-bit PCM WAV
- Tracking and normalizing pitch contours for native vs. learner comparison
- Translating transcripts in resilient, size-bounded batches
"""

__version__ = "0.1.0"
