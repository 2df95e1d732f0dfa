"""Speaking rate and pause analysis from word arrival times.

All times are milliseconds. The analyzer works on a ``SpeechSession`` owned by
the caller; nothing here keeps state of its own.
"""
from __future__ import annotations

import logging
import time
from typing import List, Optional

from .schemas import PauseAnalysis, SpeedAnalysis, TimingStats
from .session import SpeechSession, SpeechTiming

logger = logging.getLogger(__name__)

FAST_WPM = 180
SLOW_WPM = 120

# Gaps at or below this are treated as normal word boundaries.
MIN_PAUSE_MS = 100
LONG_PAUSE_MS = 1000
SHORT_PAUSE_MS = 200

SPEED_RECOMMENDATIONS = {
	"too_fast": "Try to speak slower for better pronunciation clarity",
	"too_slow": "You can speak a bit faster for more natural flow",
	"good": "Great speaking speed! Keep it up",
	"unknown": "Speak more words to analyze speed",
}

PAUSE_LONG_FEEDBACK = "Try to reduce long pauses between words for better fluency"
PAUSE_FLUENT_FEEDBACK = "Great fluency! Natural speech rhythm"
PAUSE_GOOD_FEEDBACK = "Good pause patterns. Natural speech flow"
PAUSE_NO_DATA_FEEDBACK = "Need more speech data to analyze pauses"


def now_ms() -> float:
	return time.time() * 1000


def start_timing(session: SpeechSession, now: Optional[float] = None) -> None:
	session.start_time = now_ms() if now is None else now
	session.timings = []


def record_word_timing(session: SpeechSession, word: str, timestamp: float) -> SpeechTiming:
	"""Append a word that arrived at ``timestamp``.

	The previous word is closed at this timestamp; the new entry stays open
	(``end_time == start_time``) until the next word arrives.
	"""
	if session.timings:
		last = session.timings[-1]
		if last.end_time == last.start_time:
			last.end_time = timestamp
			last.duration = timestamp - last.start_time
	entry = SpeechTiming(word=word, start_time=timestamp, end_time=timestamp, duration=0.0)
	session.timings.append(entry)
	return entry


def record_word_span(session: SpeechSession, word: str, start: float, end: float) -> SpeechTiming:
	"""Append a word whose start and end are both known (recognizer word offsets)."""
	if end < start:
		raise ValueError("word end precedes its start")
	entry = SpeechTiming(word=word, start_time=start, end_time=end, duration=end - start)
	session.timings.append(entry)
	return entry


def analyze_speed(session: SpeechSession) -> SpeedAnalysis:
	timings = session.timings
	if len(timings) < 2:
		return SpeedAnalysis(
			words_per_minute=0.0,
			average_word_duration=0.0,
			speed_feedback="unknown",
			recommendation=SPEED_RECOMMENDATIONS["unknown"],
		)

	total_seconds = (timings[-1].end_time - timings[0].start_time) / 1000
	if total_seconds <= 0:
		logger.debug("speech span is empty for %d words; speed unknown", len(timings))
		return SpeedAnalysis(
			words_per_minute=0.0,
			average_word_duration=0.0,
			speed_feedback="unknown",
			recommendation=SPEED_RECOMMENDATIONS["unknown"],
		)

	words_per_minute = (len(timings) / total_seconds) * 60
	average_word_duration = sum(t.duration for t in timings) / len(timings)
	if words_per_minute > FAST_WPM:
		speed_feedback = "too_fast"
	elif words_per_minute < SLOW_WPM:
		speed_feedback = "too_slow"
	else:
		speed_feedback = "good"
	return SpeedAnalysis(
		words_per_minute=words_per_minute,
		average_word_duration=average_word_duration,
		speed_feedback=speed_feedback,
		recommendation=SPEED_RECOMMENDATIONS[speed_feedback],
	)


def _pauses(timings: List[SpeechTiming]) -> List[float]:
	pauses: List[float] = []
	for prev, nxt in zip(timings, timings[1:]):
		gap = nxt.start_time - prev.end_time
		if gap > MIN_PAUSE_MS:
			pauses.append(gap)
	return pauses


def analyze_pauses(session: SpeechSession) -> PauseAnalysis:
	if len(session.timings) < 2:
		return PauseAnalysis(
			total_pauses=0,
			average_pause_duration=0.0,
			longest_pause=0.0,
			pause_feedback=PAUSE_NO_DATA_FEEDBACK,
		)

	pauses = _pauses(session.timings)
	total = len(pauses)
	average = sum(pauses) / total if total else 0.0
	longest = max(pauses) if pauses else 0.0

	if average > LONG_PAUSE_MS:
		feedback = PAUSE_LONG_FEEDBACK
	elif average < SHORT_PAUSE_MS and total < 2:
		feedback = PAUSE_FLUENT_FEEDBACK
	else:
		feedback = PAUSE_GOOD_FEEDBACK
	return PauseAnalysis(
		total_pauses=total,
		average_pause_duration=average,
		longest_pause=longest,
		pause_feedback=feedback,
	)


def timing_stats(session: SpeechSession) -> TimingStats:
	return TimingStats(speed=analyze_speed(session), pauses=analyze_pauses(session))
