from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import List, Optional

from .normalizer import normalize


@dataclass
class SpeechTiming:
	"""Arrival record for one recognized word, in milliseconds."""
	word: str
	start_time: float
	end_time: float
	duration: float = 0.0


class SpeechSession:
	"""
	State owned by one recording session.

	Holds the target sentence and the word timing log. A session is written and
	read by a single caller; nothing in it is shared with other sessions.

	Attributes:
		session_id: Unique identifier for the session
		target_text: Sentence the learner is asked to say
		target_words: Normalized tokens of ``target_text``
		timings: Word arrival log, appended in order
		start_time: When timing started (ms), or None before ``start_timing``
		last_active: Wall-clock seconds of the last request that used the session
	"""
	def __init__(self, target_text: str = "") -> None:
		self.session_id: str = uuid.uuid4().hex
		self.target_text: str = ""
		self.target_words: List[str] = []
		self.timings: List[SpeechTiming] = []
		self.start_time: Optional[float] = None
		self.last_active: float = time.time()
		if target_text:
			self.set_target_text(target_text)

	def set_target_text(self, text: str) -> None:
		self.target_text = text
		self.target_words = normalize(text)

	def touch(self) -> None:
		self.last_active = time.time()

	def reset(self) -> None:
		self.target_text = ""
		self.target_words = []
		self.timings = []
		self.start_time = None
