from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

FeedbackStatus = Literal["correct", "partial", "incorrect", "extra", "missing"]
SpeedClass = Literal["too_fast", "too_slow", "good", "unknown"]


class _Record(BaseModel):
	# Immutable once built; serialized with camelCase keys for the UI layer.
	model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class WordComparisonResult(_Record):
	word: str
	original_word: str
	is_correct: bool
	similarity: float = Field(ge=0.0, le=1.0)


class AlignmentSummary(_Record):
	results: List[WordComparisonResult]
	correct: int
	substituted: int
	missing: int
	extra: int
	accuracy: float


class RealTimeFeedback(_Record):
	word: str
	status: FeedbackStatus
	confidence: float
	suggestion: Optional[str] = None
	position: int


class SpeedAnalysis(_Record):
	words_per_minute: float
	average_word_duration: float
	speed_feedback: SpeedClass
	recommendation: str


class PauseAnalysis(_Record):
	total_pauses: int
	average_pause_duration: float
	longest_pause: float
	pause_feedback: str


class TimingStats(_Record):
	speed: SpeedAnalysis
	pauses: PauseAnalysis


class OverallFeedback(_Record):
	overall_score: int
	accuracy: int
	fluency: int
	speed: int
	recommendations: List[str]


class AssessmentResult(_Record):
	transcription: str
	original_text: str
	overall_score: int = Field(ge=0, le=100)
	accuracy: int = Field(ge=0, le=100)
	fluency: int = Field(ge=0, le=100)
	completeness: int = Field(ge=0, le=100)
	prosody: int = Field(ge=0, le=100)
	word_assessments: List[WordComparisonResult] = Field(default_factory=list)
	feedback: List[str]
	suggestions: List[str]
