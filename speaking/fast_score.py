"""
Fast Score - Provisional band score from transcript + capture metrics.

Cheap heuristics (pace, pauses, fillers, lexical diversity, grammar proxies)
that give the learner a score while the full AI grading is still running.
"""
from __future__ import annotations

import math
import os
import re
from typing import List, Optional

from pydantic import BaseModel

from .helper.env import load_repo_dotenv
from .schemas import CriterionScore, SpeakingAnalysis, SpeakingMetrics

load_repo_dotenv()

# -----------------------------------------------------------------------------
# Config
# -----------------------------------------------------------------------------

DEFAULT_FILLER_WORDS = ["um", "uh", "like", "you know", "actually", "basically"]
FORMULA_VERSION = os.getenv("SPEAKING_PROVISIONAL_FORMULA_VERSION", "formula_v1")

_TOKEN_RE = re.compile(r"[^a-z0-9'\s]")
_SENTENCE_RE = re.compile(r"[.!?]+")
_REPEATED_WORD_RE = re.compile(r"\b([a-z']+)\s+\1\b")
_VERB_HINT_RE = re.compile(
    r"\b(is|are|am|was|were|be|been|being|do|does|did|have|has|had|can|could|will|would"
    r"|should|may|might|must|go|goes|went|make|makes|made|take|takes|took)\b"
)
_AGREEMENT_RES = [
    re.compile(p)
    for p in (
        r"\bi\s+is\b",
        r"\bi\s+are\b",
        r"\bhe\s+are\b",
        r"\bshe\s+are\b",
        r"\bit\s+are\b",
        r"\bthey\s+is\b",
        r"\bwe\s+is\b",
        r"\byou\s+is\b",
        r"\bdoesn'?t\s+\w+ed\b",
        r"\bdidn'?t\s+\w+ed\b",
    )
]


def filler_words() -> List[str]:
    """Filler list from SPEAKING_FILLER_WORDS (comma separated) or the default."""
    raw = os.getenv("SPEAKING_FILLER_WORDS", "")
    items = [w.strip().lower() for w in raw.split(",") if w.strip()]
    return items or DEFAULT_FILLER_WORDS


# -----------------------------------------------------------------------------
# Features
# -----------------------------------------------------------------------------

class FastFeatures(BaseModel):
    wpm: float = 0.0
    word_count: int = 0
    sentence_count: int = 1
    pause_count: int = 0
    total_pause_ms: int = 0
    avg_pause_ms: float = 0.0
    pause_per_100_words: float = 0.0
    filler_count: int = 0
    filler_density: float = 0.0
    lexical_diversity: float = 0.0
    grammar_proxy_error_count: int = 0
    grammar_proxy_error_rate: float = 0.0


class ProvisionalBands(BaseModel):
    band_score: float
    fluency_coherence: float
    lexical_resource: float
    grammatical_range: float
    pronunciation: float


def _clamp(value: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, value))


def _round_half(value: float) -> float:
    # half up, like the capture client
    return math.floor(value * 2 + 0.5) / 2


def _tokenize(text: str) -> List[str]:
    return [w for w in _TOKEN_RE.sub(" ", (text or "").lower()).split() if w]


def _sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_RE.split(text or "") if s.strip()]


def count_grammar_proxy_errors(transcript: str) -> int:
    """
    Surface-level grammar error proxies: subject/verb agreement slips,
    immediate word repetitions, and long sentences with no verb at all.
    """
    lower = (transcript or "").lower()
    if not lower.strip():
        return 0

    errors = sum(len(p.findall(lower)) for p in _AGREEMENT_RES)
    errors += sum(1 for _ in _REPEATED_WORD_RE.finditer(lower))

    for sentence in _sentences(lower):
        if len(sentence.split()) >= 6 and not _VERB_HINT_RE.search(sentence):
            errors += 1

    return errors


def extract_features(transcript: str, metrics: Optional[SpeakingMetrics] = None) -> FastFeatures:
    metrics = metrics or SpeakingMetrics()
    text = (transcript or "").strip()
    words = _tokenize(text)
    word_count = len(words)
    sentence_count = max(len(_sentences(text)), 1)

    pauses = metrics.pauses
    pause_count = pauses.pause_count
    total_pause_ms = pauses.total_pause_duration_ms
    avg_pause_ms = total_pause_ms / pause_count if pause_count else float(pauses.avg_pause_duration_ms)

    padded = f" {text.lower()} "
    filler_count = 0
    for filler in filler_words():
        filler_count += len(re.findall(rf"\b{re.escape(filler)}\b", padded))

    unique = len(set(words))
    raw_ttr = unique / word_count if word_count else 0.0
    length_boost = _clamp(math.sqrt(max(word_count, 1) / 30), 0.6, 1.25)
    lexical_diversity = _clamp(raw_ttr * length_boost, 0.0, 1.0)

    grammar_errors = count_grammar_proxy_errors(text)

    return FastFeatures(
        wpm=metrics.wpm,
        word_count=word_count,
        sentence_count=sentence_count,
        pause_count=pause_count,
        total_pause_ms=total_pause_ms,
        avg_pause_ms=avg_pause_ms,
        pause_per_100_words=(pause_count / word_count) * 100 if word_count else float(pause_count),
        filler_count=filler_count,
        filler_density=filler_count / word_count if word_count else 0.0,
        lexical_diversity=lexical_diversity,
        grammar_proxy_error_count=grammar_errors,
        grammar_proxy_error_rate=grammar_errors / sentence_count,
    )


# -----------------------------------------------------------------------------
# Banding
# -----------------------------------------------------------------------------

def _score_wpm(wpm: float) -> float:
    if wpm <= 0:
        return 4.5
    if wpm < 70:
        return 3.5
    if wpm < 90:
        return 4.5
    if wpm < 110:
        return 5.5
    if wpm < 145:
        return 6.5
    if wpm < 170:
        return 7.0
    if wpm < 190:
        return 6.0
    return 5.0


def _score_pause_rate(per_100_words: float) -> float:
    if per_100_words <= 8:
        return 7.5
    if per_100_words <= 12:
        return 6.5
    if per_100_words <= 18:
        return 5.5
    if per_100_words <= 25:
        return 4.5
    return 3.5


def _score_filler_density(density: float) -> float:
    if density <= 0.01:
        return 7.5
    if density <= 0.03:
        return 6.5
    if density <= 0.06:
        return 5.5
    if density <= 0.1:
        return 4.5
    return 3.5


def _score_grammar_rate(rate: float) -> float:
    if rate <= 0.2:
        return 7.0
    if rate <= 0.4:
        return 6.0
    if rate <= 0.7:
        return 5.0
    if rate <= 1.0:
        return 4.0
    return 3.0


def _score_lexical_diversity(diversity: float) -> float:
    for floor, band in ((0.62, 7.5), (0.55, 6.8), (0.48, 6.0), (0.42, 5.2), (0.35, 4.5)):
        if diversity >= floor:
            return band
    return 3.8


def compute_provisional_band(features: FastFeatures) -> ProvisionalBands:
    fluency_raw = (
        0.45 * _score_wpm(features.wpm)
        + 0.35 * _score_pause_rate(features.pause_per_100_words)
        + 0.2 * _score_filler_density(features.filler_density)
    )
    fluency = _round_half(_clamp(fluency_raw, 0, 9))
    grammar = _round_half(_clamp(_score_grammar_rate(features.grammar_proxy_error_rate), 0, 9))
    lexical = _round_half(_clamp(_score_lexical_diversity(features.lexical_diversity), 0, 9))

    # No ASR confidence here, pronunciation leans on fluency and vocabulary.
    pronunciation = _round_half(_clamp(0.6 * fluency + 0.4 * lexical, 0, 9))

    band_raw = 0.3 * fluency + 0.25 * grammar + 0.25 * lexical + 0.2 * pronunciation
    return ProvisionalBands(
        band_score=_round_half(_clamp(band_raw, 0, 9)),
        fluency_coherence=fluency,
        lexical_resource=lexical,
        grammatical_range=grammar,
        pronunciation=pronunciation,
    )


def build_provisional_analysis(features: FastFeatures, bands: ProvisionalBands) -> SpeakingAnalysis:
    return SpeakingAnalysis(
        band_score=bands.band_score,
        fluency_coherence=CriterionScore(
            score=bands.fluency_coherence,
            feedback=(
                f"WPM {round(features.wpm)}, pauses {features.pause_count}, "
                f"filler density {features.filler_density * 100:.1f}%."
            ),
        ),
        lexical_resource=CriterionScore(
            score=bands.lexical_resource,
            feedback=(
                f"Lexical diversity {features.lexical_diversity * 100:.1f}% "
                f"based on {features.word_count} words."
            ),
        ),
        grammatical_range=CriterionScore(
            score=bands.grammatical_range,
            feedback=f"Grammar proxy error rate {features.grammar_proxy_error_rate:.2f} per sentence.",
        ),
        pronunciation=CriterionScore(
            score=bands.pronunciation,
            feedback="Pronunciation score is provisional and will be finalized by AI grading.",
        ),
        general_feedback=(
            "This is a provisional score from the fast pipeline (transcript + heuristics). "
            "The official score will be updated after full AI grading."
        ),
        sample_answer="Waiting for the final AI-generated model answer.",
    )


def score_transcript(transcript: str, metrics: Optional[SpeakingMetrics] = None) -> SpeakingAnalysis:
    """Features -> bands -> provisional analysis in one call."""
    features = extract_features(transcript, metrics)
    return build_provisional_analysis(features, compute_provisional_band(features))
