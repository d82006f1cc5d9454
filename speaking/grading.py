"""
Grading - Final AI grading of a spoken response.

The grader is an external, possibly slow capability. It is called exactly once
per finalization attempt and either returns a typed SpeakingAnalysis or raises
GradingUnavailable / MalformedResponse. No fallback score is invented here;
the caller decides whether to retry.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from textwrap import dedent
from typing import Optional, Protocol

import requests

from .errors import GradingUnavailable, MalformedResponse
from .helper.env import env_int, load_repo_dotenv
from .helper.json_utils import parse_model_strict
from .helper.llm import get_default_model, ollama_chat
from .schemas import GradingRequest, SpeakingAnalysis

load_repo_dotenv()

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Config
# -----------------------------------------------------------------------------

DEFAULT_NUM_CTX = env_int("SPEAKING_GRADER_NUM_CTX", 8192)
DEFAULT_TIMEOUT = env_int("SPEAKING_GRADER_TIMEOUT", 60)

# Temperature for JSON tasks (lower = more deterministic)
DEFAULT_TEMPERATURE = 0.2
DEFAULT_TOP_P = 0.9


@dataclass(frozen=True)
class GraderCfg:
    model: Optional[str] = os.getenv("SPEAKING_GRADER_MODEL")
    num_ctx: int = DEFAULT_NUM_CTX
    timeout: int = DEFAULT_TIMEOUT
    temperature: float = DEFAULT_TEMPERATURE
    top_p: float = DEFAULT_TOP_P


class Grader(Protocol):
    """Grading capability consumed by the scoring lifecycle."""

    source: str

    def grade(self, request: GradingRequest) -> SpeakingAnalysis:
        ...


# -----------------------------------------------------------------------------
# Prompting
# -----------------------------------------------------------------------------

def build_system_prompt() -> str:
    base = dedent(
        """
        You are a STRICT IELTS Speaking examiner (official band descriptors) and a
        pronunciation coach.

        Important context:
        - The candidate's answer is given as a speech-to-text transcript.
        - Treat punctuation and casing as unreliable artifacts of transcription.
        - System metrics (pace, pauses) were measured from the live recording.

        Scoring rules:
        - Score exactly 4 criteria: Fluency & Coherence, Lexical Resource,
          Grammatical Range & Accuracy, Pronunciation.
        - Each criterion score is 0.0 to 9.0 in 0.5 steps.
        - band_score is the average of the 4 criteria, rounded to the nearest 0.5.
        - Do NOT be lenient. Do NOT inflate scores.
        - Frequent long pauses and broken delivery: fluency_coherence <= 6.0.
        - Frequent grammar errors that reduce clarity: grammatical_range <= 5.5.
        - Underdeveloped, short answers: fluency_coherence <= 5.5.
        - Do not award band >= 7.0 unless all 4 criteria are consistently strong.
        - Check final endings (-s / -es / -ed); dropped endings listed under
          diagnostics are evidence for grammar and pronunciation feedback.

        HARD CONSTRAINT:
        - Output MUST be strict, valid JSON.
        - No markdown, no code fences, no preambles, no trailing commentary.
        """
    ).strip()

    schema = dedent(
        """
        JSON Schema (exact keys required):
        {
          "transcript": "string (the transcript you graded)",
          "band_score": number,
          "fluency_coherence": {"score": number, "feedback": "string"},
          "lexical_resource": {"score": number, "feedback": "string"},
          "grammatical_range": {"score": number, "feedback": "string"},
          "pronunciation": {"score": number, "feedback": "string"},
          "general_feedback": "string (strict summary with top priority fixes)",
          "sample_answer": "string (Band 7.0+ model answer for this topic)"
        }
        """
    ).strip()

    return f"{base}\n\n{schema}"


def build_user_prompt(request: GradingRequest) -> str:
    pauses = request.metrics.pauses
    lines = [
        "TOPIC / QUESTION:",
        f'"{request.reference_prompt}"',
        "",
        "SYSTEM METRICS:",
        f"- WPM: {request.metrics.wpm:g}",
        f"- Pause count: {pauses.pause_count}",
        f"- Total pause duration (ms): {pauses.total_pause_duration_ms}",
        f"- Longest pause (ms): {pauses.longest_pause_ms}",
        f"- Avg pause duration (ms): {pauses.avg_pause_duration_ms}",
    ]

    diag = request.diagnostics
    if diag is not None and not diag.alignment.degenerate:
        lines += [
            "",
            "READ-ALOUD DIAGNOSTICS:",
            f"- Word error rate against the reference: {diag.word_error_rate:.2f}",
        ]
        if diag.ending_issues:
            dropped = ", ".join(f"{i.word} ({i.kind.value})" for i in diag.ending_issues)
            lines.append(f"- Dropped endings: {dropped}")

    if request.provisional_analysis is not None:
        lines += [
            "",
            f"PROVISIONAL (heuristic) BAND: {request.provisional_analysis.band_score:g}",
            "Use it only as a sanity check; grade independently.",
        ]

    lines += [
        "",
        "CANDIDATE TRANSCRIPT:",
        request.transcript or "(none)",
        "",
        "Return strictly valid JSON matching the schema.",
    ]
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Ollama-backed grader
# -----------------------------------------------------------------------------

class OllamaGrader:
    """Grades through a local Ollama chat model."""

    def __init__(self, cfg: Optional[GraderCfg] = None):
        self.cfg = cfg or GraderCfg()

    @property
    def model(self) -> str:
        return self.cfg.model or get_default_model()

    @property
    def source(self) -> str:
        return f"ollama:{self.model}"

    def grade(self, request: GradingRequest) -> SpeakingAnalysis:
        """
        Call the model once and parse its JSON answer.

        Raises:
            GradingUnavailable: transport error, timeout, HTTP error, or an
                unexpected response envelope.
            MalformedResponse: the model answered but not with a valid analysis.
        """
        try:
            raw = ollama_chat(
                build_system_prompt(),
                build_user_prompt(request),
                num_ctx=self.cfg.num_ctx,
                timeout=self.cfg.timeout,
                model=self.model,
                temperature=self.cfg.temperature,
                top_p=self.cfg.top_p,
                json_format=True,
            )
        except requests.RequestException as e:
            raise GradingUnavailable(f"Grader request failed ({self.source}): {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise GradingUnavailable(f"Grader returned an unexpected envelope ({self.source}): {e}") from e

        if not (raw or "").strip():
            raise MalformedResponse(f"Grader returned empty content ({self.source})", raw_output=raw or "")

        analysis = parse_model_strict(raw, SpeakingAnalysis)
        if not analysis.transcript:
            analysis = analysis.model_copy(update={"transcript": request.transcript})

        logger.debug(
            "grader_response "
            + json.dumps({"source": self.source, "band_score": analysis.band_score})
        )
        return analysis
