"""
Endings - Flag inflectional endings a speaker systematically drops.

Set-membership check, independent of the positional alignment: a reference
word that is missing from the transcript, while its stem without -ed / -es / -s
is present, is reported once.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel

_WORD_RE = re.compile(r"\b\w+\b")


class EndingKind(str, Enum):
    MISSING_PAST_TENSE = "missing_ed"
    MISSING_PLURAL_OR_THIRD_PERSON = "missing_s"


class EndingIssue(BaseModel):
    word: str
    kind: EndingKind


def _tokens(text: str) -> List[str]:
    return _WORD_RE.findall((text or "").lower())


def _classify(word: str, spoken: Set[str]) -> Optional[EndingKind]:
    if word.endswith("ed") and word[:-2] in spoken:
        return EndingKind.MISSING_PAST_TENSE
    if word.endswith("es") and word[:-2] in spoken:
        return EndingKind.MISSING_PLURAL_OR_THIRD_PERSON
    if word.endswith("s") and not word.endswith("es") and word[:-1] in spoken:
        return EndingKind.MISSING_PLURAL_OR_THIRD_PERSON
    return None


def detect_ending_issues(reference: str, hypothesis: str) -> List[EndingIssue]:
    """
    Find reference words whose ending was dropped in the transcript.

    Args:
        reference: Expected text.
        hypothesis: Transcript of what was said.

    Returns:
        Issues in order of first occurrence in the reference.
    """
    spoken = set(_tokens(hypothesis))
    seen: Set[str] = set()
    issues: List[EndingIssue] = []

    for word in _tokens(reference):
        if word in spoken or word in seen:
            continue
        seen.add(word)
        kind = _classify(word, spoken)
        if kind is not None:
            issues.append(EndingIssue(word=word, kind=kind))

    return issues
