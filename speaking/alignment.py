"""
Alignment - Word-level alignment between a reference text and a transcript.

Classic Levenshtein edit distance over words. The DP keeps two parallel
grids (cost and chosen operation) so the tie-break order is fixed:
substitution, then insertion, then deletion.
"""
from __future__ import annotations

import re
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, Field

_STRIP_RE = re.compile(r'[.,!?;:"]')
_WS_RE = re.compile(r"\s+")

MATCH = "match"
SUBSTITUTION = "substitution"
INSERTION = "insertion"
DELETION = "deletion"


# -----------------------------------------------------------------------------
# Types (Pydantic Models)
# -----------------------------------------------------------------------------

class Match(BaseModel):
    op: Literal["match"] = MATCH
    word: str


class Substitution(BaseModel):
    op: Literal["substitution"] = SUBSTITUTION
    expected: str
    actual: str


class Insertion(BaseModel):
    op: Literal["insertion"] = INSERTION
    word: str


class Deletion(BaseModel):
    op: Literal["deletion"] = DELETION
    word: str


DiffOp = Annotated[
    Union[Match, Substitution, Insertion, Deletion],
    Field(discriminator="op"),
]


class AlignmentResult(BaseModel):
    word_error_rate: float = Field(default=0.0, ge=0.0)
    diff: List[DiffOp] = Field(default_factory=list)
    degenerate: bool = False  # empty reference or hypothesis

    def reference_words(self) -> List[str]:
        """Replay the reference side (match, substitution expected, deletion)."""
        out: List[str] = []
        for d in self.diff:
            if isinstance(d, Substitution):
                out.append(d.expected)
            elif isinstance(d, (Match, Deletion)):
                out.append(d.word)
        return out

    def hypothesis_words(self) -> List[str]:
        """Replay the hypothesis side (match, substitution actual, insertion)."""
        out: List[str] = []
        for d in self.diff:
            if isinstance(d, Substitution):
                out.append(d.actual)
            elif isinstance(d, (Match, Insertion)):
                out.append(d.word)
        return out

    @property
    def edit_count(self) -> int:
        return sum(1 for d in self.diff if not isinstance(d, Match))


# -----------------------------------------------------------------------------
# Algorithm
# -----------------------------------------------------------------------------

def normalize_words(text: str) -> List[str]:
    """
    Lowercase, drop . , ! ? ; : and double quotes, then split on whitespace.

    Example: 'The cat, "sat".' -> ["the", "cat", "sat"]
    """
    t = _STRIP_RE.sub("", (text or "").lower())
    t = _WS_RE.sub(" ", t).strip()
    return t.split(" ") if t else []


def align(reference: str, hypothesis: str) -> AlignmentResult:
    """
    Align hypothesis (transcript) words against reference words.

    Args:
        reference: Expected text.
        hypothesis: What was actually said (transcript).

    Returns:
        AlignmentResult with the word error rate (distance / reference words)
        and the ordered diff. An empty side yields a zero, degenerate result.
    """
    r = normalize_words(reference)
    h = normalize_words(hypothesis)
    if not r or not h:
        return AlignmentResult(word_error_rate=0.0, diff=[], degenerate=True)

    n, m = len(r), len(h)
    cost = [[0] * (m + 1) for _ in range(n + 1)]
    ops = [[""] * (m + 1) for _ in range(n + 1)]

    for i in range(n + 1):
        cost[i][0] = i
        ops[i][0] = DELETION
    for j in range(m + 1):
        cost[0][j] = j
        ops[0][j] = INSERTION

    for i in range(1, n + 1):
        for j in range(1, m + 1):
            if r[i - 1] == h[j - 1]:
                cost[i][j] = cost[i - 1][j - 1]
                ops[i][j] = MATCH
                continue

            sub = cost[i - 1][j - 1] + 1
            ins = cost[i][j - 1] + 1
            dele = cost[i - 1][j] + 1
            best = min(sub, ins, dele)
            cost[i][j] = best

            # order matters on ties
            if best == sub:
                ops[i][j] = SUBSTITUTION
            elif best == ins:
                ops[i][j] = INSERTION
            else:
                ops[i][j] = DELETION

    diff: List[DiffOp] = []
    i, j = n, m
    while i > 0 or j > 0:
        op = ops[i][j]
        if i > 0 and j > 0 and op == MATCH:
            diff.append(Match(word=r[i - 1]))
            i -= 1
            j -= 1
        elif i > 0 and j > 0 and op == SUBSTITUTION:
            diff.append(Substitution(expected=r[i - 1], actual=h[j - 1]))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or op == INSERTION):
            diff.append(Insertion(word=h[j - 1]))
            j -= 1
        else:
            diff.append(Deletion(word=r[i - 1]))
            i -= 1
    diff.reverse()

    return AlignmentResult(word_error_rate=cost[n][m] / n, diff=diff)
