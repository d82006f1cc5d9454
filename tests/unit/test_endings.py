# tests/unit/test_endings.py
"""Unit tests for the ending-omission heuristic."""

from speaking.endings import EndingIssue, EndingKind, detect_ending_issues


def test_missing_past_tense():
    issues = detect_ending_issues("he walked home", "he walk home")
    assert issues == [EndingIssue(word="walked", kind=EndingKind.MISSING_PAST_TENSE)]


def test_missing_es():
    issues = detect_ending_issues("she watches tv", "she watch tv")
    assert [(i.word, i.kind) for i in issues] == [("watches", EndingKind.MISSING_PLURAL_OR_THIRD_PERSON)]


def test_missing_s():
    issues = detect_ending_issues("many dogs run", "many dog run")
    assert [(i.word, i.kind) for i in issues] == [("dogs", EndingKind.MISSING_PLURAL_OR_THIRD_PERSON)]


def test_es_word_not_flagged_via_single_s_strip():
    # "goes" -> "goe" is never checked; "go" spoken matches the -es rule
    issues = detect_ending_issues("he goes", "he go")
    assert [i.word for i in issues] == ["goes"]

    assert detect_ending_issues("the shoes", "the shoe") == []


def test_present_words_are_ignored():
    assert detect_ending_issues("he walked home", "he walked home") == []


def test_case_insensitive_and_ordered():
    issues = detect_ending_issues("Cats PLAYED and Dogs jumped", "cat play and dog jump")
    assert [i.word for i in issues] == ["cats", "played", "dogs", "jumped"]


def test_repeated_reference_word_reported_once():
    issues = detect_ending_issues("walked and walked again", "walk and walk again")
    assert [i.word for i in issues] == ["walked"]


def test_empty_inputs():
    assert detect_ending_issues("", "anything") == []
    assert detect_ending_issues("walked", "") == []


def test_kind_values_are_stable():
    assert EndingKind.MISSING_PAST_TENSE.value == "missing_ed"
    assert EndingKind.MISSING_PLURAL_OR_THIRD_PERSON.value == "missing_s"


def test_words_ending_in_es_only_checked_with_es_stripped():
    # "makes" -> "mak" is not spoken and the single -s rule skips -es words
    assert detect_ending_issues("she makes names", "she make name") == []
