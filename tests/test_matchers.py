from study_quiz.core.matchers import (
    allowed_edits,
    count_blanks,
    fuzzy_match,
    levenshtein,
    match_blanks,
    match_choice,
    split_blanks,
)
from tests.fakes import choice, fill, swipe


def test_choice_match_is_exact_index():
    question = choice(correct_index=2)
    assert match_choice(question, 2)
    assert not match_choice(question, 1)


def test_time_expired_sentinel_never_matches():
    assert not match_choice(choice(correct_index=0), -1)
    assert not match_choice(swipe(correct_index=0), -1)


def test_levenshtein_basics():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("same", "same") == 0


def test_fuzzy_match_is_reflexive_and_case_insensitive():
    for word in ["Paris", "photosynthesis", "a", "Calvin cycle"]:
        assert fuzzy_match(word, [word])
    assert fuzzy_match("  PARIS ", ["paris"])


def test_tolerance_has_floor_of_one_edit():
    assert allowed_edits("cat") == 1
    assert fuzzy_match("cot", ["cat"])
    assert not fuzzy_match("cog", ["cat"])


def test_tolerance_boundary_is_exact():
    # 20 characters allow floor(0.15 * 20) = 3 edits.
    accepted = "abcdefghijklmnopqrst"
    assert allowed_edits(accepted) == 3
    assert fuzzy_match("xxxdefghijklmnopqrst", [accepted])
    assert not fuzzy_match("xxxxefghijklmnopqrst", [accepted])


def test_empty_answer_never_matches():
    assert not fuzzy_match("", ["a"])
    assert not fuzzy_match("   ", ["photosynthesis"])


def test_any_accepted_answer_can_match():
    assert fuzzy_match("CO2", ["carbon dioxide", "co2"])


def test_match_blanks_grades_each_blank_in_order():
    question = fill("f1", ("photosynthesis",), ("chlorophyll",))
    results = match_blanks(question, ("photosynthesiss", "mitochondria"))
    assert [r.is_correct for r in results] == [True, False]
    assert results[1].expected_answer == "chlorophyll"


def test_match_blanks_accepts_mapping_and_missing_entries():
    question = fill("f1", ("photosynthesis",), ("chlorophyll",))
    results = match_blanks(question, {"blank-1": "chlorophyl"})
    assert [r.user_answer for r in results] == ["", "chlorophyl"]
    assert [r.is_correct for r in results] == [False, True]


def test_split_blanks_yields_blank_ids():
    segments = split_blanks("The [___] absorbs [___].")
    assert [s.blank_id for s in segments if s.is_blank] == ["blank-0", "blank-1"]
    assert "".join(s.text for s in segments) == "The  absorbs ."
    assert count_blanks("The [___] absorbs [___].") == 2
