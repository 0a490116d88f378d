import pytest

from eduup.services import scoring_service
from eduup.services.scoring_service import grade_submission


def _quiz(answers):
    questions = [
        {"question": "2 + 2", "options": ["3", "4"], "answer": "4"},
        {"question": "3 + 3", "options": ["6", "7"], "answer": "6"},
    ]
    return {"id": "q1", "type": "quiz", "questions": questions}, answers


def test_percent_rounds_half_up():
    assert scoring_service.percent(2, 3) == 67
    assert scoring_service.percent(1, 8) == 13
    assert scoring_service.percent(0, 0) == 0


def test_stars_thresholds():
    assert scoring_service.stars_for_score(80) == 3
    assert scoring_service.stars_for_score(79) == 2
    assert scoring_service.stars_for_score(60) == 2
    assert scoring_service.stars_for_score(0) == 1


def test_clamp_helpers_bound_values():
    assert scoring_service.clamp_score(150) == 100
    assert scoring_service.clamp_score(-4) == 0
    assert scoring_service.clamp_score("oops") == 0
    assert scoring_service.clamp_stars(7) == 3
    assert scoring_service.clamp_stars(None) == 0


def test_quiz_grading_builds_review_items():
    exercise, answers = _quiz({"0": "4", "1": "7"})

    result = grade_submission(exercise, answers)

    assert result.correct_count == 1
    assert result.total == 2
    assert result.score == 50
    assert result.stars == 1
    assert [item["correct"] for item in result.items] == [True, False]
    assert result.items[1]["correct_answer"] == "6"
    assert result.items[1]["explanation"] == scoring_service.WRONG_EXPLANATION


def test_fill_accepts_lists_and_exact_sets():
    assert scoring_service.evaluate_fill(" Praha ", "praha")
    assert scoring_service.evaluate_fill("A, b", ["a", "b", "c"])
    assert not scoring_service.evaluate_fill("a, d", ["a", "b"])
    assert not scoring_service.evaluate_fill("x", {"mode": "set_exact", "items": ["x", "y"]})
    assert scoring_service.evaluate_fill("y; x", {"mode": "set_exact", "items": ["x", "y"]})


def test_cloze_requires_every_gap():
    text = "Mám ___ a ___."
    assert scoring_service.evaluate_cloze(text, ["Psa", "kočku "], "psa___kočku")
    assert not scoring_service.evaluate_cloze(text, ["psa"], "psa___kočku")
    assert not scoring_service.evaluate_cloze("bez mezery", ["x"], "x")


def test_analysis_single_colour_mode_only_checks_that_colour():
    question = {
        "tokens": [
            {"char": "a", "expected": "red"},
            {"char": "b", "expected": None},
            {"char": "c", "expected": "red"},
        ]
    }
    legend = {"red": "podmět", "blue": ""}

    assert scoring_service.evaluate_analysis(question, {"0": "red", "2": "red"}, legend)
    assert not scoring_service.evaluate_analysis(question, {"0": "red"}, legend)


def test_analysis_two_colour_mode_checks_every_token():
    question = {"tokens": [{"char": "Pes", "expected": "red"}, {"char": "štěká", "expected": "blue"}]}

    assert scoring_service.evaluate_analysis(question, {"0": "red", "1": "blue"})
    assert not scoring_service.evaluate_analysis(question, {"0": "red"})
    assert not scoring_service.evaluate_analysis(question, ["red", "red"])

    unlabelled = {"tokens": [{"char": "Pes", "expected": "red"}, {"char": ".", "expected": None}]}
    assert not scoring_service.evaluate_analysis(unlabelled, {"0": "red"})
    assert not scoring_service.evaluate_analysis({"tokens": [{"char": "x", "expected": "green"}]}, {"0": "green"})


def test_image_and_listening_ignore_case_and_spaces():
    for exercise_type in ("image", "listening"):
        exercise = {"type": exercise_type, "questions": [{"question": "Co slyšíš?", "answer": "Pes"}, {"answer": "kočka"}]}

        result = grade_submission(exercise, {"0": "  pes ", "1": "koc ka"})

        assert [item["correct"] for item in result.items] == [True, False]
        assert result.items[0]["user_answer"] == "  pes "
        assert result.score == 50


def test_decision_uses_exact_answer():
    exercise = {"type": "decision", "questions": [{"question": "Je 7 prvočíslo?", "answer": "ano"}] * 2}

    result = grade_submission(exercise, {0: "ano", 1: "Ano"})

    assert [item["correct"] for item in result.items] == [True, False]
    assert result.items[1]["correct_answer"] == "ano"


def test_match_score_depends_on_errors():
    assert scoring_service.grade_match(0, 4) == (100, 3)
    assert scoring_service.grade_match(3, 4) == (85, 2)
    assert scoring_service.grade_match(0, 0) == (0, 0)

    exercise = {
        "type": "match",
        "pairs": [{"left": "Pes", "right": "Dog"}, {"left": "Kočka", "right": "Cat"}],
    }
    result = grade_submission(
        exercise,
        match_attempts=[{"left": 0, "right": "Cat"}, {"left": 0, "right": "Dog"}, {"left": 1, "right": "Cat"}],
    )
    assert result.score == 90
    assert result.stars == 3
    assert result.total == 2
    assert [item["correct"] for item in result.items] == [False, True, True]


def test_match_needs_every_pair_matched():
    exercise = {
        "type": "match",
        "questions": [{"pairs": [{"left": "Pes", "right": "Dog"}, {"left": "Kočka", "right": "Cat"}]}],
    }

    with pytest.raises(scoring_service.IncompleteSubmission):
        grade_submission(exercise, {}, match_attempts=[])
    with pytest.raises(scoring_service.IncompleteSubmission):
        grade_submission(exercise, match_attempts=[{"left": 0, "right": "Dog"}, {"left": 7, "right": "Cat"}])


def test_match_finished_early_counts_matched_pairs_only():
    exercise = {"type": "match", "pairs": [{"left": "Pes", "right": "Dog"}, {"left": "Kočka", "right": "Cat"}]}

    result = grade_submission(exercise, match_attempts=[{"left": 1, "right": "Cat"}], finished_early=True)

    assert (result.score, result.stars, result.correct_count, result.total) == (50, 1, 1, 2)
    assert result.items[-1]["user_answer"] == "(přeskočeno)"
    assert result.items[-1]["correct_answer"] == "Dog"


def test_memory_is_always_full_marks():
    result = grade_submission({"type": "memory", "cards": []})
    assert (result.score, result.stars) == (100, 3)


def test_sort_flat_layout_is_graded_per_board():
    exercise = {
        "type": "sort",
        "categories": ["Samohlásky", "Souhlásky"],
        "items": [
            {"text": "A", "category": "Samohlásky"},
            {"text": "K", "category": "Souhlásky"},
        ],
    }

    perfect = grade_submission(exercise, {"0": {"Samohlásky": ["A"], "Souhlásky": ["K"]}})
    swapped = grade_submission(exercise, {"0": {"Samohlásky": ["K"], "Souhlásky": ["A"]}})

    assert perfect.score == 100
    assert swapped.score == 0


def test_grade_sort_counts_only_perfect_boards():
    boards = [
        {"categories": [{"name": "Savci", "items": ["pes", "kočka"]}, {"name": "Ptáci", "items": ["vrabec"]}]},
        {"categories": [{"name": "Savci", "items": ["kůň"]}, {"name": "Ptáci", "items": ["sýkora"]}]},
    ]
    placements = {
        0: {"Savci": ["pes", "kočka"], "Ptáci": ["vrabec"]},
        "1": {"Savci": ["sýkora"], "Ptáci": ["kůň"]},
    }

    assert scoring_service.grade_sort(boards, placements) == (50, 1)
    assert scoring_service.grade_sort([], {}) == (0, 1)


def test_test_exercise_uses_pass_mark():
    questions = [{"question": f"q{i}", "answer": "ano"} for i in range(5)]
    exercise = {"type": "quiz", "is_test": True, "questions": questions}

    passed = grade_submission(exercise, {"0": "ano", "1": " ANO ", "2": "ano", "3": "ne"})
    failed = grade_submission(exercise, {"0": "ano", "1": "ano"})

    assert passed.passed is True
    assert passed.score == 60
    assert passed.stars == 2
    assert failed.passed is False
    assert failed.stars == 0
    assert failed.score == 40


def test_finished_early_counts_unanswered_as_wrong():
    questions = [{"question": f"q{i}", "answer": "A"} for i in range(4)]
    result = grade_submission({"type": "quiz", "questions": questions}, {"0": "A"}, finished_early=True)

    assert result.total == 4
    assert result.correct_count == 1
    assert result.score == 25
    assert len(result.items) == 4
    assert [item["index"] for item in result.items] == [0, 1, 2, 3]
    assert result.items[2]["user_answer"] == scoring_service.SKIPPED_ANSWER
    assert result.items[2]["explanation"] == scoring_service.EARLY_FINISH_EXPLANATION


def test_unknown_type_is_rejected():
    with pytest.raises(scoring_service.UnsupportedExerciseType):
        grade_submission({"type": "typing", "questions": []})
