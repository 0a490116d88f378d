import random

from eduup.services import play_service


def _questions(count):
    return [{"question": f"Otázka {index}", "answer": "A"} for index in range(count)]


def test_hash_to_seed_is_stable_fnv1a():
    assert play_service.hash_to_seed("") == 2166136261
    assert play_service.hash_to_seed("abc:1") == play_service.hash_to_seed("abc:1")
    assert play_service.hash_to_seed("abc:1") != play_service.hash_to_seed("abc:2")


def test_seed_values_match_the_browser():
    # "č" is one UTF-16 code unit, so it hashes differently from its UTF-8 bytes.
    assert play_service.hash_to_seed("a") == 3826002220
    assert play_service.hash_to_seed("foobar") == 3214735720
    assert play_service.hash_to_seed("č") == 134926040

    assert play_service.mulberry32(0)() == 1144304738 / 4294967296
    assert play_service.mulberry32(3826002220)() == 0x9F26CAF6 / 4294967296


def test_shuffle_matches_the_browser_first_draw():
    # The first draw alone picks the last slot.
    assert play_service.shuffle_deterministic(range(100), "a")[-1] == 62
    assert play_service.shuffle_deterministic(range(100), "")[-1] == 61


def test_mulberry32_yields_unit_interval():
    rand = play_service.mulberry32(42)
    values = [rand() for _ in range(50)]
    assert all(0 <= value < 1 for value in values)
    assert values != sorted(values)


def test_shuffle_is_deterministic_permutation():
    items = list(range(20))
    first = play_service.shuffle_deterministic(items, "ex:key")
    second = play_service.shuffle_deterministic(items, "ex:key")

    assert first == second
    assert sorted(first) == items
    assert items == list(range(20))


def test_session_seed_defaults_key():
    assert play_service.session_seed("ex1", None) == "ex1:seed"
    assert play_service.session_seed("ex1", "k") == "ex1:k"


def test_question_limits():
    assert play_service.question_limit({}) == play_service.DEFAULT_MAX_QUESTIONS
    assert play_service.question_limit({"maxQuestions": "5"}) == 5
    assert play_service.question_limit({"question_limit": ""}) == play_service.DEFAULT_MAX_QUESTIONS
    assert play_service.test_question_limit({"test_max_questions": 4.9}) == 4


def test_active_exercise_cuts_long_question_lists():
    exercise = {"id": "e1", "type": "quiz", "questions": _questions(20)}

    active = play_service.build_active_exercise(exercise, [], "e1:k")
    again = play_service.build_active_exercise(exercise, [], "e1:k")

    assert len(active["questions"]) == play_service.DEFAULT_MAX_QUESTIONS
    assert active["questions"] == again["questions"]
    assert len(exercise["questions"]) == 20


def test_active_exercise_keeps_short_lists_in_order():
    exercise = {"id": "e1", "type": "quiz", "questions": _questions(3)}
    assert play_service.build_active_exercise(exercise, [], "e1:k")["questions"] == exercise["questions"]


def test_test_pool_draws_from_same_difficulty_simple_types():
    test = {"id": "t", "type": "test", "is_test": True, "difficulty": 1}
    scope = [
        test,
        {"id": "a", "type": "quiz", "difficulty": 1, "questions": _questions(3)},
        {"id": "b", "type": "fill", "difficulty": 1, "questions": _questions(2)},
        {"id": "c", "type": "quiz", "difficulty": 2, "questions": _questions(4)},
        {"id": "d", "type": "match", "difficulty": 1, "pairs": []},
    ]

    active = play_service.build_active_exercise(test, scope, "t:k")

    assert len(active["questions"]) == 5
    assert {question["_source_exercise_id"] for question in active["questions"]} == {"a", "b"}


def test_target_difficulty_table():
    assert play_service.target_difficulty(1, 75) == 2
    assert play_service.target_difficulty(1, 74) == 1
    assert play_service.target_difficulty(2, 80) == 3
    assert play_service.target_difficulty(2, 30) == 2
    assert play_service.target_difficulty(2, 10) == 1
    assert play_service.target_difficulty(3, 10) == 2
    assert play_service.target_difficulty(3, 50) == 3


def test_recommend_next_prefers_same_type_when_level_changes():
    current = {"id": "x", "type": "quiz", "difficulty": 1}
    scope = [
        current,
        {"id": "same-type", "type": "quiz", "difficulty": 2},
        {"id": "other-type", "type": "fill", "difficulty": 2},
        {"id": "easy", "type": "quiz", "difficulty": 1},
    ]

    recommendation = play_service.recommend_next(current, 90, scope, rng=random.Random(1))

    assert recommendation["direction"] == "harder"
    assert recommendation["target_difficulty"] == 2
    assert recommendation["exercise"]["id"] == "same-type"


def test_recommend_next_same_level_prefers_other_type():
    current = {"id": "x", "type": "quiz", "difficulty": 1}
    scope = [current, {"id": "q2", "type": "quiz", "difficulty": 1}, {"id": "f1", "type": "fill", "difficulty": 1}]

    recommendation = play_service.recommend_next(current, 40, scope, rng=random.Random(3))

    assert recommendation["direction"] == "same"
    assert recommendation["exercise"]["id"] == "f1"


def test_recommend_next_without_siblings():
    assert play_service.recommend_next({"id": "x", "difficulty": 1}, 100, [{"id": "x"}]) is None
