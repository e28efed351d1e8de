"""Unit tests for per-item grading and answer shape checks."""

from progress_engine.services.grading import answer_shape_error, grade_item, text_matches, word_count


class TestTextMatching:
    def test_case_punctuation_and_articles_ignored(self):
        assert text_matches("the Water Cycle!", "water cycle")

    def test_british_spelling_accepted(self):
        assert text_matches("colour", "color")

    def test_key_tokens_in_longer_answer(self):
        assert text_matches("I think it is mostly about photosynthesis in plants", "photosynthesis plants")

    def test_missing_key_token_fails(self):
        assert not text_matches("plants", "photosynthesis plants")

    def test_blank_answer_never_matches(self):
        assert not text_matches("   ", "anything")

    def test_word_count(self):
        assert word_count("The cat sat on a mat.") == 4
        assert word_count("") == 0


class TestGradeItem:
    def test_mcq(self):
        item = {"type": "mcq", "options": ["a", "b", "c"], "expected": 1}
        assert grade_item(item, 1) is True
        assert grade_item(item, 2) is False

    def test_numeric_tolerance(self):
        item = {"type": "numeric", "expected": 32}
        assert grade_item(item, 32.0) is True
        assert grade_item(item, 31) is False

    def test_sequence_requires_exact_order(self):
        item = {"type": "sequence", "options": ["x", "y", "z"], "expected": [2, 0, 1]}
        assert grade_item(item, [2, 0, 1]) is True
        assert grade_item(item, [0, 2, 1]) is False

    def test_text_min_words_rubric(self):
        item = {"type": "text", "min_words": 3}
        assert grade_item(item, "build a tall tower") is True
        assert grade_item(item, "tower") is False

    def test_skipped_graded_item_is_wrong(self):
        assert grade_item({"type": "mcq", "options": ["a"], "expected": 0}, None) is False

    def test_choice_and_reflection_are_ungraded(self):
        assert grade_item({"type": "choice", "options": ["a", "b"]}, 0) is None
        assert grade_item({"type": "reflection"}, "I learned a lot") is None


class TestAnswerShape:
    def test_none_always_accepted(self):
        assert answer_shape_error({"type": "numeric"}, None) is None

    def test_mcq_index_out_of_range(self):
        assert "out of range" in answer_shape_error({"type": "mcq", "options": ["a", "b"]}, 5)

    def test_bool_is_not_a_number(self):
        assert answer_shape_error({"type": "numeric"}, True) == "expected a number"

    def test_bool_is_not_an_index(self):
        assert answer_shape_error({"type": "mcq", "options": ["a", "b"]}, True) == "expected an option index"

    def test_sequence_needs_int_list(self):
        assert answer_shape_error({"type": "sequence"}, ["a", 1]) == "expected a list of integers"

    def test_text_needs_string(self):
        assert answer_shape_error({"type": "text"}, 42) == "expected text"

    def test_unknown_type(self):
        assert "unknown item type" in answer_shape_error({"type": "drawing"}, "x")
