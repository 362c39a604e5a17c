from services.verifier import normalize, verify_answer


class TestSingleAnswer:
    def test_case_and_whitespace_are_ignored(self):
        assert verify_answer(["Paris"], "Paris ") is True
        assert verify_answer(["Paris"], "paris") is True
        assert verify_answer(["Paris"], "  PARIS\t") is True

    def test_wrong_answer(self):
        assert verify_answer(["Paris"], "Lyon") is False

    def test_any_of_several_valid_answers(self):
        assert verify_answer(["Tea", "Green tea"], "green tea") is True
        assert verify_answer(["Tea", "Green tea"], "Coffee") is False

    def test_stored_answers_are_normalized_too(self):
        assert verify_answer([" Autumn "], "autumn") is True


class TestMultiSelect:
    def test_exact_set_is_correct_regardless_of_order(self):
        assert verify_answer(["A", "B"], ["B", "A"]) is True

    def test_missing_element_is_incorrect(self):
        assert verify_answer(["A", "B"], ["A"]) is False

    def test_extra_element_is_incorrect(self):
        assert verify_answer(["A", "B"], ["A", "B", "C"]) is False

    def test_normalization_applies_to_every_element(self):
        assert verify_answer(["Cat", "Dog"], [" dog", "CAT "]) is True

    def test_empty_selection_is_incorrect(self):
        assert verify_answer(["A"], []) is False


def test_normalize():
    assert normalize("  Hello World ") == "hello world"


class TestQuestionType:
    def test_select_all_treats_a_string_as_a_one_element_set(self):
        assert verify_answer(["Cat", "Dog"], "Cat", "select_all") is False
        assert verify_answer(["Cat"], " cat", "select_all") is True

    def test_select_all_still_needs_the_exact_set(self):
        assert verify_answer(["Cat", "Dog"], ["dog", "cat"], "select_all") is True
        assert verify_answer(["Cat", "Dog"], ["Cat"], "select_all") is False

    def test_multiple_choice_accepts_one_choice_only(self):
        assert verify_answer(["Tea", "Green tea"], ["tea"], "multiple_choice") is True
        assert verify_answer(["Tea", "Green tea"], ["Tea", "Green tea"], "multiple_choice") is False
        assert verify_answer(["Tea"], [], "multiple_choice") is False
