"""Tests for the auto maths evaluator."""

import time

import pytest

from lunarbridge.util.maths import MathsError, calculate, is_auto_maths_candidate


class TestCalculate:
    @pytest.mark.parametrize(
        "expression, expected",
        [
            ("1+1", 2),
            ("2 x 3", 6),
            ("2^10", 1024),
            ("10:4", 2.5),
            ("-(3-5)", 2),
            ("1.5*2", 3),
        ],
    )
    def test_arithmetic(self, expression, expected):
        assert calculate(expression).output == pytest.approx(expected)

    def test_input_is_stripped_of_spaces(self):
        assert calculate("1 + 2").input == "1+2"

    def test_formatted_output(self):
        """Whole numbers get thousands separators, fractions lose trailing zeros."""
        assert calculate("1000*1000").formatted_output == "1,000,000"
        assert calculate("1:4").formatted_output == "0.25"

    @pytest.mark.parametrize("expression", ["1/0", "2^5000", "(-8)^0.5", "__import__('os')", "1+"])
    def test_rejected(self, expression):
        with pytest.raises(MathsError):
            calculate(expression)

    @pytest.mark.parametrize("expression", ["(9^1000)^1000", "((9^1000)^1000)^20", "9" * 400 + "^2"])
    def test_huge_results_are_rejected_quickly(self, expression):
        """Results too large for a float fail fast instead of computing huge integers."""
        start = time.perf_counter()

        with pytest.raises(MathsError):
            calculate(expression)

        assert time.perf_counter() - start < 1


class TestAutoMathsCandidate:
    @pytest.mark.parametrize("content", ["1+1", "12 x 3", "(2+3)^2"])
    def test_candidates(self, content):
        assert is_auto_maths_candidate(content) is True

    @pytest.mark.parametrize("content", ["hello", "0-0", "4/5", "1 + a", ""])
    def test_not_candidates(self, content):
        assert is_auto_maths_candidate(content) is False
