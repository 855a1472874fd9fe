"""Tests for the pure-Python vector helpers."""

import math

import pytest

from semantic_memory.utils.similarity import cosine_similarity, l2_normalize


class TestCosineSimilarity:
    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_scale_invariant(self):
        assert cosine_similarity([1.0, 1.0], [5.0, 5.0]) == pytest.approx(1.0)

    def test_zero_vector_gives_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
        assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError, match="dimension mismatch"):
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])


class TestL2Normalize:
    def test_unit_length(self):
        v = l2_normalize([3.0, 4.0])
        assert v == pytest.approx([0.6, 0.8])
        assert math.sqrt(sum(x * x for x in v)) == pytest.approx(1.0)

    def test_zero_vector_unchanged(self):
        assert l2_normalize([0.0, 0.0, 0.0]) == [0.0, 0.0, 0.0]
