# tests/test_dedup.py
import numpy as np

from trajsim_core.parameters import unique_columns, match_rows


class TestUniqueColumns:

    def test_first_occurrence_order_and_inverse(self):
        matrix = np.array([[3.0, 4.0], [1.0, 2.0], [3.0, 4.0], [0.0, 0.0], [1.0, 2.0]])
        unique, canonical, inverse = unique_columns(matrix)

        np.testing.assert_array_equal(canonical, [0, 1, 3])
        np.testing.assert_array_equal(unique, [[3.0, 4.0], [1.0, 2.0], [0.0, 0.0]])
        np.testing.assert_array_equal(inverse, [0, 1, 0, 2, 1])
        np.testing.assert_array_equal(unique[inverse], matrix)

    def test_equality_is_bitwise(self):
        matrix = np.array([[0.0], [-0.0], [1.0], [1.0 + 1e-16], [1.0 + 2.220446049250313e-16]])
        _, canonical, inverse = unique_columns(matrix)

        # -0.0 and 0.0 differ in their sign bit; 1 + 1e-16 rounds to exactly 1.0.
        np.testing.assert_array_equal(canonical, [0, 1, 2, 4])
        assert inverse[3] == inverse[2]

    def test_identical_nans_are_one_vector(self):
        matrix = np.array([[np.nan, 1.0], [np.nan, 1.0], [2.0, 1.0]])
        _, canonical, inverse = unique_columns(matrix)

        np.testing.assert_array_equal(canonical, [0, 2])
        np.testing.assert_array_equal(inverse, [0, 0, 1])

    def test_empty_matrix(self):
        unique, canonical, inverse = unique_columns(np.empty((0, 3)))

        assert unique.shape == (0, 3)
        assert canonical.size == 0
        assert inverse.size == 0

    def test_zero_dimensional_vectors_are_all_equal(self):
        _, canonical, inverse = unique_columns(np.empty((4, 0)))

        np.testing.assert_array_equal(canonical, [0])
        np.testing.assert_array_equal(inverse, [0, 0, 0, 0])

    def test_large_random_matrix_matches_numpy_unique(self):
        rng = np.random.default_rng(7)
        matrix = rng.integers(0, 5, size=(500, 3)).astype(float)
        unique, canonical, inverse = unique_columns(matrix)

        expected_unique, expected_first = np.unique(matrix, axis=0, return_index=True)
        assert unique.shape == expected_unique.shape
        np.testing.assert_array_equal(np.sort(canonical), np.sort(expected_first))
        assert np.all(np.diff(canonical) > 0)
        np.testing.assert_array_equal(unique[inverse], matrix)


class TestMatchRows:

    def test_matches_first_reference_row(self):
        reference = np.array([[1.0, 2.0], [5.0, 6.0], [1.0, 2.0]])
        candidates = np.array([[5.0, 6.0], [7.0, 8.0], [1.0, 2.0]])

        np.testing.assert_array_equal(match_rows(candidates, reference), [1, -1, 0])

    def test_empty_reference(self):
        np.testing.assert_array_equal(match_rows(np.ones((2, 2)), np.empty((0, 2))), [-1, -1])

    def test_duplicate_candidates_without_reference_match(self):
        candidates = np.array([[9.0], [9.0]])
        np.testing.assert_array_equal(match_rows(candidates, np.array([[1.0]])), [-1, -1])
