import math
import unittest

import numpy as np

from docgraph.graph.similarity import semantic_similarity, structural_similarity


class TestStructuralSimilarity(unittest.TestCase):
    def test_identical_sets(self):
        self.assertEqual(structural_similarity({"a", "b"}, {"a", "b"}), 1.0)

    def test_empty_sets(self):
        self.assertEqual(structural_similarity(set(), set()), 0.0)

    def test_partial_overlap(self):
        self.assertAlmostEqual(structural_similarity({"a", "b", "c"}, {"b", "c", "d"}), 0.5)
        self.assertEqual(structural_similarity({"a"}, set()), 0.0)

    def test_frozensets(self):
        self.assertAlmostEqual(structural_similarity(frozenset("ab"), frozenset("bc")), 1 / 3)


class TestSemanticSimilarity(unittest.TestCase):
    def test_identical_vectors(self):
        self.assertAlmostEqual(semantic_similarity([1, 2, 3, 4, 5], [1, 2, 3, 4, 5]), 1.0)

    def test_orthogonal_and_opposite(self):
        self.assertAlmostEqual(semantic_similarity([1, 0], [0, 1]), 0.0)
        self.assertAlmostEqual(semantic_similarity([1, 2, 3], [-1, -2, -3]), -1.0)

    def test_degenerate_inputs_are_zero(self):
        self.assertEqual(semantic_similarity([1, 2], [1, 2, 3]), 0.0)
        self.assertEqual(semantic_similarity([], []), 0.0)
        self.assertEqual(semantic_similarity([0, 0], [1, 1]), 0.0)
        self.assertEqual(semantic_similarity(None, [1.0]), 0.0)
        self.assertEqual(semantic_similarity(["x", "y"], [1, 2]), 0.0)
        self.assertEqual(semantic_similarity([float("nan"), 1.0], [1.0, 1.0]), 0.0)

    def test_never_nan_and_bounded(self):
        vecs = [[1e-300, 1e-300], [1e300, 1e300], [3.0, -4.0], [0.1] * 8]
        for a in vecs:
            for b in vecs:
                s = semantic_similarity(a, b)
                self.assertFalse(math.isnan(s))
                self.assertLessEqual(abs(s), 1.0)

    def test_accepts_numpy_arrays(self):
        v = np.array([0.5, 0.25, 0.125], dtype=np.float32)
        self.assertAlmostEqual(semantic_similarity(v, v), 1.0, places=6)


if __name__ == "__main__":
    unittest.main()
