"""Small linear-algebra interface used by the estimator.

The DLT solver only needs an SVD, a homogeneous least-squares solve, a
determinant and an inverse. Keeping them behind ``LinearAlgebraBackend``
lets tests substitute synthetic decompositions and lets the numeric
library be swapped without touching the estimation code.
"""
from typing import Tuple

import numpy as np


class LinearAlgebraBackend:
    """Interface for the numeric operations used during estimation."""

    def svd(self, matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return (U, singular_values, Vt) with singular values in descending order."""
        raise NotImplementedError

    def solve_least_squares(self, matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Solve the homogeneous system ``A x = 0`` subject to ``|x| = 1``.

        Returns:
            Tuple of (x, singular_values). ``x`` is the right singular vector
            of the smallest singular value.
        """
        _, s, vt = self.svd(matrix)
        return vt[-1], s

    def det(self, matrix: np.ndarray) -> float:
        raise NotImplementedError

    def inv(self, matrix: np.ndarray) -> np.ndarray:
        raise NotImplementedError


class NumpyBackend(LinearAlgebraBackend):
    """LAPACK-backed implementation via numpy.linalg."""

    def svd(self, matrix):
        a = np.asarray(matrix, dtype=np.float64)
        # full_matrices so Vt is square even for the minimal 8x9 system
        return np.linalg.svd(a, full_matrices=True)

    def det(self, matrix):
        return float(np.linalg.det(np.asarray(matrix, dtype=np.float64)))

    def inv(self, matrix):
        return np.linalg.inv(np.asarray(matrix, dtype=np.float64))


default_backend = NumpyBackend()
