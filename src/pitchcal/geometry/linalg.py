"""
Small dense linear-algebra kernel used by the camera model and estimators.

Every function is pure: inputs are copied into float arrays and never mutated.
"""

import numpy as np
from jaxtyping import Float

from .types import GeometryError, SingularMatrixError

_EPS = 1e-9


def _as_square(m: Float[np.ndarray, "..."]) -> np.ndarray:
    arr = np.asarray(m, dtype=float)
    if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
        raise GeometryError(f"Expected a square matrix, got shape {arr.shape}")
    return arr


def multiply(
    a: Float[np.ndarray, "..."],
    b: Float[np.ndarray, "..."],
) -> Float[np.ndarray, "..."]:
    """Matrix-matrix or matrix-vector product with shape checks."""
    lhs = _as_square(a)
    rhs = np.asarray(b, dtype=float)
    if rhs.shape[0] != lhs.shape[1]:
        raise GeometryError(f"Cannot multiply {lhs.shape} by {rhs.shape}")
    return lhs @ rhs


def transpose(m: Float[np.ndarray, "..."]) -> Float[np.ndarray, "..."]:
    return _as_square(m).T.copy()


def determinant(m: Float[np.ndarray, "..."]) -> float:
    return float(np.linalg.det(_as_square(m)))


def adjugate(m: Float[np.ndarray, "..."]) -> Float[np.ndarray, "..."]:
    """Transpose of the cofactor matrix."""
    arr = _as_square(m)
    n = arr.shape[0]
    cofactors = np.empty_like(arr)
    for i in range(n):
        for j in range(n):
            minor = np.delete(np.delete(arr, i, axis=0), j, axis=1)
            cofactors[i, j] = (-1.0) ** (i + j) * np.linalg.det(minor)
    return cofactors.T


def _relative_determinant(arr: np.ndarray, det: float) -> float:
    # Hadamard bound: |det| <= product of row norms, so the ratio lies in [0, 1].
    bound = float(np.prod(np.linalg.norm(arr, axis=1)))
    if bound < np.finfo(float).tiny:
        return 0.0
    return abs(det) / bound


def inverse(
    m: Float[np.ndarray, "..."],
    tolerance: float = _EPS,
) -> Float[np.ndarray, "..."]:
    """Adjugate-based inverse; raises SingularMatrixError for near-singular input."""
    arr = _as_square(m)
    if not np.all(np.isfinite(arr)):
        raise SingularMatrixError("Matrix contains non-finite entries")
    det = determinant(arr)
    if _relative_determinant(arr, det) < tolerance:
        raise SingularMatrixError(f"Matrix is singular (det={det:.3e})")
    return adjugate(arr) / det


def try_inverse(
    m: Float[np.ndarray, "..."],
    tolerance: float = _EPS,
) -> Float[np.ndarray, "..."] | None:
    try:
        return inverse(m, tolerance)
    except SingularMatrixError:
        return None


def solve_least_squares(
    a: Float[np.ndarray, "M N"],
    b: Float[np.ndarray, "M"],
    tolerance: float = _EPS,
) -> Float[np.ndarray, "N"]:
    """Solve min ||a x - b|| for an overdetermined system via reduced QR."""
    lhs = np.asarray(a, dtype=float)
    rhs = np.asarray(b, dtype=float)
    if lhs.ndim != 2:
        raise GeometryError("Coefficient matrix must be 2-D")
    m, n = lhs.shape
    if m < n:
        raise GeometryError(f"Underdetermined system: {m} equations, {n} unknowns")
    if rhs.shape[0] != m:
        raise GeometryError("Right-hand side length does not match the system")

    q, r = np.linalg.qr(lhs)
    diag = np.abs(np.diag(r))
    if diag.size == 0 or diag.min() <= tolerance * max(diag.max(), 1.0):
        raise SingularMatrixError("Least-squares system is rank deficient")
    return np.linalg.solve(r, q.T @ rhs)


def null_vector(
    a: Float[np.ndarray, "M N"],
) -> tuple[Float[np.ndarray, "N"], Float[np.ndarray, "N"]]:
    """
    Right singular vector of the smallest singular value.

    Also returns the singular values padded with zeros to length N, so that
    callers can judge the rank of short (M < N) systems.
    """
    arr = np.asarray(a, dtype=float)
    if arr.ndim != 2:
        raise GeometryError("Matrix must be 2-D")
    try:
        _, singular_values, vt = np.linalg.svd(arr, full_matrices=True)
    except np.linalg.LinAlgError as exc:
        raise SingularMatrixError(f"SVD did not converge: {exc}") from exc
    padded = np.zeros(arr.shape[1], dtype=float)
    padded[: singular_values.size] = singular_values
    return vt[-1], padded


def apply_homogeneous(
    m: Float[np.ndarray, "3 3"],
    points: Float[np.ndarray, "N 2"],
) -> tuple[Float[np.ndarray, "N 2"], Float[np.ndarray, "N"]]:
    """Apply a 3x3 projective transform; returns dehomogenized points and w."""
    mat = _as_square(m)
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    homog = np.hstack([pts, np.ones((pts.shape[0], 1))])
    out = homog @ mat.T
    w = out[:, 2]
    with np.errstate(divide="ignore", invalid="ignore"):
        xy = out[:, :2] / w[:, None]
    return xy, w
