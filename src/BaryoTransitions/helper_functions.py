# Numerical helpers shared by the models, the minimizer and the transport solver

import numpy as np
from numpy.typing import ArrayLike
from typing import Callable, Tuple

###############################################################
# Miscellaneous functions - Functions to help others in general
###############################################################


def clamp_val(x, a, b):
    """
    Clip `x` component-wise into the closed box spanned by `a` and `b`.

    Parameters
    ----------
    x : array_like
        Input values.
    a, b : array_like
        Box corners. Scalars or arrays broadcastable with `x`; the order of
        the two corners does not matter.

    Returns
    -------
    ndarray
        Values of `x` clipped to ``[min(a, b), max(a, b)]``.

    Examples
    --------
    >>> clamp_val([1, 5, 10], 3, 8)
    array([3, 5, 8])
    """
    x = np.asarray(x)
    lower = np.minimum(a, b)
    upper = np.maximum(a, b)
    return np.clip(x, lower, upper)


def boxAround(center: ArrayLike, halfWidth: ArrayLike, bounds: np.ndarray) -> np.ndarray:
    """
    Box of half-width `halfWidth` around `center`, intersected with `bounds`.

    Parameters
    ----------
    center : array_like, shape (Ndim,)
    halfWidth : float or array_like, shape (Ndim,)
    bounds : ndarray, shape (Ndim, 2)
        Outer search box, one ``(low, high)`` row per field direction.

    Returns
    -------
    ndarray, shape (Ndim, 2)
    """
    center = np.asarray(center, dtype=float)
    halfWidth = np.broadcast_to(np.abs(np.asarray(halfWidth, dtype=float)), center.shape)
    lo = np.maximum(center - halfWidth, bounds[:, 0])
    hi = np.minimum(center + halfWidth, bounds[:, 1])
    # keep a non-empty interval when the center sits on (or beyond) a wall
    hi = np.where(hi <= lo, lo + np.maximum(halfWidth, 1e-8), hi)
    return np.column_stack([lo, hi])


####################################################################################
# Numerical integration - errors raised by the ODE/BVP drivers
####################################################################################

class IntegrationError(Exception):
    """Raised when a numerical integration diverges or fails to converge."""
    pass


###################################################################
# Numerical derivatives - finite-difference gradients and Hessians
###################################################################

def _normalizeEps(eps: ArrayLike, Ndim: int) -> np.ndarray:
    eps_arr = np.asarray(eps, dtype=float)
    if eps_arr.ndim == 0:
        eps_arr = np.full(Ndim, float(eps_arr))
    if eps_arr.shape != (Ndim,):
        raise ValueError(f"`eps` must be scalar or have shape ({Ndim},)")
    if np.any(eps_arr <= 0):
        raise ValueError("`eps` must be strictly positive")
    return eps_arr


class gradientFunction:
    """
    Callable returning the gradient of a scalar field function f: R^N -> R
    by central finite differences of order 2 or 4.

    Parameters
    ----------
    f : callable
        ``f(X, *args)``. Must accept points with shape ``(..., Ndim)`` and
        return values with shape ``(...)``.
    eps : float or array_like
        Step per field direction. A scalar is broadcast to all directions.
    Ndim : int
        Number of field directions.
    order : {2, 4}, optional
        Accuracy order of the stencil (default 4).

    Notes
    -----
    All displaced points of one call are evaluated in a single batched call
    of `f`. A point of shape ``(Ndim,)`` returns a gradient of shape
    ``(Ndim,)``; a batch of shape ``(..., Ndim)`` returns ``(..., Ndim)``.

    Example
    -------
    >>> def f(X, T):
    ...     x, y = np.moveaxis(X, -1, 0)
    ...     return T * (x*x + 3*y)
    >>> df = gradientFunction(f, eps=1e-3, Ndim=2)
    >>> df(np.array([1.0, 0.0]), 2.0)
    array([4., 6.])
    """

    def __init__(self, f: Callable, eps: ArrayLike, Ndim: int, order: int = 4):
        if order not in (2, 4):
            raise ValueError("order must be 2 or 4")
        self.f = f
        self.Ndim = int(Ndim)
        self.eps = _normalizeEps(eps, self.Ndim)

        if order == 2:
            offsets = np.array([-1.0, 1.0])
            coeffs = np.array([-0.5, 0.5])
        else:
            offsets = np.array([-2.0, -1.0, 1.0, 2.0])
            coeffs = np.array([1.0, -8.0, 8.0, -1.0]) / 12.0

        # dx[k, i, i] = offsets[k] * eps[i], zero elsewhere
        dx = np.zeros((offsets.size, self.Ndim, self.Ndim), dtype=float)
        dx[:, np.arange(self.Ndim), np.arange(self.Ndim)] = offsets[:, None] * self.eps[None, :]
        self._dx = dx
        self._coef = coeffs[:, None] / self.eps[None, :]
        self.order = order

    def __call__(self, x: ArrayLike, *args, **kwargs) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        single = (x.ndim == 1)
        if single:
            x = x[None, :]
        if x.shape[-1] != self.Ndim:
            raise ValueError(f"Last axis of x must have length Ndim={self.Ndim}")
        vals = self.f(x[..., None, None, :] + self._dx, *args, **kwargs)  # (..., order, Ndim)
        grad = np.sum(vals * self._coef, axis=-2)
        return grad[0] if single else grad


class hessianFunction:
    """
    Callable returning the Hessian of a scalar field function f: R^N -> R by
    finite differences of order 2 or 4.

    Parameters
    ----------
    f : callable
        ``f(X, *args)`` with the same broadcasting contract as in
        :class:`gradientFunction`.
    eps : float or array_like
        Step per field direction.
    Ndim : int
        Number of field directions.
    order : {2, 4}, optional
        Accuracy order of the stencil (default 4).

    Notes
    -----
    Diagonal entries use the 1D second-derivative stencil; off-diagonal
    entries use the tensor product of two first-derivative stencils.
    """

    def __init__(self, f: Callable, eps: ArrayLike, Ndim: int, order: int = 4):
        if order not in (2, 4):
            raise ValueError("order must be 2 or 4")
        self.f = f
        self.Ndim = int(Ndim)
        self.eps = _normalizeEps(eps, self.Ndim)
        self.order = order

        if order == 2:
            off1 = np.array([-1.0, 1.0])
            c1 = np.array([-0.5, 0.5])
            off2 = np.array([-1.0, 0.0, 1.0])
            c2 = np.array([1.0, -2.0, 1.0])
        else:
            off1 = np.array([-2.0, -1.0, 1.0, 2.0])
            c1 = np.array([1.0, -8.0, 8.0, -1.0]) / 12.0
            off2 = np.array([-2.0, -1.0, 0.0, 1.0, 2.0])
            c2 = np.array([-1.0, 16.0, -30.0, 16.0, -1.0]) / 12.0

        m1 = off1.size
        self._diag = []
        for i in range(self.Ndim):
            shifts = np.zeros((off2.size, self.Ndim))
            shifts[:, i] = off2 * self.eps[i]
            self._diag.append((shifts, c2 / self.eps[i]**2))

        self._off = {}
        for i in range(self.Ndim):
            for j in range(i):
                shifts = np.zeros((m1, m1, self.Ndim))
                shifts[:, :, i] = off1[:, None] * self.eps[i]
                shifts[:, :, j] = off1[None, :] * self.eps[j]
                w = np.outer(c1 / self.eps[i], c1 / self.eps[j]).reshape(m1 * m1)
                self._off[i, j] = (shifts.reshape(m1 * m1, self.Ndim), w)

    def __call__(self, x: ArrayLike, *args, **kwargs) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        single = (x.ndim == 1)
        if single:
            x = x[None, :]
        if x.shape[-1] != self.Ndim:
            raise ValueError(f"Last axis of x must have length Ndim={self.Ndim}")

        H = np.empty(x.shape[:-1] + (self.Ndim, self.Ndim), dtype=float)
        for (i, j), (shifts, w) in self._off.items():
            vals = self.f(x[..., None, :] + shifts, *args, **kwargs)
            H[..., i, j] = H[..., j, i] = np.sum(vals * w, axis=-1)
        for i, (shifts, w) in enumerate(self._diag):
            vals = self.f(x[..., None, :] + shifts, *args, **kwargs)
            H[..., i, i] = np.sum(vals * w, axis=-1)
        return H[0] if single else H


def symmetricEigvals(H: np.ndarray) -> Tuple[np.ndarray, bool]:
    """
    Eigenvalues of a (numerically) symmetric matrix, ascending.

    Returns the eigenvalues and whether all of them are finite.
    """
    H = np.asarray(H, dtype=float)
    if not np.all(np.isfinite(H)):
        return np.full(H.shape[0], np.nan), False
    ev = np.linalg.eigvalsh(0.5 * (H + H.T))
    return ev, bool(np.all(np.isfinite(ev)))
