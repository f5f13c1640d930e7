# One-loop thermal functions J_b and J_f


"""
finiteT
=======

One-loop finite-temperature integrals

    J_b(θ) =  ∫_0^∞ dy y² log(1 - exp(-sqrt(y² + θ)))
    J_f(θ) = -∫_0^∞ dy y² log(1 + exp(-sqrt(y² + θ)))

as functions of θ = m²/T². Field-dependent squared masses can be negative
(tachyonic curvature), so every evaluator accepts θ < 0 and returns the
real part. The thermal potential of a species with ``n`` degrees of freedom
is ``n T⁴/(2π²) J(θ)``.

Three evaluators are provided:

- exact quadrature (:func:`Jb_exact`, :func:`Jf_exact`), slow, reference;
- the small-θ (high-T) series (:func:`Jb_low`, :func:`Jf_low`);
- the large-θ (low-T) Bessel sum (:func:`Jb_high`, :func:`Jf_high`);

and the dispatchers :func:`Jb`, :func:`Jf` switch between the two
expansions at ``THETA_SWITCH`` when ``approx="auto"``.
"""

import numpy as np
from numpy.typing import ArrayLike
from typing import Callable, Union
from scipy import integrate, special
from scipy.special import factorial as fac

pi = np.pi
euler_gamma = 0.577215664901532

# θ above which the Bessel sum replaces the series in the "auto" mode (x = m/T = 1.5)
THETA_SWITCH = 2.25
# tachyonic θ are clamped here in the "auto" mode, inside the series convergence radius
THETA_NEG_CLIP = -20.0

# --------------------------
# Internal helpers
# --------------------------


def _is_scalar(x: ArrayLike) -> bool:
    return np.ndim(x) == 0


def _apply_elementwise(f: Callable[[float], float], theta: ArrayLike) -> Union[float, np.ndarray]:
    """Apply a scalar evaluator element-wise; scalar-in → scalar-out."""
    if _is_scalar(theta):
        return float(f(float(np.real(theta))))
    th = np.asarray(theta, dtype=float)
    out = np.empty(th.shape, dtype=float)
    for idx in np.ndindex(th.shape):
        out[idx] = f(float(th[idx]))
    return out


# ---------------------------------------------------------------------
# Exact integrals. E = sqrt(y^2 + θ); for θ < 0 the region y < sqrt(-θ)
# uses the real part of the logarithm.
# ---------------------------------------------------------------------

_QUAD_OPTS = dict(epsabs=1e-10, epsrel=1e-8, limit=200)


def _Jb_exact_scalar(th: float) -> float:
    def f(y: float) -> float:
        return y*y * np.log1p(-np.exp(-np.sqrt(y*y + th)))
    if th >= 0.0:
        return integrate.quad(f, 0.0, np.inf, **_QUAD_OPTS)[0]
    a = np.sqrt(-th)

    def f1(y: float) -> float:
        # Re log(1 - e^{-i w}) = log|2 sin(w/2)|
        return y*y * np.log(2.0 * abs(np.sin(np.sqrt(-th - y*y) / 2.0)))
    v1 = integrate.quad(f1, 0.0, a, **_QUAD_OPTS)[0]
    v2 = integrate.quad(f, a, np.inf, **_QUAD_OPTS)[0]
    return v1 + v2


def _Jf_exact_scalar(th: float) -> float:
    def f(y: float) -> float:
        return -y*y * np.log1p(np.exp(-np.sqrt(y*y + th)))
    if th >= 0.0:
        return integrate.quad(f, 0.0, np.inf, **_QUAD_OPTS)[0]
    a = np.sqrt(-th)

    def f1(y: float) -> float:
        # Re log(1 + e^{-i w}) = log|2 cos(w/2)|
        return -y*y * np.log(2.0 * abs(np.cos(np.sqrt(-th - y*y) / 2.0)))
    v1 = integrate.quad(f1, 0.0, a, **_QUAD_OPTS)[0]
    v2 = integrate.quad(f, a, np.inf, **_QUAD_OPTS)[0]
    return v1 + v2


def Jb_exact(theta: ArrayLike) -> Union[float, np.ndarray]:
    """
    Exact bosonic thermal integral by quadrature.

    Parameters
    ----------
    theta : float or array_like
        θ = m²/T², may be negative.

    Returns
    -------
    float or ndarray
        Real part of J_b(θ). Scalar-in → scalar-out.
    """
    return _apply_elementwise(_Jb_exact_scalar, theta)


def Jf_exact(theta: ArrayLike) -> Union[float, np.ndarray]:
    """
    Exact fermionic thermal integral by quadrature.

    Parameters
    ----------
    theta : float or array_like
        θ = m²/T², may be negative.

    Returns
    -------
    float or ndarray
        Real part of J_f(θ). Scalar-in → scalar-out.
    """
    return _apply_elementwise(_Jf_exact_scalar, theta)


# -------------------------------
# Small-θ (high-T) series
# -------------------------------

_a_b = -pi**4/45.0
_b_b = pi*pi/12.0
_c_b = -pi/6.0
_d_b = -1.0/32.0
_logab = 1.5 - 2.0*euler_gamma + 2.0*np.log(4.0*pi)

_l = np.arange(50, dtype=int) + 1
_g_b = np.asarray(-2.0 * pi**3.5 * (-1.0)**_l * (1.0 + special.zetac(2*_l + 1))
                  * special.gamma(_l + 0.5) / (fac(_l + 2) * (2.0*pi)**(2*_l + 4)), dtype=np.float64)

_a_f = -7.0*pi**4/360.0
_b_f = pi*pi/24.0
_d_f = 1.0/32.0
_logaf = 1.5 - 2.0*euler_gamma + 2.0*np.log(pi)

_g_f = np.asarray(0.25 * pi**3.5 * (-1.0)**_l * (1.0 + special.zetac(2*_l + 1))
                  * special.gamma(_l + 0.5) * (1.0 - 0.5**(2*_l + 1))
                  / (fac(_l + 2) * pi**(2*_l + 4)), dtype=np.float64)

_MAX_LOW_TERMS = int(_g_b.size)


def _series_tail(g: np.ndarray, th: np.ndarray, n: int) -> np.ndarray:
    """sum_{i=1..n} g[i-1] θ^(i+2)"""
    if n <= 0:
        return np.zeros_like(th)
    n = min(int(n), _MAX_LOW_TERMS)
    pows = th[..., None] ** np.arange(1, n + 1)
    return th * th * (pows @ g[:n])


def _theta_log(th: np.ndarray) -> np.ndarray:
    out = np.zeros_like(th)
    mask = (th != 0.0)
    out[mask] = np.log(np.abs(th[mask]))
    return out


def Jb_low(theta: ArrayLike, n: int = 20) -> Union[float, np.ndarray]:
    r"""
    Small-θ expansion of J_b:

        J_b = -π⁴/45 + π²/12 θ - π/6 Re(θ^{3/2})
              - θ²/32 (log|θ| - const_b) + Σ_{i=1}^{n} g_i θ^{i+2}

    with const_b = 3/2 - 2γ_E + 2 log(4π). The series converges for
    |θ| < 4π²; ``n`` tail terms are kept (at most 50).
    """
    if n < 0:
        raise ValueError("n must be non-negative.")
    th = np.asarray(theta, dtype=float)
    cubic = np.where(th > 0.0, np.abs(th)**1.5, 0.0)
    y = _a_b + _b_b*th + _c_b*cubic + _d_b*th*th*(_theta_log(th) - _logab)
    y = y + _series_tail(_g_b, th, n)
    return float(y) if _is_scalar(theta) else y


def Jf_low(theta: ArrayLike, n: int = 20) -> Union[float, np.ndarray]:
    r"""
    Small-θ expansion of J_f:

        J_f = -7π⁴/360 + π²/24 θ + θ²/32 (log|θ| - const_f)
              + Σ_{i=1}^{n} g_i θ^{i+2}

    with const_f = 3/2 - 2γ_E + 2 log(π). Converges for |θ| < π².
    """
    if n < 0:
        raise ValueError("n must be non-negative.")
    th = np.asarray(theta, dtype=float)
    y = _a_f + _b_f*th + _d_f*th*th*(_theta_log(th) - _logaf)
    y = y + _series_tail(_g_f, th, n)
    return float(y) if _is_scalar(theta) else y


# ----------------------------------------------
# Large-θ (low-T) asymptotics via Bessel K
# ----------------------------------------------

def _x2K2(k: int, x: np.ndarray) -> np.ndarray:
    """-x² K_2(k x)/k², with the x → 0 limit -2/k⁴."""
    out = np.full(x.shape, -2.0 / k**4)
    mask = (x > 0.0)
    xm = x[mask]
    out[mask] = -(xm*xm) * special.kv(2, k*xm) / (k*k)
    return out


def Jb_high(theta: ArrayLike, n: int = 12) -> Union[float, np.ndarray]:
    """
    Bosonic low-temperature sum J_b ≈ Σ_{k=1..n} -x² K_2(kx)/k², x = sqrt(θ).

    Negative θ is clipped to zero; use the series there.
    """
    if n <= 0:
        raise ValueError("`n` must be a positive integer.")
    x = np.sqrt(np.clip(np.asarray(theta, dtype=float), 0.0, None))
    x = np.atleast_1d(x)
    acc = np.zeros_like(x)
    for k in range(1, n + 1):
        acc += _x2K2(k, x)
    return float(acc[0]) if _is_scalar(theta) else acc.reshape(np.shape(theta))


def Jf_high(theta: ArrayLike, n: int = 12) -> Union[float, np.ndarray]:
    """
    Fermionic low-temperature sum J_f ≈ Σ_{k=1..n} (-1)^{k-1} (-x² K_2(kx)/k²).
    """
    if n <= 0:
        raise ValueError("`n` must be a positive integer.")
    x = np.sqrt(np.clip(np.asarray(theta, dtype=float), 0.0, None))
    x = np.atleast_1d(x)
    acc = np.zeros_like(x)
    s = 1.0
    for k in range(1, n + 1):
        acc += s * _x2K2(k, x)
        s = -s
    return float(acc[0]) if _is_scalar(theta) else acc.reshape(np.shape(theta))


#######################
# Short Hand (J_b, J_f)
#######################

def _dispatch(theta, approx, low, high, exact, n_low, n_high):
    mode = str(approx).lower()
    if mode == "exact":
        return exact(theta)
    if mode == "low":
        return low(theta, n=n_low)
    if mode == "high":
        return high(theta, n=n_high)
    if mode == "auto":
        th = np.asarray(theta, dtype=float)
        out = np.where(th < THETA_SWITCH,
                       low(np.clip(th, THETA_NEG_CLIP, THETA_SWITCH), n=n_low),
                       high(np.maximum(th, THETA_SWITCH), n=n_high))
        return float(out) if _is_scalar(theta) else out
    raise ValueError("Invalid 'approx'. Choose one of: 'auto', 'exact', 'high', 'low'.")


def Jb(theta: ArrayLike, approx: str = "auto", n_low: int = 20, n_high: int = 12):
    """
    Shorthand dispatcher for the bosonic thermal integral.

    Parameters
    ----------
    theta : float or array_like
        θ = m²/T² (may be negative).
    approx : {"auto", "exact", "low", "high"}
        ``"auto"`` uses the series below ``THETA_SWITCH`` and the Bessel sum
        above it.
    n_low, n_high : int
        Truncations of the series and of the Bessel sum.
    """
    return _dispatch(theta, approx, Jb_low, Jb_high, Jb_exact, n_low, n_high)


def Jf(theta: ArrayLike, approx: str = "auto", n_low: int = 20, n_high: int = 12):
    """Shorthand dispatcher for the fermionic thermal integral (see :func:`Jb`)."""
    return _dispatch(theta, approx, Jf_low, Jf_high, Jf_exact, n_low, n_high)
