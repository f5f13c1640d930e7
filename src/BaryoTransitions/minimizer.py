"""
minimizer
=========

Local and global minima of a :class:`~.models.PotentialModel` at fixed
temperature.

Three numerical backends share one interface,
``backend.refine(model, T, start, bounds, config) -> MinimizationResult``:

- :class:`GradientBackend`: bounded L-BFGS-B using the model gradient;
- :class:`SimplexBackend`: derivative-free Nelder–Mead (``optimize.fmin``);
- :class:`EvolutionaryBackend`: seeded differential evolution over the search box,
  polished locally.

:func:`findLocalMinimum` combines them: it refines the start with the
gradient backend, cross-checks with the simplex backend from the same start,
falls back to the evolutionary backend when the gradient backend is stuck,
and classifies the outcome with the Hessian spectrum. Running out of budget
or disagreeing backends give ``NotConverged``, never an exception.

:func:`findLocalMinimumWithRetries` retries ``NotConverged`` outcomes from
seeded random perturbations of the start and returns a
:class:`ConvergenceFailure` value when every attempt fails.
:func:`findGlobalMinimum` is the multistart driver.

All functions are pure with respect to the model and can run concurrently
on the same model instance.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np
import numpy.typing as npt
from scipy import optimize

from .config import MinimizerConfig
from .helper_functions import boxAround, clamp_val, symmetricEigvals

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

class MinimizationStatus(Enum):
    Converged = "Converged"
    NotConverged = "NotConverged"
    Degenerate = "Degenerate"


class MinimizationResult(NamedTuple):
    """
    Outcome of one local minimisation.

    Parameters
    ----------
    point :
        Field configuration reached, shape ``(Ndim,)``.
    potentialValue :
        ``V(point, T)``.
    gradientNorm :
        Euclidean norm of the gradient at ``point``.
    status :
        ``Converged``, ``NotConverged`` or ``Degenerate`` (converged on a
        flat direction: smallest Hessian eigenvalue within tolerance of zero).
    hessianEigenvalues :
        Ascending eigenvalues of the Hessian at ``point``.
    backend :
        Name of the backend that produced ``point``.
    nfev :
        Number of potential evaluations spent.
    hessTol :
        Absolute eigenvalue tolerance used for the classification.
    """
    point: npt.NDArray[np.float64]
    potentialValue: float
    gradientNorm: float
    status: MinimizationStatus
    hessianEigenvalues: npt.NDArray[np.float64]
    backend: str
    nfev: int
    hessTol: float = 0.0

    @property
    def isSaddle(self) -> bool:
        """True if the Hessian has a direction of negative curvature."""
        ev = self.hessianEigenvalues
        return bool(ev.size and np.nanmin(ev) < -self.hessTol)

    @property
    def isValid(self) -> bool:
        """A converged (possibly degenerate) minimum that is not a saddle."""
        return self.status is not MinimizationStatus.NotConverged and not self.isSaddle


class ConvergenceFailure(NamedTuple):
    """Returned (never raised) when no attempt produced a valid minimum."""
    reason: str
    attempts: int
    best: Optional[MinimizationResult] = None


Result = Union[MinimizationResult, ConvergenceFailure]


# ---------------------------------------------------------------------------
# Scaled objective
# ---------------------------------------------------------------------------

class _ScaledObjective:
    """
    V and ∇V in rescaled variables u = x / L, f = V / L⁴.

    Rescaling makes the backend tolerances dimensionless. The evaluation
    counter lives on this per-call object, never on the model.
    """

    def __init__(self, model, T: float, L: float):
        self.model = model
        self.T = float(T)
        self.L = float(L)
        self.norm = self.L**4
        self.nfev = 0

    def f(self, u: np.ndarray) -> float:
        self.nfev += 1
        val = float(self.model.Vtot(np.asarray(u, dtype=float) * self.L, self.T))
        return val / self.norm if np.isfinite(val) else np.inf

    def grad(self, u: np.ndarray) -> np.ndarray:
        g = np.asarray(self.model.gradV(np.asarray(u, dtype=float) * self.L, self.T), dtype=float)
        return g * self.L / self.norm


def fieldScale(T: float, start: np.ndarray, bounds: np.ndarray) -> float:
    """Characteristic field length used to rescale one minimisation."""
    return float(max(T, np.linalg.norm(start), 0.1 * np.max(np.abs(bounds)), 1.0))


def classify(model, T: float, x: np.ndarray, nfev: int, backend: str,
             converged: bool, config: MinimizerConfig,
             bounds: Optional[np.ndarray] = None) -> MinimizationResult:
    """
    Build a :class:`MinimizationResult` for the point `x`: evaluate V, the
    gradient norm and the Hessian spectrum and derive the status.

    A point resting on the search box is reported as ``NotConverged``.
    """
    x = np.asarray(x, dtype=float)
    V = float(model.Vtot(x, T))
    gnorm = float(np.linalg.norm(model.gradV(x, T)))
    ev, finite = symmetricEigvals(model.d2V(x, T))
    scaleH = max(float(np.max(np.abs(ev))) if finite else 0.0, T*T, 1.0)
    hessTol = config.hessTol * scaleH

    ok = converged and finite and np.isfinite(V) and np.isfinite(gnorm)
    if ok and bounds is not None:
        L = fieldScale(T, x, bounds)
        onWall = np.any(np.abs(x[:, None] - bounds) <= 1e-9 * L)
        if onWall:
            log.debug("%s: T=%.6g, point %s rests on the search box", backend, T, x)
            ok = False
    if not ok:
        status = MinimizationStatus.NotConverged
    elif abs(ev[0]) <= hessTol:
        status = MinimizationStatus.Degenerate
    else:
        status = MinimizationStatus.Converged
    return MinimizationResult(x, V, gnorm, status, ev, backend, int(nfev), hessTol)


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------

class MinimizerBackend:
    """Capability interface of a minimisation backend."""

    name = "base"

    def refine(self, model, T: float, start: npt.ArrayLike, bounds: np.ndarray,
               config: MinimizerConfig) -> MinimizationResult:
        raise NotImplementedError


class GradientBackend(MinimizerBackend):
    """Bounded quasi-Newton refinement (L-BFGS-B) with the model gradient."""

    name = "gradient"

    def refine(self, model, T, start, bounds, config):
        start = clamp_val(np.asarray(start, dtype=float), bounds[:, 0], bounds[:, 1])
        L = fieldScale(T, start, bounds)
        obj = _ScaledObjective(model, T, L)
        try:
            res = optimize.minimize(
                obj.f, start / L, jac=obj.grad, method="L-BFGS-B",
                bounds=[tuple(b / L) for b in bounds],
                options=dict(maxiter=config.maxiter, maxfun=config.maxfev,
                             ftol=1e-15, gtol=1e-12 * max(1.0, T / L)),
            )
        except (ValueError, FloatingPointError, np.linalg.LinAlgError) as err:
            log.debug("gradient backend failed at T=%.6g: %s", T, err)
            return classify(model, T, start, obj.nfev, self.name, False, config, bounds)
        # ABNORMAL_TERMINATION_IN_LNSRCH at machine precision is a converged point
        converged = bool(res.success) or (np.isfinite(res.fun) and res.nit > 0 and
                                         "ABNORMAL" in str(res.message).upper())
        return classify(model, T, res.x * L, obj.nfev, self.name, converged, config, bounds)


class SimplexBackend(MinimizerBackend):
    """Derivative-free Nelder–Mead simplex; the search box enters as a penalty."""

    name = "simplex"

    def refine(self, model, T, start, bounds, config):
        start = clamp_val(np.asarray(start, dtype=float), bounds[:, 0], bounds[:, 1])
        L = fieldScale(T, start, bounds)
        obj = _ScaledObjective(model, T, L)
        lo, hi = bounds[:, 0] / L, bounds[:, 1] / L

        def penalized(u):
            uc = np.clip(u, lo, hi)
            return obj.f(uc) + 1e3 * float(np.sum((u - uc)**2))

        u0 = start / L
        xopt, fopt, nit, nfun, warnflag = optimize.fmin(
            penalized, u0, xtol=1e-9, ftol=1e-14, maxiter=config.maxiter,
            maxfun=config.maxfev, full_output=True, disp=False)
        x = np.clip(np.atleast_1d(xopt), lo, hi) * L
        return classify(model, T, x, obj.nfev, self.name, warnflag == 0, config, bounds)


class EvolutionaryBackend(MinimizerBackend):
    """
    Seeded differential evolution over the whole search box (or a box around
    the start), polished with L-BFGS-B.

    Parameters
    ----------
    halfWidth : float, optional
        Half-width of a box around the start in units of the field scale.
        ``None`` (default) searches the full `bounds`.
    """

    name = "evolutionary"

    def __init__(self, halfWidth: Optional[float] = None, popsize: int = 15):
        self.halfWidth = halfWidth
        self.popsize = popsize

    def refine(self, model, T, start, bounds, config):
        start = clamp_val(np.asarray(start, dtype=float), bounds[:, 0], bounds[:, 1])
        L = fieldScale(T, start, bounds)
        box = bounds if self.halfWidth is None else boxAround(start, self.halfWidth * L, bounds)
        obj = _ScaledObjective(model, T, L)
        maxiter = max(1, config.maxfev // (self.popsize * model.Ndim))
        try:
            res = optimize.differential_evolution(
                obj.f, bounds=[tuple(b / L) for b in box], seed=config.seed,
                maxiter=maxiter, popsize=self.popsize, tol=1e-10, polish=True)
        except (ValueError, FloatingPointError, np.linalg.LinAlgError) as err:
            log.debug("evolutionary backend failed at T=%.6g: %s", T, err)
            return classify(model, T, start, obj.nfev, self.name, False, config, bounds)
        return classify(model, T, np.atleast_1d(res.x) * L, obj.nfev, self.name,
                        bool(res.success), config, bounds)


# ---------------------------------------------------------------------------
# Local minimisation
# ---------------------------------------------------------------------------

def _agree(a: MinimizationResult, b: MinimizationResult, T: float,
           config: MinimizerConfig, bounds: np.ndarray) -> bool:
    L = fieldScale(T, a.point, bounds)
    dx = np.linalg.norm(a.point - b.point)
    dV = abs(a.potentialValue - b.potentialValue)
    Vscale = max(abs(a.potentialValue), T**4, 1.0)
    return dx <= config.xtol * L or dV <= config.ftol * Vscale


def findLocalMinimum(model, T: float, start: npt.ArrayLike,
                     bounds: Optional[np.ndarray] = None,
                     config: Optional[MinimizerConfig] = None,
                     backends: Optional[Sequence[MinimizerBackend]] = None) -> MinimizationResult:
    """
    Refine `start` to a local minimum of ``model.Vtot(·, T)``.

    Parameters
    ----------
    model :
        A :class:`~.models.PotentialModel`.
    T :
        Temperature.
    start :
        Starting field configuration, shape ``(Ndim,)``.
    bounds :
        Search box, shape ``(Ndim, 2)``; defaults to ``model.fieldBounds(T)``.
    config :
        Tolerances and budgets.
    backends :
        ``(primary, crossCheck, fallback)``; defaults to gradient, simplex and
        evolutionary backends.

    Returns
    -------
    MinimizationResult
        The lower-valued of the cross-validated results. Its status is
        ``NotConverged`` if the backends disagree by more than ``xtol`` in
        position and ``ftol`` in value, or if no backend converged.
    """
    config = config or MinimizerConfig()
    bounds = model.fieldBounds(T) if bounds is None else np.asarray(bounds, dtype=float)
    primary, check, fallback = backends or (GradientBackend(), SimplexBackend(), EvolutionaryBackend())
    start = np.asarray(start, dtype=float).reshape(model.Ndim)

    first = primary.refine(model, T, start, bounds, config)
    if first.status is MinimizationStatus.NotConverged or not np.isfinite(first.potentialValue):
        log.debug("T=%.6g: %s backend stuck at %s, falling back to %s",
                  T, first.backend, first.point, fallback.name)
        first = fallback.refine(model, T, start, bounds, config)
    second = check.refine(model, T, start, bounds, config)
    nfev = first.nfev + second.nfev

    valid = [r for r in (first, second) if r.status is not MinimizationStatus.NotConverged]
    if not valid:
        best = min((first, second), key=lambda r: r.potentialValue)
        return best._replace(nfev=nfev, status=MinimizationStatus.NotConverged)
    best = min(valid, key=lambda r: r.potentialValue)
    if len(valid) == 2 and not _agree(first, second, T, config, bounds):
        log.debug("T=%.6g: backends disagree (%s at %s, %s at %s)", T,
                  first.backend, first.point, second.backend, second.point)
        return best._replace(nfev=nfev, status=MinimizationStatus.NotConverged)
    return best._replace(nfev=nfev)


def findLocalMinimumWithRetries(model, T: float, start: npt.ArrayLike,
                                bounds: Optional[np.ndarray] = None,
                                config: Optional[MinimizerConfig] = None,
                                rng: Optional[np.random.Generator] = None) -> Result:
    """
    :func:`findLocalMinimum` with bounded retries from perturbed starts.

    Perturbations are drawn from a ``numpy.random.Generator`` seeded with
    ``config.seed`` (or the given `rng`), so repeated calls are deterministic.
    Saddle points count as failures.

    Returns
    -------
    MinimizationResult or ConvergenceFailure
    """
    config = config or MinimizerConfig()
    bounds = model.fieldBounds(T) if bounds is None else np.asarray(bounds, dtype=float)
    rng = rng if rng is not None else np.random.default_rng(config.seed)
    start = np.asarray(start, dtype=float).reshape(model.Ndim)
    L = fieldScale(T, start, bounds)

    best = None
    x0 = start
    for attempt in range(1, config.maxAttempts + 1):
        res = findLocalMinimum(model, T, x0, bounds, config)
        if res.isValid:
            if attempt > 1:
                log.debug("T=%.6g: converged after %d attempts", T, attempt)
            return res
        if best is None or res.potentialValue < best.potentialValue:
            best = res
        x0 = clamp_val(start + config.perturbation * L * rng.standard_normal(model.Ndim),
                       bounds[:, 0], bounds[:, 1])
    reason = "saddle point" if best is not None and best.isSaddle else "backends did not converge or disagree"
    log.debug("T=%.6g: no valid minimum from %s after %d attempts (%s)", T, start, config.maxAttempts, reason)
    return ConvergenceFailure(reason, config.maxAttempts, best)


# ---------------------------------------------------------------------------
# Approximate minima along a segment and global minimisation
# ---------------------------------------------------------------------------

def findApproxLocalMin(f: Callable[..., np.ndarray], x1: npt.ArrayLike, x2: npt.ArrayLike,
                       args: Tuple[object, ...] = (), n: int = 100,
                       edge: float = 0.05) -> np.ndarray:
    """
    Approximate local minima of `f` along the straight segment from `x1` to `x2`.

    Parameters
    ----------
    f : callable
        Vectorised ``f(X, *args)`` with ``X`` of shape ``(n, Ndim)``.
    x1, x2 : array_like
        Segment endpoints.
    args : tuple, optional
        Extra arguments for `f` (typically the temperature).
    n : int, optional
        Number of samples.
    edge : float, optional
        Fraction of the segment trimmed at each end, ``0 <= edge < 0.5``.

    Returns
    -------
    ndarray, shape (k, Ndim)
        Sample points lower than both neighbours; ``(0, Ndim)`` if none.
    """
    x1 = np.asarray(x1, dtype=float).reshape(1, -1)
    x2 = np.asarray(x2, dtype=float).reshape(1, -1)
    if x1.shape != x2.shape:
        raise ValueError(f"findApproxLocalMin: x1 and x2 differ in shape ({x1.shape} vs {x2.shape})")
    if not (0.0 <= edge < 0.5):
        raise ValueError(f"findApproxLocalMin: 'edge' must satisfy 0 <= edge < 0.5, got {edge}")
    ndim = x1.shape[1]
    if n < 3:
        return np.empty((0, ndim))
    t = np.linspace(edge, 1.0 - edge, n).reshape(n, 1)
    x = x1 + t * (x2 - x1)
    y = np.asarray(f(x, *args), dtype=float).reshape(n)
    is_min = (y[2:] > y[1:-1]) & (y[:-2] > y[1:-1])
    return x[1:-1][is_min]


def findGlobalMinimum(model, T: float, starts: Optional[Sequence[npt.ArrayLike]] = None,
                      bounds: Optional[np.ndarray] = None,
                      config: Optional[MinimizerConfig] = None,
                      workers: Optional[int] = None) -> Result:
    """
    Multistart global minimisation.

    Runs :func:`findLocalMinimumWithRetries` from every start (always
    including the symmetric point and the model's broken seed, plus the
    approximate minima on the segment between them), discards saddles and
    non-converged outcomes and returns the lowest-valued valid minimum.

    Parameters
    ----------
    workers :
        Number of threads for the starts (default ``config.workers``).

    Returns
    -------
    MinimizationResult or ConvergenceFailure
    """
    config = config or MinimizerConfig()
    bounds = model.fieldBounds(T) if bounds is None else np.asarray(bounds, dtype=float)
    sym, seed = model.symmetricPoint, model.brokenSeed
    pts: List[np.ndarray] = [sym, seed]
    pts += list(findApproxLocalMin(model.Vtot, sym, seed, args=(T,), n=50))
    if starts is not None:
        pts += [np.asarray(s, dtype=float).reshape(model.Ndim) for s in starts]
    # each start gets its own generator, seeded from its position in the list
    seeds = np.random.SeedSequence(config.seed).spawn(len(pts))

    def run(i):
        return findLocalMinimumWithRetries(model, T, pts[i], bounds, config,
                                           rng=np.random.default_rng(seeds[i]))

    nworkers = config.workers if workers is None else int(workers)
    if nworkers > 1 and len(pts) > 1:
        with ThreadPoolExecutor(max_workers=nworkers) as pool:
            results = list(pool.map(run, range(len(pts))))
    else:
        results = [run(i) for i in range(len(pts))]

    valid = [r for r in results if isinstance(r, MinimizationResult)]
    if not valid:
        bests = [r.best for r in results if r.best is not None]
        best = min(bests, key=lambda r: r.potentialValue) if bests else None
        return ConvergenceFailure("no start converged to a valid minimum", len(pts), best)
    return min(valid, key=lambda r: r.potentialValue)
