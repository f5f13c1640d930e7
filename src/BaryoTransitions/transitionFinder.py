"""
transitionFinder
================

Locate the critical temperature of a first-order phase transition.

:class:`PTFinder` scans the temperature downward from ``Thigh`` to ``Tlow``.
At every sample it minimises the potential from the symmetric point and from
a broken-side seed (:mod:`.minimizer`), and searches the order-parameter
line for further broken-side wells. The scan brackets the highest
temperature interval in which the broken minimum starts to undercut the
symmetric one (or the symmetric minimum disappears). The bracket endpoints
are checked against the global minimum, and a bisection refines the bracket
until both the temperature interval and the free-energy difference

    ΔV(T) = V(φ_brk(T), T) - V(φ_sym(T), T)

are within tolerance. A symmetric phase that vanishes without coexisting
minima is a continuous transition and reported as ``NotFound``.
The finder moves through the states
``Scanning → Bracketed → Refining → {Found | Failed}`` (:class:`ScanState`)
and always returns a :class:`PhaseTransitionPoint`; failures are encoded
in its ``statusFlag`` and never raised.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt

from .config import FinderConfig, MinimizerConfig
from .minimizer import (MinimizationResult, Result, findApproxLocalMin, findGlobalMinimum,
                        findLocalMinimumWithRetries)

log = logging.getLogger(__name__)

# samples on the order-parameter line searched for broken-side wells
_LINE_SAMPLES = 100


class ScanState(Enum):
    Scanning = "Scanning"
    Bracketed = "Bracketed"
    Refining = "Refining"
    Found = "Found"
    Failed = "Failed"


class TransitionStatus(Enum):
    Found = "Found"
    NotFound = "NotFound"
    NumericalFailure = "NumericalFailure"


class PhaseTransitionPoint(NamedTuple):
    """
    Critical point of a transition, as handed to the transport solver.

    Parameters
    ----------
    Tc :
        Critical temperature (NaN unless ``Found``).
    brokenVEV, symmetricVEV :
        Degenerate minima at ``Tc``.
    statusFlag :
        ``Found``, ``NotFound`` or ``NumericalFailure``.
    deltaV :
        ``V(brokenVEV, Tc) - V(symmetricVEV, Tc)``.
    bisections :
        Number of bisection steps spent refining the bracket.
    message :
        Human readable diagnostic.
    higgsIndices :
        Order-parameter directions used by :attr:`vc`; ``None`` uses all.
    """
    Tc: float
    brokenVEV: npt.NDArray[np.float64]
    symmetricVEV: npt.NDArray[np.float64]
    statusFlag: TransitionStatus
    deltaV: float = np.nan
    bisections: int = 0
    message: str = ""
    higgsIndices: Optional[Tuple[int, ...]] = None

    @property
    def found(self) -> bool:
        return self.statusFlag is TransitionStatus.Found

    @property
    def vc(self) -> float:
        """Jump of the order parameter across the transition."""
        d = np.asarray(self.brokenVEV, dtype=float) - np.asarray(self.symmetricVEV, dtype=float)
        if self.higgsIndices is not None:
            d = d[list(self.higgsIndices)]
        return float(np.linalg.norm(d))

    @property
    def strength(self) -> float:
        """vc / Tc."""
        return self.vc / self.Tc if self.found and self.Tc > 0 else np.nan

    def isStrong(self, xi: float = 1.0) -> bool:
        """Strongly first order: found with vc/Tc >= xi."""
        return self.found and bool(self.strength >= xi)


def _failedPoint(Ndim: int, status: TransitionStatus, message: str,
                 higgsIndices=None, bisections: int = 0) -> PhaseTransitionPoint:
    nan = np.full(Ndim, np.nan)
    return PhaseTransitionPoint(np.nan, nan, nan.copy(), status, np.nan,
                                bisections, message, higgsIndices)


class _Sample(NamedTuple):
    """Symmetric-side and broken-side minima at one temperature."""
    T: float
    sym: Result
    brk: Result
    vevTol: float
    symmetricOrder: float = np.nan   # order parameter of the symmetric-side minimum

    @property
    def valid(self) -> bool:
        return (isinstance(self.sym, MinimizationResult) and self.sym.isValid
                and isinstance(self.brk, MinimizationResult) and self.brk.isValid)

    @property
    def symmetricPhase(self) -> bool:
        """The symmetric-side minimum still has a vanishing order parameter."""
        return self.valid and bool(self.symmetricOrder <= self.vevTol * max(self.T, 1.0))

    @property
    def coexisting(self) -> bool:
        """
        Both minima valid and distinct, and the symmetric-side minimum still
        has a vanishing order parameter.
        """
        if not self.symmetricPhase:
            return False
        dist = np.linalg.norm(self.brk.point - self.sym.point)
        return bool(dist > self.vevTol * max(self.T, 1.0))

    @property
    def deltaV(self) -> float:
        if not self.coexisting:
            return np.nan
        return self.brk.potentialValue - self.sym.potentialValue

    @property
    def brokenLower(self) -> bool:
        return self.coexisting and self.deltaV < 0.0

    @property
    def belowTransition(self) -> bool:
        """Broken phase lower, or the symmetric phase already gone."""
        return self.brokenLower or (self.valid and not self.symmetricPhase)


class PTFinder:
    """
    Temperature scan plus bisection for the critical temperature of `model`.

    Parameters
    ----------
    model :
        A :class:`~.models.PotentialModel`.
    config : FinderConfig, optional
        Scan range, tolerances and number of worker threads.
    minimizerConfig : MinimizerConfig, optional
        Options forwarded to the minimiser.

    Attributes
    ----------
    state : ScanState
        Current (after :meth:`find`, final) state of the search.
    samples : list
        Scan samples, from high to low temperature.
    """

    def __init__(self, model, config: Optional[FinderConfig] = None,
                 minimizerConfig: Optional[MinimizerConfig] = None):
        self.model = model
        self.config = config or FinderConfig()
        self.minimizerConfig = minimizerConfig or MinimizerConfig()
        self.state = ScanState.Scanning
        self.samples: List[_Sample] = []

    # -- one temperature -------------------------------------------------------

    def brokenStart(self) -> np.ndarray:
        """Broken-side seed, pushed away from the symmetric point."""
        seed = np.array(self.model.brokenSeed, dtype=float)
        sym = self.model.symmetricPoint
        if np.linalg.norm(seed - sym) == 0.0:
            seed = sym + self.model.fieldBounds()[:, 1] / 3.0
        return seed

    def sample(self, T: float, symStart: Optional[npt.ArrayLike] = None,
               brkStart: Optional[npt.ArrayLike] = None,
               extraStarts: Sequence[npt.ArrayLike] = ()) -> _Sample:
        """
        Minimise from the symmetric side and from the broken side at `T`.

        The broken side is the lowest valid minimum, distinct in the order
        parameter from the symmetric one, reached from `brkStart`, from
        `extraStarts` or from the wells found on the order-parameter line.
        When none of these converges the global minimum is tried. Without a
        distinct minimum there is no broken phase and the broken side is the
        symmetric minimum itself.
        """
        model, mcfg = self.model, self.minimizerConfig
        bounds = model.fieldBounds(T)
        symStart = model.symmetricPoint if symStart is None else np.asarray(symStart, dtype=float)
        brkStart = self.brokenStart() if brkStart is None else np.asarray(brkStart, dtype=float)
        sym = findLocalMinimumWithRetries(model, T, symStart, bounds, mcfg)
        brk = findLocalMinimumWithRetries(model, T, brkStart, bounds, mcfg)
        if isinstance(sym, MinimizationResult):
            brk = self._brokenPhase(T, bounds, sym, brk, [brkStart, *extraStarts])
        hsym = float(model.higgsMagnitude(sym.point)) if isinstance(sym, MinimizationResult) else np.nan
        s = _Sample(float(T), sym, brk, self.config.vevTol, hsym)
        log.debug("T=%.6g: sym=%s brk=%s dV=%.6g", T,
                  getattr(sym, "point", None), getattr(brk, "point", None), s.deltaV)
        return s

    def orderParameterWells(self, T: float, symPoint: npt.ArrayLike) -> np.ndarray:
        """
        Approximate minima of ``V(·, T)`` on the line that starts at the
        symmetric minimum and moves only the Higgs components, out to 1.5
        times those of :meth:`brokenStart`.
        """
        hidx = list(self.model.higgsIndices)
        x1 = np.asarray(symPoint, dtype=float)
        x2 = x1.copy()
        x2[hidx] = 1.5 * self.brokenStart()[hidx]
        bounds = self.model.fieldBounds(T)
        x2 = np.clip(x2, bounds[:, 0], bounds[:, 1])
        if np.linalg.norm(x2 - x1) == 0.0:
            return np.empty((0, self.model.Ndim))
        return findApproxLocalMin(self.model.Vtot, x1, x2, args=(T,), n=_LINE_SAMPLES, edge=0.01)

    def _distinctOrder(self, r: MinimizationResult, sym: MinimizationResult, T: float) -> bool:
        dh = abs(float(self.model.higgsMagnitude(r.point)) - float(self.model.higgsMagnitude(sym.point)))
        return dh > self.config.vevTol * max(T, 1.0)

    def _brokenPhase(self, T, bounds, sym: MinimizationResult, brk: Result, starts) -> MinimizationResult:
        model, mcfg = self.model, self.minimizerConfig
        found = [brk] if isinstance(brk, MinimizationResult) else []
        for x0 in [*starts[1:], *self.orderParameterWells(T, sym.point)]:
            r = findLocalMinimumWithRetries(model, T, x0, bounds, mcfg)
            if isinstance(r, MinimizationResult):
                found.append(r)
        distinct = [r for r in found if self._distinctOrder(r, sym, T)]
        if distinct:
            return min(distinct, key=lambda r: r.potentialValue)
        if not found:
            g = findGlobalMinimum(model, T, [sym.point, *starts], bounds, mcfg, workers=1)
            if isinstance(g, MinimizationResult) and self._distinctOrder(g, sym, T):
                log.debug("T=%.6g: broken side from the global minimum at %s", T, g.point)
                return g
        # no broken phase at this temperature
        return sym

    def confirmBroken(self, s: _Sample) -> _Sample:
        """
        Check the broken side of `s` against the global minimum at ``s.T``.

        A global minimum deeper than both phases and distinct in the order
        parameter from the symmetric one replaces the broken-side minimum.
        """
        if not s.valid:
            return s
        model, mcfg = self.model, self.minimizerConfig
        g = findGlobalMinimum(model, s.T, [s.sym.point, s.brk.point], model.fieldBounds(s.T),
                              mcfg, workers=1)
        if not isinstance(g, MinimizationResult):
            return s
        Vmin = min(s.sym.potentialValue, s.brk.potentialValue)
        margin = mcfg.ftol * max(abs(Vmin), s.T**4, 1.0)
        if g.potentialValue < Vmin - margin and self._distinctOrder(g, s.sym, s.T):
            log.debug("T=%.6g: global minimum %s undercuts the broken side %s",
                      s.T, g.point, s.brk.point)
            return s._replace(brk=g)
        return s

    def scan(self) -> List[_Sample]:
        """Evaluate all scan temperatures, from ``Thigh`` down to ``Tlow``."""
        cfg = self.config
        Ts = np.linspace(cfg.Thigh, cfg.Tlow, cfg.nScan)
        if cfg.workers > 1:
            with ThreadPoolExecutor(max_workers=cfg.workers) as pool:
                samples = list(pool.map(self.sample, Ts))
        else:
            samples = [self.sample(T) for T in Ts]
        self.samples = samples
        return samples

    # -- bracket and bisection -------------------------------------------------

    @staticmethod
    def findBracket(samples: Sequence[_Sample]) -> Optional[Tuple[int, int]]:
        """
        Indices of the first pair of consecutive valid samples (high → low T)
        across which the broken minimum starts to undercut the symmetric one,
        or the symmetric phase disappears.
        """
        valid = [i for i, s in enumerate(samples) if s.valid]
        for i, j in zip(valid[:-1], valid[1:]):
            if samples[j].belowTransition and not samples[i].belowTransition:
                return i, j
        return None

    def _bracket(self, samples: List[_Sample]) -> Optional[Tuple[_Sample, _Sample]]:
        # endpoints are confirmed against the global minimum, each at most once
        confirmed = set()
        while True:
            bracket = self.findBracket(samples)
            if bracket is None:
                return None
            if confirmed.issuperset(bracket):
                return samples[bracket[0]], samples[bracket[1]]
            for i in bracket:
                if i not in confirmed:
                    samples[i] = self.confirmBroken(samples[i])
                    confirmed.add(i)

    def _refineSample(self, T: float, hi: _Sample, lo: _Sample) -> Optional[_Sample]:
        # bracket minima first, then the default seeds, then nearby temperatures
        extra = [hi.brk.point, self.brokenStart()]
        s = self.sample(T, symStart=hi.sym.point, brkStart=lo.brk.point, extraStarts=extra)
        if s.valid:
            return s
        s = self.sample(T, extraStarts=[lo.brk.point])
        if s.valid:
            return s
        for f in (0.25, 0.75):
            Tn = lo.T + f * (hi.T - lo.T)
            log.debug("T=%.6g unresolved, trying T=%.6g", T, Tn)
            s = self.sample(Tn, symStart=hi.sym.point, brkStart=lo.brk.point, extraStarts=extra)
            if s.valid:
                return s
        return None

    def find(self) -> PhaseTransitionPoint:
        """Run the scan and the bisection and return the transition point."""
        cfg, model = self.config, self.model
        Ndim, hidx = model.Ndim, tuple(model.higgsIndices)
        self.state = ScanState.Scanning
        samples = self.scan()

        if not any(s.valid for s in samples):
            self.state = ScanState.Failed
            msg = "minimiser did not converge at any scan temperature"
            log.warning("%s: %s", model.modelName, msg)
            return _failedPoint(Ndim, TransitionStatus.NumericalFailure, msg, hidx)

        bracket = self._bracket(samples)
        if bracket is None:
            self.state = ScanState.Failed
            first = next(s for s in samples if s.valid)
            if first.belowTransition:
                msg = f"broken phase already lower at Thigh={cfg.Thigh:g}"
            else:
                msg = f"no first-order transition between T={cfg.Thigh:g} and T={cfg.Tlow:g}"
            log.info("%s: %s", model.modelName, msg)
            return _failedPoint(Ndim, TransitionStatus.NotFound, msg, hidx)

        hi, lo = bracket
        self.state = ScanState.Bracketed
        log.debug("Bracketed transition between T=%.6g and T=%.6g", lo.T, hi.T)

        self.state = ScanState.Refining
        nbis = resolved = 0
        unresolved = None
        while nbis < cfg.maxBisections:
            if hi.T - lo.T < cfg.Ttol and (abs(lo.deltaV) < cfg.dVtol * lo.T**4 or not lo.coexisting):
                break
            Tm = 0.5 * (hi.T + lo.T)
            if not lo.T < Tm < hi.T:
                break   # interval below float resolution
            s = self._refineSample(Tm, hi, lo)
            nbis += 1
            if s is None:
                unresolved = Tm
                log.warning("%s: minimiser did not converge at T=%.6g inside the bracket",
                            model.modelName, Tm)
                break
            resolved += 1
            if s.belowTransition:
                lo = s
            else:
                hi = s

        if unresolved is not None and resolved == 0:
            self.state = ScanState.Failed
            msg = f"minimiser did not converge inside the bracket at T={unresolved:.6g}"
            return _failedPoint(Ndim, TransitionStatus.NumericalFailure, msg, hidx, nbis)

        if not lo.coexisting and hi.T - lo.T < cfg.Ttol:
            self.state = ScanState.Failed
            msg = f"symmetric phase disappears at T={lo.T:.6g} without coexisting minima"
            log.info("%s: %s", model.modelName, msg)
            return _failedPoint(Ndim, TransitionStatus.NotFound, msg, hidx, nbis)

        dV = lo.deltaV
        if not abs(dV) < cfg.dVtol * lo.T**4:
            self.state = ScanState.Failed
            msg = (f"bisection stopped at T={lo.T:.6g} with |dV|={abs(dV):.3g} "
                   f"above tolerance after {nbis} steps")
            log.warning("%s: %s", model.modelName, msg)
            return _failedPoint(Ndim, TransitionStatus.NumericalFailure, msg, hidx, nbis)

        self.state = ScanState.Found
        pt = PhaseTransitionPoint(lo.T, lo.brk.point.copy(), lo.sym.point.copy(),
                                  TransitionStatus.Found, float(dV), nbis,
                                  "critical temperature found", hidx)
        log.info("%s: Tc = %.6g GeV, vc = %.6g GeV, vc/Tc = %.4g (%d bisections)",
                 model.modelName, pt.Tc, pt.vc, pt.strength, nbis)
        return pt


def findCriticalTemperature(model, config: Optional[FinderConfig] = None,
                            minimizerConfig: Optional[MinimizerConfig] = None) -> PhaseTransitionPoint:
    """Functional entry point: ``PTFinder(model, ...).find()``."""
    return PTFinder(model, config, minimizerConfig).find()
