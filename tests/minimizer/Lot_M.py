"""
Block M – minimizer: local, retried and global minimisation of a potential.

Test model: Landau–Ginzburg potential with Tc = 100 GeV, φc = 150 GeV,
whose minima are known in closed form,

    φ_brk(T) = [3ET + sqrt(9E²T² - 8λD(T² - T0²))] / (2λ).

What this file checks
---------------------
1) broken and symmetric minima at T = 90 against the analytic values;
   refining a minimum again returns it unchanged;
2) classification of a saddle; retries escape from it;
3) a runaway potential yields a ConvergenceFailure value, not an exception;
4) deterministic outcomes for a fixed seed;
5) findGlobalMinimum above and below Tc, serial and threaded;
6) findApproxLocalMin along a segment and its argument checks;
7) the evolutionary fallback searches the whole box, takes over from a stuck
   primary backend and turns errors inside the search into NotConverged.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import matplotlib.pyplot as plt
import pytest

from BaryoTransitions.config import MinimizerConfig
from BaryoTransitions.minimizer import (
    ConvergenceFailure,
    EvolutionaryBackend,
    MinimizationResult,
    MinimizationStatus,
    MinimizerBackend,
    SimplexBackend,
    classify,
    findApproxLocalMin,
    findGlobalMinimum,
    findLocalMinimum,
    findLocalMinimumWithRetries,
)
from BaryoTransitions.models import LandauGinzburgModel, PotentialModel

np.set_printoptions(precision=6, suppress=True)

MODEL = LandauGinzburgModel.fromCritical(100.0, 150.0)


def phi_broken(T: float) -> float:
    p = MODEL.params
    disc = 9.0 * p.E**2 * T**2 - 8.0 * p.lam * p.D * (T**2 - p.T0**2)
    return (3.0 * p.E * T + np.sqrt(disc)) / (2.0 * p.lam)


@dataclass(frozen=True)
class _NoParameters:
    pass


class RunawayModel(PotentialModel):
    """V = -φ²: unbounded from below, the minimiser can only hit the box."""
    modelName = "runaway"
    Parameters = _NoParameters

    def Vtot(self, X, T):
        return -np.asarray(X, dtype=float)[..., 0]**2

    @property
    def vevTree(self):
        return np.array([1.0])


# ---------------------------------------------------------------------------
# Test 1: local minima
# ---------------------------------------------------------------------------

def test_blockM_1_local_minima_match_analytic():
    print("\n[Block M / Test 1] local minima at T = 90")
    T = 90.0
    brk = findLocalMinimum(MODEL, T, MODEL.brokenSeed)
    sym = findLocalMinimum(MODEL, T, MODEL.symmetricPoint)
    print(f"  broken:    {brk.point} (analytic {phi_broken(T):.6f}), status {brk.status.value}")
    print(f"  symmetric: {sym.point}, status {sym.status.value}")
    assert brk.status is MinimizationStatus.Converged
    assert brk.point[0] == pytest.approx(phi_broken(T), rel=1e-5)
    assert brk.potentialValue < 0.0
    assert brk.hessianEigenvalues[0] > 0.0
    assert sym.isValid
    assert abs(sym.point[0]) < 1e-3

    again = findLocalMinimum(MODEL, T, brk.point)
    print(f"  refined again: {again.point}")
    assert again.status is MinimizationStatus.Converged
    assert again.point[0] == pytest.approx(brk.point[0], rel=1e-6)

    phi = np.linspace(-20.0, 250.0, 400)
    fig, ax = plt.subplots()
    ax.plot(phi, MODEL.Vtot(phi[:, None], T))
    ax.plot([brk.point[0], sym.point[0]], [brk.potentialValue, sym.potentialValue], "o")
    ax.set_xlabel(r"$\phi$ [GeV]")
    plt.close(fig)


# ---------------------------------------------------------------------------
# Test 2: saddles and retries
# ---------------------------------------------------------------------------

def test_blockM_2_saddle_is_rejected_and_retries_escape():
    print("\n[Block M / Test 2] saddle at the origin below T0")
    T = 50.0
    cfg = MinimizerConfig()
    res = classify(MODEL, T, np.array([0.0]), 0, "test", True, cfg)
    print(f"  eigenvalues at origin: {res.hessianEigenvalues}")
    assert res.isSaddle
    assert not res.isValid

    out = findLocalMinimumWithRetries(MODEL, T, np.array([0.0]), config=cfg)
    print(f"  after retries: {getattr(out, 'point', out)}")
    assert isinstance(out, MinimizationResult)
    assert out.isValid
    assert abs(out.point[0]) == pytest.approx(phi_broken(T), rel=1e-4)


# ---------------------------------------------------------------------------
# Test 3: failure values
# ---------------------------------------------------------------------------

def test_blockM_3_runaway_potential_gives_failure_value():
    print("\n[Block M / Test 3] unbounded potential")
    model = RunawayModel()
    cfg = MinimizerConfig(maxAttempts=2)
    res = findLocalMinimum(model, 10.0, np.array([1.0]), config=cfg)
    print(f"  single attempt: {res.point}, status {res.status.value}, saddle {res.isSaddle}")
    assert not res.isValid

    out = findLocalMinimumWithRetries(model, 10.0, np.array([1.0]), config=cfg)
    print(f"  retries: {out}")
    assert isinstance(out, ConvergenceFailure)
    assert out.attempts == 2
    assert out.reason

    glob = findGlobalMinimum(model, 10.0, config=cfg)
    assert isinstance(glob, ConvergenceFailure)


# ---------------------------------------------------------------------------
# Test 4: determinism
# ---------------------------------------------------------------------------

def test_blockM_4_fixed_seed_is_deterministic():
    print("\n[Block M / Test 4] determinism")
    cfg = MinimizerConfig(seed=7)
    a = findLocalMinimumWithRetries(MODEL, 50.0, np.array([0.0]), config=cfg)
    b = findLocalMinimumWithRetries(MODEL, 50.0, np.array([0.0]), config=cfg)
    print(f"  {a.point} vs {b.point}")
    assert np.array_equal(a.point, b.point)
    assert a.potentialValue == b.potentialValue


# ---------------------------------------------------------------------------
# Test 5: global minimum
# ---------------------------------------------------------------------------

def test_blockM_5_global_minimum_across_tc():
    print("\n[Block M / Test 5] global minimum below and above Tc")
    low = findGlobalMinimum(MODEL, 90.0)
    high = findGlobalMinimum(MODEL, 120.0)
    print(f"  T=90:  {low.point}  V={low.potentialValue:.6g}")
    print(f"  T=120: {high.point}  V={high.potentialValue:.6g}")
    assert isinstance(low, MinimizationResult) and isinstance(high, MinimizationResult)
    assert low.point[0] == pytest.approx(phi_broken(90.0), rel=1e-5)
    assert abs(high.point[0]) < 1e-3

    threaded = findGlobalMinimum(MODEL, 90.0, starts=[[60.0], [220.0]], workers=2)
    serial = findGlobalMinimum(MODEL, 90.0, starts=[[60.0], [220.0]], workers=1)
    assert np.array_equal(threaded.point, serial.point)
    assert threaded.potentialValue == serial.potentialValue


# ---------------------------------------------------------------------------
# Test 6: approximate minima on a segment
# ---------------------------------------------------------------------------

def test_blockM_6_approximate_minima_on_segment():
    print("\n[Block M / Test 6] findApproxLocalMin")
    T = 90.0
    mins = findApproxLocalMin(MODEL.Vtot, [-20.0], [250.0], args=(T,), n=200)
    print(f"  approximate minima: {mins[:, 0]}")
    assert mins.shape == (2, 1)
    assert abs(mins[0, 0]) < 1.5
    assert abs(mins[1, 0] - phi_broken(T)) < 1.5

    assert findApproxLocalMin(MODEL.Vtot, [0.0], [1.0], args=(T,), n=2).shape == (0, 1)
    with pytest.raises(ValueError):
        findApproxLocalMin(MODEL.Vtot, [-20.0], [250.0], args=(T,), edge=0.6)
    with pytest.raises(ValueError):
        findApproxLocalMin(MODEL.Vtot, [0.0, 0.0], [1.0], args=(T,))


# ---------------------------------------------------------------------------
# Test 7: evolutionary fallback
# ---------------------------------------------------------------------------

class _StuckBackend(MinimizerBackend):
    """Primary backend that never leaves its start."""
    name = "stuck"

    def refine(self, model, T, start, bounds, config):
        return classify(model, T, np.asarray(start, dtype=float), 0, self.name, False, config, bounds)


class FencedModel(PotentialModel):
    """V = φ², refusing to evaluate beyond |φ| = 10."""
    modelName = "fenced"
    Parameters = _NoParameters

    def Vtot(self, X, T):
        phi = np.asarray(X, dtype=float)[..., 0]
        if np.any(np.abs(phi) > 10.0):
            raise ValueError("field outside the tabulated range")
        return phi**2

    @property
    def vevTree(self):
        return np.array([1.0])


def test_blockM_7_evolutionary_fallback_searches_bounds():
    print("\n[Block M / Test 7] evolutionary fallback over the search box")
    T = 90.0
    cfg = MinimizerConfig()
    bounds = MODEL.fieldBounds(T)

    wide = EvolutionaryBackend().refine(MODEL, T, np.array([0.0]), bounds, cfg)
    narrow = EvolutionaryBackend(halfWidth=0.2).refine(MODEL, T, np.array([0.0]), bounds, cfg)
    print(f"  full box: {wide.point}, box around the start: {narrow.point}")
    assert abs(wide.point[0]) == pytest.approx(phi_broken(T), rel=1e-3)
    assert abs(narrow.point[0]) < 1.0

    # a stuck primary hands over to the evolutionary search; the simplex
    # cross-check stays in the symmetric well, so the pair disagrees
    res = findLocalMinimum(MODEL, T, np.array([0.0]), bounds, cfg,
                           backends=(_StuckBackend(), SimplexBackend(), EvolutionaryBackend()))
    print(f"  stuck primary: {res.point} from {res.backend}, status {res.status.value}")
    assert res.backend == "evolutionary"
    assert abs(res.point[0]) == pytest.approx(phi_broken(T), rel=1e-3)
    assert res.status is MinimizationStatus.NotConverged

    # errors raised inside differential evolution come back as NotConverged
    fenced = FencedModel()
    out = EvolutionaryBackend().refine(fenced, 1.0, np.array([0.0]), fenced.fieldBounds(1.0), cfg)
    print(f"  fenced model: {out.point}, status {out.status.value}")
    assert out.status is MinimizationStatus.NotConverged
    assert out.backend == "evolutionary"


if __name__ == "__main__":
    test_blockM_1_local_minima_match_analytic()
    test_blockM_2_saddle_is_rejected_and_retries_escape()
    test_blockM_3_runaway_potential_gives_failure_value()
    test_blockM_4_fixed_seed_is_deterministic()
    test_blockM_5_global_minimum_across_tc()
    test_blockM_6_approximate_minima_on_segment()
    test_blockM_7_evolutionary_fallback_searches_bounds()
    print("\n[Block M] All example tests executed.")
