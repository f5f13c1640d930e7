"""
example_baryogenesis.py

End-to-end showcase of BaryoTransitions on the single-field Landau–Ginzburg
potential

    V(φ, T) = D (T² - T0²) φ² - E T |φ|³ + (λ / 4) φ⁴,

with a CP-violating top phase θ_t(φ) = cpPhase · φ / φc.

The script is structured in three examples (A..C):

  * Example A – Critical temperature from the scan + bisection of PTFinder,
                 compared with the closed-form Tc and φc; V(φ, T) around Tc.
  * Example B – Chemical potential of the top across the wall and the
                 baryon asymmetry η as a function of the CP phase.
  * Example C – The batch driver on a small tab-separated grid of points,
                 with the run configuration read from run_config.json.

Figures are written to ./assets_baryogenesis next to this file.
"""

from __future__ import annotations

import os
from dataclasses import replace
from typing import Any, Dict, List

import numpy as np
import matplotlib.pyplot as plt

from BaryoTransitions.batch import SEP, runBatch
from BaryoTransitions.config import FinderConfig, TransportConfig, load_config
from BaryoTransitions.models import LandauGinzburgModel
from BaryoTransitions.transitionFinder import PTFinder
from BaryoTransitions.transportSolver import Region, TransportProfile, TransportSolver


# -----------------------------------------------------------------------------
# Global configuration – model and numerics
# -----------------------------------------------------------------------------

TC_TARGET: float = 100.0     # GeV
VC_TARGET: float = 150.0     # GeV
CP_PHASE: float = 0.2        # rad
VW: float = 0.1

CP_SCAN = np.linspace(-0.4, 0.4, 9)

MODEL_LABEL: str = "LG1D"


def _output_dir() -> str:
    here = os.path.abspath(os.path.dirname(__file__))
    outdir = os.path.join(here, "assets_baryogenesis")
    os.makedirs(outdir, exist_ok=True)
    return outdir


def _save_figure(fig: plt.Figure, label: str, case: str) -> None:
    path = os.path.join(_output_dir(), f"fig{label}_{case}.png")
    fig.savefig(path, dpi=150, bbox_inches="tight")
    print(f"  -> saved figure to {path}")
    plt.close(fig)


def print_configuration(model: LandauGinzburgModel, case: str) -> None:
    p = model.params
    print("=" * 79)
    print(f"Configuration for example_baryogenesis (case = {case!r})")
    print("=" * 79)
    print("\n[Model parameters]")
    print(f"  D        = {p.D:7.4f}")
    print(f"  E        = {p.E:7.4f}")
    print(f"  lambda   = {p.lam:7.4f}")
    print(f"  T0       = {p.T0:7.3f}")
    print(f"  cpPhase  = {p.cpPhase:7.3f}")
    print("\n[Closed form]")
    print(f"  Tc       = {model.criticalTemperature:9.4f} GeV")
    print(f"  phi_c    = {model.criticalVEV:9.4f} GeV")
    print(f"\n[Wall velocity] vw = {VW}\n")


# -----------------------------------------------------------------------------
# Example A – critical temperature
# -----------------------------------------------------------------------------

def example_A_critical_temperature(model: LandauGinzburgModel, case: str):
    print("\n" + "-" * 79)
    print("Example A – Critical temperature from PTFinder")
    print("-" * 79)

    finder = PTFinder(model, FinderConfig(Thigh=200.0, Tlow=0.0, nScan=41))
    pt = finder.find()
    print(f"  status     = {pt.statusFlag.value} ({pt.message})")
    print(f"  Tc         = {pt.Tc:9.4f} GeV   (closed form {model.criticalTemperature:9.4f})")
    print(f"  vc         = {pt.vc:9.4f} GeV   (closed form {model.criticalVEV:9.4f})")
    print(f"  vc / Tc    = {pt.strength:9.4f}   strongly first order: {pt.isStrong()}")
    print(f"  bisections = {pt.bisections}")

    phi = np.linspace(-20.0, 1.5 * model.criticalVEV, 400)
    fig, ax = plt.subplots(figsize=(6.0, 4.0))
    for T in (pt.Tc - 10.0, pt.Tc, pt.Tc + 5.0):
        ax.plot(phi, model.Vtot(phi[:, None], T), label=f"T = {T:.1f} GeV")
    ax.scatter([pt.brokenVEV[0], pt.symmetricVEV[0]],
               [model.Vtot(pt.brokenVEV, pt.Tc), model.Vtot(pt.symmetricVEV, pt.Tc)], marker="o")
    ax.set_xlabel(r"$\phi$ [GeV]")
    ax.set_ylabel(r"$V(\phi, T)$ [GeV$^4$]")
    ax.set_title("Degenerate minima at the critical temperature")
    ax.legend(loc="best")
    ax.grid(True, alpha=0.3)
    _save_figure(fig, "A", case)
    return pt


# -----------------------------------------------------------------------------
# Example B – transport and eta
# -----------------------------------------------------------------------------

def example_B_transport(model: LandauGinzburgModel, pt, case: str) -> Dict[str, Any]:
    print("\n" + "-" * 79)
    print("Example B – Top chemical potential and baryon asymmetry")
    print("-" * 79)

    cfg = TransportConfig()
    solver = TransportSolver(cfg)
    res = solver.calcEtaForTransition(pt, VW, model)
    print(f"  status = {res.status.value}, LW = {res.wallWidth:.5f} 1/GeV, "
          f"truncation n = {res.truncation:g}")
    for m, eta in res.etas.items():
        print(f"  eta[{m:12s}] = {eta:+.5e}")

    profile = TransportProfile.build(model, pt.Tc, VW, pt.brokenVEV, pt.symmetricVEV,
                                     cfg, cfg.activeSpecies())
    state = solver.solveSpecies("top", profile, res.truncation)

    etas: List[float] = []
    for cp in CP_SCAN:
        m = LandauGinzburgModel(replace(model.params, cpPhase=cp))
        etas.append(solver.calcEtaForTransition(pt, VW, m).eta)
    print("  eta(cpPhase):")
    for cp, eta in zip(CP_SCAN, etas):
        print(f"    {cp:+5.2f}  {eta:+.5e}")

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(11.0, 4.0))
    for reg in (Region.broken, Region.symmetric):
        ax1.plot(state.z[reg], state.mu[reg], label=f"{reg.name} phase")
    ax1.axvline(0.0, color="k", lw=0.5)
    ax1.set_xlim(-20 * res.wallWidth, 60 * res.wallWidth)
    ax1.set_xlabel("z [1/GeV]")
    ax1.set_ylabel(r"$\mu_t(z)$")
    ax1.legend(loc="best")
    ax2.plot(CP_SCAN, etas, "o-")
    ax2.set_xlabel("cpPhase [rad]")
    ax2.set_ylabel(r"$\eta$")
    ax2.grid(True, alpha=0.3)
    _save_figure(fig, "B", case)
    return {"eta": res.eta, "LW": res.wallWidth, "etas_vs_cp": etas}


# -----------------------------------------------------------------------------
# Example C – batch driver
# -----------------------------------------------------------------------------

def example_C_batch(case: str) -> int:
    print("\n" + "-" * 79)
    print("Example C – Batch driver on a tab-separated grid")
    print("-" * 79)

    here = os.path.abspath(os.path.dirname(__file__))
    cfg = load_config(os.path.join(here, "run_config.json"))
    inp = os.path.join(_output_dir(), f"points_{case}.tsv")
    out = os.path.join(_output_dir(), f"results_{case}.tsv")
    rows = [["D", "E", "lambda", "T0", "cp_phase"]]
    for E in (0.05, 0.075, 0.09):
        rows.append(["0.2", f"{E}", "0.1", "84.78", f"{CP_PHASE}"])
    with open(inp, "w", encoding="utf-8") as f:
        f.write("\n".join(SEP.join(r) for r in rows) + "\n")

    n = runBatch(cfg.model, inp, out, cfg=cfg, workers=2)
    with open(out, "r", encoding="utf-8") as f:
        lines = [ln.rstrip("\n").split(SEP) for ln in f]
    legend = lines[0]
    cols = [legend.index(c) for c in ("E", "T_c", "v_c/T_c", "StatusFlag", f"eta_{cfg.transport.primaryMethod}")]
    print("  " + "  ".join(f"{legend[c]:>14s}" for c in cols))
    for ln in lines[1:]:
        print("  " + "  ".join(f"{ln[c]:>14s}" for c in cols))
    print(f"  -> {n} row(s) written to {out}")
    return n


def run_all(case_label: str = MODEL_LABEL) -> Dict[str, Any]:
    """
    Run examples A..C in order and return the key numbers.
    """
    model = LandauGinzburgModel.fromCritical(TC_TARGET, VC_TARGET, cpPhase=CP_PHASE)
    print_configuration(model, case_label)
    pt = example_A_critical_temperature(model, case_label)
    summary: Dict[str, Any] = {"Tc": pt.Tc, "vc": pt.vc}
    if pt.found:
        summary.update(example_B_transport(model, pt, case_label))
    summary["batch_rows"] = example_C_batch(case_label)
    return summary


if __name__ == "__main__":
    run_all()
