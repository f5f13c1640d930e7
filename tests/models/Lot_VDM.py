"""
Block VDM – vector dark matter model through the whole pipeline.

Test point: MH1 = 125.09, MH2 = 300, MX = 500, alpha = 0.1, gX = 1 and a
singlet-induced top phase θ_t = arctan(s / 100). The electroweak transition
is weakly first order and SM-like; the singlet stays broken across it and
shifts slightly, which is what gives the top phase a jump through the wall.
A coarse scan (four samples between 200 and 50 GeV) keeps the runs short;
the finder brackets the transition where the symmetric phase disappears.

What this file checks
---------------------
1) the finder returns Found with degenerate minima at Tc, h = 0 with a
   broken singlet on the symmetric side and a non-vanishing Higgs VEV on
   the broken side;
2) the transport solver gives a finite, non-zero η with status OK, and the
   tabulated top phases are arctan(s / lambdaCP) on both sides;
3) a batch with two renormalisation-scale steps writes one Found row per
   scale, and Tc does not depend on the scale.
"""

from __future__ import annotations

import tempfile
from functools import lru_cache
from pathlib import Path

import numpy as np
import pytest

from BaryoTransitions.batch import SEP, runBatch
from BaryoTransitions.config import FinderConfig, RunConfig
from BaryoTransitions.models import V_EW, VectorDarkMatterModel
from BaryoTransitions.transitionFinder import PTFinder, ScanState, TransitionStatus
from BaryoTransitions.transportSolver import EtaStatus, TransportSolver

np.set_printoptions(precision=6, suppress=True)

POINT = dict(MH1=125.09, MH2=300.0, MX=500.0, alpha=0.1, gX=1.0, lambdaCP=100.0)
FINDER = FinderConfig(Thigh=200.0, Tlow=50.0, nScan=4, dVtol=1e-7)
VW = 0.1


@lru_cache(maxsize=None)
def vdm_transition():
    model = VectorDarkMatterModel(**POINT)
    finder = PTFinder(model, FINDER)
    return model, finder, finder.find()


# ---------------------------------------------------------------------------
# Test 1: critical point
# ---------------------------------------------------------------------------

def test_blockVDM_1_critical_point():
    print("\n[Block VDM / Test 1] PTFinder on the VDM point")
    model, finder, pt = vdm_transition()
    print(f"  status {pt.statusFlag.value}: {pt.message}")
    print(f"  Tc = {pt.Tc:.6f}, sym = {pt.symmetricVEV}, brk = {pt.brokenVEV}, "
          f"vc/Tc = {pt.strength:.4f}, bisections = {pt.bisections}")
    assert pt.statusFlag is TransitionStatus.Found
    assert finder.state is ScanState.Found
    assert 80.0 < pt.Tc < 200.0

    tol = FINDER.vevTol * pt.Tc
    assert abs(pt.symmetricVEV[0]) < tol
    assert pt.symmetricVEV[1] > 100.0
    assert abs(pt.brokenVEV[0]) > tol
    assert pt.vc == pytest.approx(abs(pt.brokenVEV[0] - pt.symmetricVEV[0]))

    Vb = float(model.Vtot(pt.brokenVEV, pt.Tc))
    Vs = float(model.Vtot(pt.symmetricVEV, pt.Tc))
    print(f"  V_brk - V_sym = {Vb - Vs:.3e} (tolerance {FINDER.dVtol * pt.Tc**4:.3e})")
    assert abs(Vb - Vs) < FINDER.dVtol * pt.Tc**4


# ---------------------------------------------------------------------------
# Test 2: baryon asymmetry
# ---------------------------------------------------------------------------

def test_blockVDM_2_baryon_asymmetry():
    print("\n[Block VDM / Test 2] transport across the VDM wall")
    model, _, pt = vdm_transition()
    res = TransportSolver().calcEtaForTransition(pt, VW, model)
    print(f"  status {res.status.value}: eta = {res.eta!r}, L_W = {res.wallWidth:.4g}")
    print(f"  phases {res.perSpeciesPhases}")
    assert res.status is EtaStatus.OK
    assert np.isfinite(res.eta) and res.eta != 0.0
    assert all(np.isfinite(v) for v in res.etas.values())
    assert res.wallWidth > 0.0

    lcp = POINT["lambdaCP"]
    top_sym = res.perSpeciesPhases[("top", "sym")]
    top_brk = res.perSpeciesPhases[("top", "brk")]
    assert top_sym == pytest.approx(np.arctan(pt.symmetricVEV[1] / lcp))
    assert top_brk == pytest.approx(np.arctan(pt.brokenVEV[1] / lcp))
    assert top_sym != top_brk
    assert res.perSpeciesPhases[("bottom", "brk")] == 0.0


# ---------------------------------------------------------------------------
# Test 3: scale stepping in the batch driver
# ---------------------------------------------------------------------------

def test_blockVDM_3_batch_mu_steps(tmp_path):
    print("\n[Block VDM / Test 3] batch with --mu-steps 2")
    _, _, pt = vdm_transition()
    legend = ["MH1", "MH2", "MX", "alpha", "gX", "lambda_CP"]
    row = [str(POINT[k]) for k in ("MH1", "MH2", "MX", "alpha", "gX", "lambdaCP")]
    inp = tmp_path / "vdm.tsv"
    inp.write_text(SEP.join(legend) + "\n" + SEP.join(row) + "\n", encoding="utf-8")
    out = tmp_path / "vdm_results.tsv"

    n = runBatch("vdm", str(inp), str(out), cfg=RunConfig(vw=VW, finder=FINDER), muSteps=2)
    lines = out.read_text(encoding="utf-8").splitlines()
    cols = lines[0].split(SEP)
    rows = [ln.split(SEP) for ln in lines[1:]]
    for r in rows:
        print(f"  {dict(zip(cols, r))}")
    assert n == 2 and len(rows) == 2
    assert all(len(r) == len(cols) for r in rows)
    assert [float(r[cols.index("mu_factor")]) for r in rows] == [0.5, 1.0]
    assert float(rows[1][cols.index("mu")]) == pytest.approx(V_EW)
    assert all(r[cols.index("StatusFlag")] == "Found" for r in rows)
    assert all(r[cols.index("EtaStatus")] == "OK" for r in rows)

    # the counterterms absorb the scale dependence of the one-loop potential
    Tcs = [float(r[cols.index("T_c_mu")]) for r in rows]
    print(f"  T_c at mu = 0.5 v0, v0: {Tcs} (direct run {pt.Tc!r})")
    assert Tcs[0] == pytest.approx(Tcs[1], rel=1e-4)
    assert Tcs[1] == pytest.approx(pt.Tc, rel=1e-8)
    etas = [float(r[cols.index("eta_top_muvar")]) for r in rows]
    assert all(np.isfinite(e) and e != 0.0 for e in etas)


if __name__ == "__main__":
    test_blockVDM_1_critical_point()
    test_blockVDM_2_baryon_asymmetry()
    with tempfile.TemporaryDirectory() as tmp:
        test_blockVDM_3_batch_mu_steps(Path(tmp))
    print("\n[Block VDM] All example tests executed.")
