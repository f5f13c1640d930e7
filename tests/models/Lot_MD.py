"""
Block MD – models: Landau–Ginzburg toy model and vector dark matter model.

What this file checks
---------------------
1) Landau–Ginzburg: analytic Tc and critical VEV, degenerate minima at Tc,
   analytic derivatives vs finite differences, CP phase of the top mass;
2) VDM: the counterterms keep the tree-level vacuum at T = 0 (vanishing
   gradient, Hessian eigenvalues MH1², MH2²), also after a change of the
   renormalisation scale, and thermal corrections restore the symmetry at
   high T;
3) building models from tab-separated legend/rows and the model registry.
"""

from __future__ import annotations

import numpy as np
import matplotlib.pyplot as plt
import pytest

from BaryoTransitions.config import ConfigurationError, InputError
from BaryoTransitions.helper_functions import gradientFunction, hessianFunction
from BaryoTransitions.models import (
    LandauGinzburgModel,
    VectorDarkMatterModel,
    VDMParameters,
    get_model,
    V_EW,
    M_TOP,
)

np.set_printoptions(precision=6, suppress=True)


# ---------------------------------------------------------------------------
# Landau–Ginzburg
# ---------------------------------------------------------------------------

def test_blockMD_1_landau_ginzburg_critical_point():
    """fromCritical reproduces Tc and vc; the two minima are degenerate at Tc."""
    print("\n[Block MD / Test 1] Landau–Ginzburg critical point")
    model = LandauGinzburgModel.fromCritical(100.0, 150.0)
    Tc, vc = model.criticalTemperature, model.criticalVEV
    print(f"  E = {model.params.E:.6f}, T0 = {model.params.T0:.4f}")
    print(f"  Tc = {Tc:.6f}, vc = {vc:.6f}")
    assert Tc == pytest.approx(100.0, rel=1e-12)
    assert vc == pytest.approx(150.0, rel=1e-12)
    assert model.params.E == pytest.approx(0.075)

    V0 = model.Vtot(np.array([0.0]), Tc)
    Vc = model.Vtot(np.array([vc]), Tc)
    print(f"  V(0, Tc) = {V0:.3e}, V(vc, Tc) = {Vc:.3e}")
    assert abs(Vc - V0) < 1e-6 * Tc**4
    assert abs(model.gradV(np.array([vc]), Tc)[0]) < 1e-6 * Tc**3
    # the broken minimum is a true minimum
    assert model.d2V(np.array([vc]), Tc)[0, 0] > 0.0

    phi = np.linspace(-20.0, 220.0, 300)[:, None]
    fig, ax = plt.subplots()
    for T in (90.0, Tc, 110.0):
        ax.plot(phi[:, 0], model.Vtot(phi, T), label=f"T = {T:.0f}")
    ax.legend()
    plt.close(fig)

    with pytest.raises(ValueError):
        LandauGinzburgModel.fromCritical(100.0, 400.0)


def test_blockMD_2_landau_ginzburg_derivatives_and_phase():
    """Analytic gradient/Hessian agree with finite differences; CP phase on the top only."""
    print("\n[Block MD / Test 2] Landau–Ginzburg derivatives and CP phase")
    model = LandauGinzburgModel.fromCritical(100.0, 150.0, cpPhase=0.3)
    X = np.array([[37.0], [120.0], [-80.0]])
    T = 95.0
    g_fd = gradientFunction(model.Vtot, eps=1e-2, Ndim=1)(X, T)
    h_fd = hessianFunction(model.Vtot, eps=1e-2, Ndim=1)(X, T)
    print(f"  grad analytic = {model.gradV(X, T)[:, 0]}, FD = {g_fd[:, 0]}")
    assert np.allclose(model.gradV(X, T), g_fd, rtol=1e-6)
    assert np.allclose(model.d2V(X, T), h_fd, rtol=1e-4)

    vc = model.criticalVEV
    m_top = model.fermionMass("top", np.array([vc]))
    assert np.angle(m_top) == pytest.approx(0.3)
    assert abs(m_top) == pytest.approx(M_TOP * vc / V_EW)
    assert np.angle(model.fermionMass("bottom", np.array([vc]))) == 0.0
    assert model.cpPhase("top", np.array([[0.0]]))[0] == 0.0
    with pytest.raises(ValueError):
        model.fermionMass("charm", np.array([vc]))


# ---------------------------------------------------------------------------
# Vector dark matter
# ---------------------------------------------------------------------------

def test_blockMD_3_vdm_counterterms_keep_tree_vacuum():
    """At T = 0 the tree-level vacuum is a stationary point with the input masses."""
    print("\n[Block MD / Test 3] VDM counterterms")
    p = VDMParameters(MH1=125.09, MH2=300.0, MX=500.0, alpha=0.1, gX=1.0)
    model = VectorDarkMatterModel(p)
    vev = model.vevTree
    print(f"  vev = {vev}")
    print(f"  counterterms {dict(zip(model.countertermNames(), model.counterterms()))}")

    grad = model.gradV(vev, 0.0)
    print(f"  grad V(vev, 0) = {grad}")
    assert np.all(np.abs(grad) < 1e-5 * V_EW * p.MH1**2)

    ev = np.linalg.eigvalsh(model.d2V(vev, 0.0))
    print(f"  sqrt(eigenvalues) = {np.sqrt(ev)}")
    assert ev[0] == pytest.approx(p.MH1**2, rel=1e-3)
    assert ev[1] == pytest.approx(p.MH2**2, rel=1e-3)

    # the tree-level potential alone has the same vacuum
    g0 = gradientFunction(model.V0, eps=1e-2, Ndim=2)(vev)
    assert np.all(np.abs(g0) < 1e-5 * V_EW * p.MH1**2)


def test_blockMD_4_vdm_reset_scale_returns_new_model():
    """resetScale gives a new model with new counterterms and the same vacuum."""
    print("\n[Block MD / Test 4] VDM renormalisation scale")
    model = VectorDarkMatterModel(MH2=250.0, MX=400.0, alpha=0.05, gX=0.8)
    other = model.resetScale(1.5 * V_EW)
    print(f"  scale {model.scale:.3f} -> {other.scale:.3f}")
    print(f"  CT {model.counterterms()} -> {other.counterterms()}")
    assert other is not model
    assert model.scale == pytest.approx(V_EW)
    assert other.scale == pytest.approx(1.5 * V_EW)
    assert np.array_equal(model.parameters(), other.parameters())
    assert not np.allclose(model.counterterms(), other.counterterms())

    vev = other.vevTree
    ev = np.linalg.eigvalsh(other.d2V(vev, 0.0))
    assert ev[0] == pytest.approx(min(125.09, 250.0)**2, rel=1e-3)
    assert ev[1] == pytest.approx(max(125.09, 250.0)**2, rel=1e-3)

    with pytest.raises(ValueError):
        model.resetScale(-1.0)


def test_blockMD_5_vdm_thermal_restoration():
    """Thermal corrections make the origin a minimum at high temperature."""
    print("\n[Block MD / Test 5] VDM symmetry restoration")
    model = VectorDarkMatterModel()
    origin = np.zeros(2)
    ev_cold = np.linalg.eigvalsh(model.d2V(origin, 0.0))
    ev_hot = np.linalg.eigvalsh(model.d2V(origin, 1000.0))
    print(f"  curvature at origin: T=0 {ev_cold}, T=1000 {ev_hot}")
    assert ev_cold[0] < 0.0
    assert np.all(ev_hot > 0.0)
    assert np.allclose(model.Vthermal(np.array([[0.0, 0.0], [100.0, 50.0]]), 0.0), 0.0)


# ---------------------------------------------------------------------------
# Input rows and registry
# ---------------------------------------------------------------------------

def test_blockMD_6_models_from_legend_rows():
    print("\n[Block MD / Test 6] fromLegendRow")
    legend = ["index", "MH1", "MH2", "MX", "alpha", "gX", "lambda_CP"]
    row = ["7", "125.09", "280", "450", "0.08", "0.9", "20"]
    model = VectorDarkMatterModel.fromLegendRow(legend, row)
    print(f"  {model!r}")
    assert model.params.MH2 == 280.0
    assert model.params.lambdaCP == 20.0
    assert model.params.vs == pytest.approx(500.0)

    # length mismatch
    with pytest.raises(InputError):
        VectorDarkMatterModel.fromLegendRow(legend, row[:-1])
    # gX missing
    with pytest.raises(InputError):
        VectorDarkMatterModel.fromLegendRow(legend[:-2], row[:-2])
    with pytest.raises(InputError):
        VectorDarkMatterModel.fromLegendRow(legend, row[:-1] + ["abc"])
    with pytest.raises(InputError):
        LandauGinzburgModel.fromLegendRow(["D", "E", "lambda", "T0"], ["0.2", "0.5", "-0.1", "80"])

    lg = LandauGinzburgModel.fromLegendRow(["D", "E", "lambda", "T0", "cp_phase"],
                                           ["0.2", "0.075", "0.1", "84.78", "0.2"])
    assert lg.params.lam == 0.1
    assert lg.params.cpPhase == 0.2


def test_blockMD_7_model_registry():
    print("\n[Block MD / Test 7] get_model")
    assert get_model("VDM") is VectorDarkMatterModel
    assert get_model("lg") is LandauGinzburgModel
    assert get_model("landau_ginzburg") is LandauGinzburgModel
    with pytest.raises(ConfigurationError):
        get_model("2HDM")


if __name__ == "__main__":
    test_blockMD_1_landau_ginzburg_critical_point()
    test_blockMD_2_landau_ginzburg_derivatives_and_phase()
    test_blockMD_3_vdm_counterterms_keep_tree_vacuum()
    test_blockMD_4_vdm_reset_scale_returns_new_model()
    test_blockMD_5_vdm_thermal_restoration()
    test_blockMD_6_models_from_legend_rows()
    test_blockMD_7_model_registry()
    print("\n[Block MD] All example tests executed.")
