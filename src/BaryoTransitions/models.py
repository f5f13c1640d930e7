"""
models
======

Finite-temperature effective potentials consumed by the phase-transition
finder and the transport solver.

Every model is an immutable object: its parameters are fixed at
construction and :meth:`PotentialModel.resetScale` returns a *new* model
evaluated at another renormalisation scale. Models never cache results, so
one instance can be shared by several worker threads.

Field configurations are arrays whose last axis has length ``Ndim``; the
potential is vectorised over all leading axes.

Two concrete models are provided:

- :class:`LandauGinzburgModel`, the single-field toy potential

      V(φ, T) = D (T² - T0²) φ² - E T |φ|³ + λ/4 φ⁴

  whose critical temperature and critical VEV are known analytically;
- :class:`VectorDarkMatterModel`, the SM Higgs doublet plus a complex
  singlet charged under a hidden U(1) (vector dark matter), with tree level,
  Coleman–Weinberg, counterterm and one-loop thermal pieces.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Dict, Mapping, Optional, Sequence, Tuple, Type

import numpy as np
from numpy.typing import ArrayLike

from .config import ConfigurationError, InputError
from .finiteT import Jb, Jf
from .helper_functions import gradientFunction, hessianFunction

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Standard Model inputs (GeV)
# ---------------------------------------------------------------------------

V_EW = 246.22
M_HIGGS = 125.09
M_W = 80.379
M_Z = 91.1876
M_TOP = 172.5
M_BOTTOM = 4.18
M_TAU = 1.777

FERMION_MASSES: Dict[str, float] = {"top": M_TOP, "bottom": M_BOTTOM, "tau": M_TAU}
FERMION_SPECIES = tuple(FERMION_MASSES)

_64pi2 = 64.0 * np.pi**2


def _safe_log(m2: np.ndarray, mu2: float) -> np.ndarray:
    """log(|m²|/μ²) with the m² → 0 limit of m⁴ log m² taken as zero."""
    m2 = np.asarray(m2, dtype=float)
    out = np.zeros_like(m2)
    mask = (m2 != 0.0)
    out[mask] = np.log(np.abs(m2[mask]) / mu2)
    return out


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------

class PotentialModel:
    """
    Base class of all finite-temperature potentials.

    Subclasses set the class attributes below, implement :meth:`Vtot` and
    may override :meth:`gradV` / :meth:`d2V` with analytic expressions
    (finite differences of ``Vtot`` are used otherwise).

    Attributes
    ----------
    Ndim :
        Number of field directions.
    fieldNames :
        One name per field direction.
    higgsIndices :
        Directions carrying the electroweak order parameter.
    vevLabels :
        Column labels of the VEV components in output files.
    Parameters :
        Frozen dataclass holding the model parameters.
    legendAliases :
        Maps input-file legend names onto fields of ``Parameters``.
    x_eps :
        Finite-difference step in field space (GeV).
    """

    modelName = "base"
    Ndim = 1
    fieldNames: Tuple[str, ...] = ("phi",)
    higgsIndices: Tuple[int, ...] = (0,)
    vevLabels: Tuple[str, ...] = ("omega_c",)
    fermionSpecies: Tuple[str, ...] = FERMION_SPECIES
    Parameters: Type = None
    legendAliases: Mapping[str, str] = {}
    requiredParameters: Tuple[str, ...] = ()
    x_eps = 1e-3

    def __init__(self, params=None, scale: Optional[float] = None, **kwargs):
        if params is None:
            params = self.Parameters(**kwargs)
        elif kwargs:
            raise TypeError("give either a parameter object or keyword parameters, not both")
        self.params = params
        mu = V_EW if scale is None else float(scale)
        if not np.isfinite(mu) or mu <= 0.0:
            raise ValueError(f"renormalisation scale must be positive, got {scale!r}")
        self._scale = mu
        self._gradFD = gradientFunction(self.Vtot, eps=self.x_eps, Ndim=self.Ndim, order=4)
        self._hessFD = hessianFunction(self.Vtot, eps=self.x_eps, Ndim=self.Ndim, order=4)

    def __repr__(self):
        return f"{type(self).__name__}({self.params!r}, scale={self._scale:g})"

    # -- potential ----------------------------------------------------------

    def Vtot(self, X: ArrayLike, T: float) -> np.ndarray:
        """Total effective potential V(X, T) in GeV⁴, vectorised over X[..., :]."""
        raise NotImplementedError

    def gradV(self, X: ArrayLike, T: float) -> np.ndarray:
        """Field gradient of :meth:`Vtot`, shape ``X.shape``."""
        return self._gradFD(X, T)

    def d2V(self, X: ArrayLike, T: float) -> np.ndarray:
        """Field Hessian of :meth:`Vtot`, shape ``X.shape + (Ndim,)``."""
        return self._hessFD(X, T)

    # -- order parameter and fermion masses ----------------------------------

    def higgsMagnitude(self, X: ArrayLike) -> np.ndarray:
        """Norm of the field restricted to the order-parameter directions."""
        X = np.asarray(X, dtype=float)
        return np.sqrt(np.sum(X[..., list(self.higgsIndices)]**2, axis=-1))

    def cpPhase(self, species: str, X: ArrayLike) -> np.ndarray:
        """CP-violating phase of the species' mass. Zero unless a model injects one."""
        return np.zeros(np.shape(X)[:-1])

    def fermionMass(self, species: str, X: ArrayLike) -> np.ndarray:
        """
        Complex field-dependent mass of a fermion species.

        Parameters
        ----------
        species : {"top", "bottom", "tau"}
        X : array_like, shape (..., Ndim)

        Returns
        -------
        ndarray of complex, shape (...)
            ``m_f h(X)/v0 · exp(i θ_f(X))``.
        """
        if species not in FERMION_MASSES:
            raise ValueError(f"unknown fermion species {species!r}")
        h = self.higgsMagnitude(X)
        return FERMION_MASSES[species] * h / V_EW * np.exp(1j * self.cpPhase(species, X))

    # -- vacuum structure hints ----------------------------------------------

    @property
    def vevTree(self) -> np.ndarray:
        """Zero-temperature tree-level vacuum."""
        raise NotImplementedError

    @property
    def symmetricPoint(self) -> np.ndarray:
        return np.zeros(self.Ndim)

    @property
    def brokenSeed(self) -> np.ndarray:
        """Start point for the broken-phase minimisation."""
        return np.array(self.vevTree, dtype=float)

    def fieldBounds(self, T: Optional[float] = None) -> np.ndarray:
        """
        Search box for the minimiser, shape ``(Ndim, 2)``.

        The box extends to three times the zero-temperature VEV in each
        direction (at least ``V_EW``), on both sides of the origin.
        """
        B = 3.0 * np.maximum(np.abs(self.vevTree), V_EW)
        return np.column_stack([-B, B])

    # -- renormalisation scale and parameter vectors ---------------------------

    @property
    def scale(self) -> float:
        return self._scale

    def resetScale(self, mu: float) -> "PotentialModel":
        """Return a new model with the same parameters at renormalisation scale `mu`."""
        return type(self)(self.params, scale=mu)

    def parameterNames(self) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(self.params))

    def parameters(self) -> np.ndarray:
        return np.array([getattr(self.params, n) for n in self.parameterNames()], dtype=float)

    def countertermNames(self) -> Tuple[str, ...]:
        return ()

    def counterterms(self) -> np.ndarray:
        return np.zeros(0)

    def logParameters(self) -> None:
        log.info("%s at scale mu = %.4g GeV", self.modelName, self.scale)
        for n, p in zip(self.parameterNames(), self.parameters()):
            log.info("\t%s = %.6g", n, p)
        for n, p in zip(self.countertermNames(), self.counterterms()):
            log.info("\t%s = %.6g", n, p)

    # -- input rows ------------------------------------------------------------

    @classmethod
    def fromLegendRow(cls, legend: Sequence[str], row: Sequence[str],
                      scale: Optional[float] = None) -> "PotentialModel":
        """
        Build a model from one row of a tab-separated input file.

        Columns are matched by legend name (``legendAliases`` first, then the
        parameter field names). Unrelated columns are ignored; missing
        required parameters or non-numeric entries raise :class:`InputError`.
        """
        if len(legend) != len(row):
            raise InputError(f"row has {len(row)} columns but the legend has {len(legend)}")
        names = {f.name for f in fields(cls.Parameters)}
        values: Dict[str, float] = {}
        for key, entry in zip(legend, row):
            key = key.strip()
            target = cls.legendAliases.get(key, key if key in names else None)
            if target is None:
                continue
            try:
                values[target] = float(entry)
            except ValueError as err:
                raise InputError(f"column {key!r}: cannot parse {entry!r} as a number") from err
        missing = [n for n in cls.requiredParameters if n not in values]
        if missing:
            raise InputError(f"input row lacks parameter(s) {', '.join(missing)} for model {cls.modelName!r}")
        try:
            return cls(cls.Parameters(**values), scale=scale)
        except ValueError as err:
            raise InputError(f"invalid parameter point: {err}") from err


# ---------------------------------------------------------------------------
# Landau–Ginzburg toy model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LandauGinzburgParameters:
    D: float = 0.2
    E: float = 0.075
    lam: float = 0.1
    T0: float = 84.78
    cpPhase: float = 0.0    # top phase at the critical VEV (rad)

    def __post_init__(self):
        if not (self.D > 0 and self.lam > 0 and self.T0 > 0):
            raise ValueError("need D > 0, lam > 0 and T0 > 0")
        if self.E < 0:
            raise ValueError("need E >= 0")


class LandauGinzburgModel(PotentialModel):
    """
    Single-field toy potential

        V(φ, T) = D (T² - T0²) φ² - E T |φ|³ + λ/4 φ⁴.

    For E² < λ D the minima are degenerate at

        Tc = T0 / sqrt(1 - E²/(λD)),   φc = 2 E Tc / λ,

    and the zero-temperature VEV is T0 sqrt(2D/λ). A CP-violating phase of
    the fermion masses can be injected: θ_f(φ) = cpPhase · |φ| / φc, so the
    phase changes by ``cpPhase`` across a transition from 0 to φc.
    """

    modelName = "landau_ginzburg"
    Ndim = 1
    fieldNames = ("phi",)
    higgsIndices = (0,)
    vevLabels = ("omega_c",)
    Parameters = LandauGinzburgParameters
    legendAliases = {"lambda": "lam", "cp_phase": "cpPhase"}
    requiredParameters = ("D", "E", "lam", "T0")
    x_eps = 1e-3

    @classmethod
    def fromCritical(cls, Tc: float, vc: float, lam: float = 0.1, D: float = 0.2,
                     cpPhase: float = 0.0, scale: Optional[float] = None) -> "LandauGinzburgModel":
        """
        Model with prescribed critical temperature and critical VEV.

        Raises
        ------
        ValueError
            If the requested (Tc, vc) needs E² >= λD (no symmetric phase at any T).
        """
        if Tc <= 0 or vc <= 0:
            raise ValueError("Tc and vc must be positive")
        E = lam * vc / (2.0 * Tc)
        r = E * E / (lam * D)
        if r >= 1.0:
            raise ValueError(f"E^2/(lam D) = {r:.3g} >= 1: choose larger D or lam")
        T0 = Tc * np.sqrt(1.0 - r)
        return cls(LandauGinzburgParameters(D=D, E=E, lam=lam, T0=T0, cpPhase=cpPhase), scale=scale)

    @property
    def criticalTemperature(self) -> float:
        p = self.params
        return p.T0 / np.sqrt(1.0 - p.E**2 / (p.lam * p.D))

    @property
    def criticalVEV(self) -> float:
        p = self.params
        return 2.0 * p.E * self.criticalTemperature / p.lam

    @property
    def vevTree(self) -> np.ndarray:
        p = self.params
        return np.array([p.T0 * np.sqrt(2.0 * p.D / p.lam)])

    def Vtot(self, X, T):
        p = self.params
        phi = np.asarray(X, dtype=float)[..., 0]
        return (p.D * (T*T - p.T0**2) * phi**2
                - p.E * T * np.abs(phi)**3
                + 0.25 * p.lam * phi**4)

    def gradV(self, X, T):
        p = self.params
        phi = np.asarray(X, dtype=float)[..., 0]
        g = (2.0 * p.D * (T*T - p.T0**2) * phi
             - 3.0 * p.E * T * phi * np.abs(phi)
             + p.lam * phi**3)
        return g[..., None]

    def d2V(self, X, T):
        p = self.params
        phi = np.asarray(X, dtype=float)[..., 0]
        h = (2.0 * p.D * (T*T - p.T0**2)
             - 6.0 * p.E * T * np.abs(phi)
             + 3.0 * p.lam * phi**2)
        return h[..., None, None]

    def cpPhase(self, species, X):
        p = self.params
        if p.cpPhase == 0.0 or species != "top":
            return np.zeros(np.shape(X)[:-1])
        return p.cpPhase * self.higgsMagnitude(X) / self.criticalVEV

    def fieldBounds(self, T=None):
        B = 3.0 * self.vevTree[0]
        return np.array([[-B, B]])


# ---------------------------------------------------------------------------
# Vector dark matter model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VDMParameters:
    """
    Input parameters of the vector-dark-matter model.

    MH1, MH2 are the scalar masses (H1 mostly doublet), alpha the scalar
    mixing angle, MX the dark-photon mass and gX the hidden gauge coupling;
    the singlet VEV follows as vs = MX/gX. lambdaCP > 0 switches on the
    singlet-induced top phase θ_t = arctan(s/lambdaCP).
    """
    MH1: float = M_HIGGS
    MH2: float = 300.0
    MX: float = 500.0
    alpha: float = 0.1
    gX: float = 1.0
    lambdaCP: float = 0.0

    def __post_init__(self):
        if not (self.MH1 > 0 and self.MH2 > 0 and self.MX > 0 and self.gX > 0):
            raise ValueError("MH1, MH2, MX and gX must be positive")
        if self.lambdaCP < 0:
            raise ValueError("lambdaCP must be >= 0")

    @property
    def vs(self) -> float:
        return self.MX / self.gX


class VectorDarkMatterModel(PotentialModel):
    """
    SM Higgs doublet plus a complex singlet S charged under a hidden U(1)_X,
    in the (h, s) plane of the neutral CP-even VEVs:

        V0 = -μH²/2 h² + λH/4 h⁴ - μS²/2 s² + λS/4 s⁴ + κ/4 h² s²

    with the couplings fixed by (MH1, MH2, alpha, v, vs) and μH², μS² by the
    tadpole conditions. The one-loop Coleman–Weinberg potential (MS-bar,
    Landau gauge) of W, Z, X, the top, bottom and tau and the two CP-even
    scalars is added together with the counterterm potential that keeps the
    tree-level VEVs and masses at T = 0, and the one-loop thermal potential
    T⁴/(2π²) [Σ_b n_b J_b + Σ_f n_f J_f] of all species including the
    Goldstone modes.

    Goldstone modes are left out of the Coleman–Weinberg sum: their tree
    masses vanish at the vacuum. Their curvature enters the counterterms
    through the identity m_G² = (1/h) ∂V/∂h.
    """

    modelName = "vdm"
    Ndim = 2
    fieldNames = ("h", "s")
    higgsIndices = (0,)
    vevLabels = ("omega_c", "omega_sc")
    Parameters = VDMParameters
    legendAliases = {"lambda_CP": "lambdaCP"}
    requiredParameters = ("MH1", "MH2", "MX", "alpha", "gX")
    x_eps = 1e-2

    _ctNames = ("dmuHSq", "dlambdaH", "dkappa", "dmuSSq", "dlambdaS")

    def __init__(self, params=None, scale=None, **kwargs):
        super().__init__(params, scale=scale, **kwargs)
        p = self.params
        v, vs, ca, sa = V_EW, p.vs, np.cos(p.alpha), np.sin(p.alpha)
        self.lambdaH = (p.MH1**2 * ca**2 + p.MH2**2 * sa**2) / (2.0 * v**2)
        self.lambdaS = (p.MH2**2 * ca**2 + p.MH1**2 * sa**2) / (2.0 * vs**2)
        self.kappa = (p.MH1**2 - p.MH2**2) * sa * ca / (v * vs)
        self.muHSq = self.kappa * vs**2 / 2.0 + self.lambdaH * v**2
        self.muSSq = self.kappa * v**2 / 2.0 + self.lambdaS * vs**2

        self._g2 = (2.0 * M_W / V_EW)**2
        self._gz2 = (2.0 * M_Z / V_EW)**2   # g² + g'²
        self._yf2 = {f: 2.0 * (m / V_EW)**2 for f, m in FERMION_MASSES.items()}

        self._ct = self._calcCounterterms()

    # -- spectra -----------------------------------------------------------

    def _scalarMasses(self, h, s):
        muH, muS = self.muHSq, self.muSSq
        lH, lS, k = self.lambdaH, self.lambdaS, self.kappa
        a = -muH + 3.0*lH*h*h + 0.5*k*s*s
        c = -muS + 3.0*lS*s*s + 0.5*k*h*h
        b = k*h*s
        mid, rad = 0.5*(a + c), np.sqrt(0.25*(a - c)**2 + b*b)
        goldH = -muH + lH*h*h + 0.5*k*s*s
        goldS = -muS + lS*s*s + 0.5*k*h*h
        return mid + rad, mid - rad, goldH, goldS

    def bosonMasses(self, X) -> Tuple[list, list]:
        """
        Tree-level squared boson masses.

        Returns
        -------
        masses, meta : lists
            ``masses[i]`` has shape ``X.shape[:-1]``; ``meta[i]`` is
            ``(dof, c_CW, inColemanWeinberg)``.
        """
        X = np.asarray(X, dtype=float)
        h, s = X[..., 0], X[..., 1]
        mp, mm, gh, gs = self._scalarMasses(h, s)
        masses = [mp, mm, gh, gs,
                  0.25 * self._g2 * h*h,
                  0.25 * self._gz2 * h*h,
                  self.params.gX**2 * s*s]
        meta = [(1, 1.5, True), (1, 1.5, True), (3, 1.5, False), (1, 1.5, False),
                (6, 5.0/6.0, True), (3, 5.0/6.0, True), (3, 5.0/6.0, True)]
        return masses, meta

    def fermionMasses(self, X) -> Tuple[list, list]:
        """Squared Dirac fermion masses and their degrees of freedom."""
        h = np.asarray(X, dtype=float)[..., 0]
        dof = {"top": 12, "bottom": 12, "tau": 4}
        return [0.5 * self._yf2[f] * h*h for f in FERMION_SPECIES], [dof[f] for f in FERMION_SPECIES]

    # -- pieces of the potential -------------------------------------------------

    def V0(self, X):
        X = np.asarray(X, dtype=float)
        h, s = X[..., 0], X[..., 1]
        return (-0.5*self.muHSq*h*h + 0.25*self.lambdaH*h**4
                - 0.5*self.muSSq*s*s + 0.25*self.lambdaS*s**4
                + 0.25*self.kappa*h*h*s*s)

    def Vct(self, X):
        X = np.asarray(X, dtype=float)
        h, s = X[..., 0], X[..., 1]
        dmuH, dlH, dk, dmuS, dlS = self._ct
        return (-0.5*dmuH*h*h + 0.25*dlH*h**4
                - 0.5*dmuS*s*s + 0.25*dlS*s**4
                + 0.25*dk*h*h*s*s)

    def Vcw(self, X):
        """One-loop Coleman–Weinberg potential at the current scale."""
        mu2 = self.scale**2
        y = 0.0
        bm, meta = self.bosonMasses(X)
        for m2, (n, c, inCW) in zip(bm, meta):
            if inCW:
                y = y + n * m2*m2 * (_safe_log(m2, mu2) - c)
        fm, fdof = self.fermionMasses(X)
        for m2, n in zip(fm, fdof):
            y = y - n * m2*m2 * (_safe_log(m2, mu2) - 1.5)
        return y / _64pi2

    def Vthermal(self, X, T):
        """One-loop thermal potential; zero at T = 0."""
        if T <= 0.0:
            return np.zeros(np.shape(X)[:-1])
        T2 = T*T
        y = 0.0
        bm, meta = self.bosonMasses(X)
        for m2, (n, _, _) in zip(bm, meta):
            y = y + n * Jb(m2 / T2)
        fm, fdof = self.fermionMasses(X)
        for m2, n in zip(fm, fdof):
            y = y + n * Jf(m2 / T2)
        return y * T2*T2 / (2.0*np.pi**2)

    def Vtot(self, X, T):
        return self.V0(X) + self.Vct(X) + self.Vcw(X) + self.Vthermal(X, T)

    # -- counterterms ---------------------------------------------------------

    def _calcCounterterms(self) -> np.ndarray:
        """
        Counterterms fixing the tree-level VEVs and the scalar mass matrix:
        gradient and Hessian of V_CW + V_CT vanish at (v, vs).
        """
        v, vs = V_EW, self.params.vs
        vev = np.array([v, vs])
        grad = gradientFunction(self.Vcw, eps=self.x_eps, Ndim=2)(vev)
        H = hessianFunction(self.Vcw, eps=self.x_eps, Ndim=2)(vev)
        # Goldstone curvatures of the doublet and of the singlet
        HG_h = grad[0] / v
        HG_s = grad[1] / vs
        dmuHSq = 0.5 * (3.0*HG_h - H[0, 0] - H[0, 1]*vs/v)
        dlambdaH = 0.5 * (HG_h - H[0, 0]) / v**2
        dkappa = -H[0, 1] / (v*vs)
        dmuSSq = 0.5 * (3.0*HG_s - H[1, 1] - H[0, 1]*v/vs)
        dlambdaS = 0.5 * (HG_s - H[1, 1]) / vs**2
        ct = np.array([dmuHSq, dlambdaH, dkappa, dmuSSq, dlambdaS])
        log.debug("VDM counterterms at mu=%.4g: %s", self.scale, ct)
        return ct

    def countertermNames(self):
        return self._ctNames

    def counterterms(self):
        return self._ct.copy()

    # -- vacuum, phases, bounds -------------------------------------------------

    @property
    def vevTree(self):
        return np.array([V_EW, self.params.vs])

    @property
    def symmetricPoint(self):
        """h = 0 on the singlet axis; the origin is a saddle while s is broken."""
        return np.array([0.0, self.params.vs])

    def cpPhase(self, species, X):
        lcp = self.params.lambdaCP
        if lcp <= 0.0 or species != "top":
            return np.zeros(np.shape(X)[:-1])
        s = np.asarray(X, dtype=float)[..., 1]
        return np.arctan(s / lcp)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

MODELS: Dict[str, Type[PotentialModel]] = {
    "landau_ginzburg": LandauGinzburgModel,
    "lg": LandauGinzburgModel,
    "vdm": VectorDarkMatterModel,
}


def get_model(name: str) -> Type[PotentialModel]:
    """
    Model class registered under `name` (case insensitive).

    Raises
    ------
    ConfigurationError
        For an unknown model name.
    """
    try:
        return MODELS[str(name).lower()]
    except KeyError:
        raise ConfigurationError(
            f"unknown model {name!r}; available: {', '.join(sorted(MODELS))}") from None
