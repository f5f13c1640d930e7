"""
transportSolver
===============

Baryon asymmetry produced by a first-order electroweak transition with a
CP-violating phase in the fermion masses.

Given the transition point (Tc, symmetric and broken VEVs), the wall velocity
and the model, :class:`TransportSolver` builds a kink-shaped
:class:`TransportProfile` across the bubble wall,

    X(z) = X_sym + (X_brk - X_sym) w(z),   w(z) = (1 - tanh(z/LW)) / 2,

(symmetric phase at z > 0, in front of the wall) and, for every fermion
species f, solves the diffusion equation of its CP-odd chemical potential

    D_f μ'' + vw μ' - Γ_f(z) μ = -S_f(z),
    Γ_f = γ_f |m_f|² / T,    S_f = κ_f vw (|m_f|² θ_f')' / T²,

with μ and μ' continuous at the wall and μ decaying into both bulk phases.
Each (species, region) pair is described by one :class:`RegionCoefficients`
set and all of them are driven by the same stiff integrator
(``scipy.integrate.solve_ivp``). The unknown wall values μ(0), μ'(0) are found
by shooting; ``scipy.integrate.solve_bvp`` relaxation is the fallback.

The left-handed baryon chemical potential μ_BL = Σ_f w_f μ_f of each
transport method is converted into

    η = 405 Γ_ws / (4π² vw g* T) ∫ dz μ_BL(z) f_sph(z) exp(-ν|z|),
    ν = 45 Γ_ws / (4 vw),   f_sph = min(1, 2.4 T/Γ_ws exp(-40 h/T)).

The truncation distance is doubled until η is stable. Numerical failures
never propagate: they give an :class:`EtaResult` with NaN values and status
``NumericalFailure``.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, NamedTuple, Optional, Tuple

import numpy as np
import numpy.typing as npt
from scipy import integrate, interpolate
from scipy.integrate import simpson

from .config import TRANSPORT_METHODS, InputError, SpeciesParameters, TransportConfig
from .helper_functions import IntegrationError

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class EtaStatus(Enum):
    OK = "OK"
    NoTransition = "NoTransition"
    NumericalFailure = "NumericalFailure"


class Region(Enum):
    symmetric = "sym"
    broken = "brk"


class EtaResult(NamedTuple):
    """
    Baryon-to-entropy ratio of one transition.

    Parameters
    ----------
    eta :
        η of the primary (last configured) transport method.
    etas :
        η per transport method.
    wallWidth :
        Wall width LW (GeV⁻¹).
    perSpeciesPhases :
        CP phase θ_f of each species in each bulk phase, keyed by
        ``(species, "sym" | "brk")``.
    status :
        ``OK``, ``NoTransition`` or ``NumericalFailure``.
    truncation :
        Truncation factor n at which η converged.
    message :
        Diagnostic text.
    """
    eta: float
    etas: Dict[str, float]
    wallWidth: float
    perSpeciesPhases: Dict[Tuple[str, str], float]
    status: EtaStatus
    truncation: float = np.nan
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is EtaStatus.OK


def _sentinel(methods, LW=np.nan, phases=None, truncation=np.nan, message=""):
    return EtaResult(np.nan, {m: np.nan for m in methods}, LW, dict(phases or {}),
                     EtaStatus.NumericalFailure, truncation, message)


# ---------------------------------------------------------------------------
# Profile across the wall
# ---------------------------------------------------------------------------

def kink(z: npt.ArrayLike, LW: float) -> np.ndarray:
    """w(z) = (1 - tanh(z/LW))/2: 1 deep in the broken phase, 0 in the symmetric one."""
    return 0.5 * (1.0 - np.tanh(np.asarray(z, dtype=float) / LW))


def wallWidth(model, Tc: float, brokenVEV: np.ndarray, symmetricVEV: np.ndarray,
              npoints: int = 201) -> float:
    """
    Wall width LW = |ΔX| / sqrt(8 V_b).

    V_b is the barrier height of V(·, Tc) along the straight path between the
    two minima. Without a barrier the curvature scale 1/sqrt(λ_max) of the
    Hessian at the broken minimum is used.
    """
    dX = brokenVEV - symmetricVEV
    t = np.linspace(0.0, 1.0, npoints)[:, None]
    V = np.asarray(model.Vtot(symmetricVEV + t * dX, Tc), dtype=float)
    Vb = float(np.max(V) - max(V[0], V[-1]))
    dist = float(np.linalg.norm(dX))
    if np.isfinite(Vb) and Vb > 1e-12 * Tc**4 and dist > 0:
        return dist / np.sqrt(8.0 * Vb)
    ev = np.linalg.eigvalsh(np.atleast_2d(model.d2V(brokenVEV, Tc)))
    lmax = float(np.max(ev))
    log.debug("No barrier along the straight path at Tc=%.6g; LW from curvature %.6g", Tc, lmax)
    return 1.0 / np.sqrt(lmax) if lmax > 0 else 1.0 / Tc


@dataclass(frozen=True)
class SpeciesProfile:
    """
    Squared mass and CP phase of one species across the wall.

    Inside ``[-window, window]`` both are cubic splines of the tabulated
    values (``interpolate.splrep``); outside they take the bulk values.
    """
    species: str
    window: float
    m2Sym: float
    m2Brk: float
    thetaSym: float
    thetaBrk: float
    m2Tck: tuple
    thetaTck: tuple
    static: bool

    @classmethod
    def tabulate(cls, species: str, z: np.ndarray, masses: np.ndarray,
                 theta: np.ndarray) -> "SpeciesProfile":
        m2 = np.abs(masses)**2
        theta = np.asarray(theta, dtype=float)
        # a constant phase gives no source
        static = bool(np.ptp(theta) == 0.0)
        return cls(species, float(z[-1]), float(m2[-1]), float(m2[0]),
                   float(theta[-1]), float(theta[0]),
                   interpolate.splrep(z, m2, k=3, s=0), interpolate.splrep(z, theta, k=3, s=0),
                   static)

    def _eval(self, tck, z, der, sym, brk):
        z = np.asarray(z, dtype=float)
        inside = np.abs(z) <= self.window
        y = np.asarray(interpolate.splev(np.clip(z, -self.window, self.window), tck, der=der))
        if der == 0:
            outside = np.where(z > 0, sym, brk)
        else:
            outside = 0.0
        return np.where(inside, y, outside)

    def mass2(self, z, der: int = 0):
        return self._eval(self.m2Tck, z, der, self.m2Sym, self.m2Brk)

    def phase(self, z, der: int = 0):
        return self._eval(self.thetaTck, z, der, self.thetaSym, self.thetaBrk)

    def phaseSource(self, z):
        """(|m|² θ')'"""
        return self.mass2(z, 1) * self.phase(z, 1) + self.mass2(z) * self.phase(z, 2)


@dataclass(frozen=True)
class TransportProfile:
    """Read-only description of the wall at the critical temperature."""
    Tc: float
    vw: float
    symmetricVEV: np.ndarray
    brokenVEV: np.ndarray
    LW: float
    window: float
    z: np.ndarray
    fields: np.ndarray
    higgsIndices: Tuple[int, ...]
    species: Mapping[str, SpeciesProfile]

    @classmethod
    def build(cls, model, Tc, vw, brokenVEV, symmetricVEV, config: TransportConfig,
              species) -> "TransportProfile":
        LW = wallWidth(model, Tc, brokenVEV, symmetricVEV)
        window = config.profileWindow * LW
        z = np.linspace(-window, window, config.profilePoints)
        fields = symmetricVEV + kink(z, LW)[:, None] * (brokenVEV - symmetricVEV)
        sp = {f: SpeciesProfile.tabulate(f, z, model.fermionMass(f, fields), model.cpPhase(f, fields))
              for f in species}
        return cls(Tc, vw, symmetricVEV, brokenVEV, LW, window, z, fields,
                   tuple(model.higgsIndices), sp)

    def fieldsAt(self, z):
        w = kink(z, self.LW)
        return self.symmetricVEV + np.asarray(w)[..., None] * (self.brokenVEV - self.symmetricVEV)

    def higgsAt(self, z):
        X = self.fieldsAt(z)
        return np.sqrt(np.sum(X[..., list(self.higgsIndices)]**2, axis=-1))


# ---------------------------------------------------------------------------
# Coefficient sets, one per (species, region)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RegionCoefficients:
    """
    Coefficients of ``D μ'' + vw μ' - Γ(z) μ = -S(z)`` on one side of the wall.

    ``decay`` is the root of ``D λ² + vw λ - Γ_bulk = 0`` that decays into
    the bulk of the region and ``growth`` the other one. ``direction`` is
    +1 for the symmetric region (z > 0) and -1 for the broken one.
    """
    species: str
    region: Region
    diffusion: float
    vw: float
    T: float
    flip: float
    source: float
    profile: SpeciesProfile
    bulkRate: float
    decay: float
    growth: float
    direction: int

    @classmethod
    def build(cls, params: SpeciesParameters, region: Region, profile: SpeciesProfile,
              T: float, vw: float) -> "RegionCoefficients":
        D = params.diffusionDT / T
        m2 = profile.m2Sym if region is Region.symmetric else profile.m2Brk
        rate = params.flipCoefficient * m2 / T
        disc = np.sqrt(vw*vw + 4.0*D*rate)
        lplus, lminus = (-vw + disc) / (2.0*D), (-vw - disc) / (2.0*D)
        if region is Region.symmetric:
            decay, growth, direction = lminus, lplus, 1
        else:
            decay, growth, direction = lplus, lminus, -1
        return cls(params.name, region, D, vw, T, params.flipCoefficient,
                   params.sourceCoefficient * vw / T**2, profile, rate, decay, growth, direction)

    def rate(self, z):
        return self.flip * self.profile.mass2(z) / self.T

    def sourceTerm(self, z):
        return self.source * self.profile.phaseSource(z)

    def truncation(self, n: float, LW: float, growthCap: float) -> float:
        """Integration distance from the wall."""
        decayLength = 1.0 / abs(self.decay) if self.decay != 0 else LW
        L = n * max(LW, decayLength)
        if self.region is Region.broken and self.growth != 0:
            L = min(L, growthCap / abs(self.growth))
        return max(L, LW)

    def residual(self, mu, dmu):
        """Terminal condition μ' - λ μ, zero for a pure bulk-decaying solution."""
        return dmu - self.decay * mu

    def growingAmplitude(self, res, L):
        """Amplitude at the wall of the non-decaying mode implied by a terminal residual."""
        return res / ((self.growth - self.decay) * np.exp(self.growth * self.direction * L))


def _stackedSystem(coef: RegionCoefficients, withSource: np.ndarray):
    """RHS and Jacobian for k copies of the 2-d system; copy i carries the source if withSource[i]."""
    k = len(withSource)
    src = np.asarray(withSource, dtype=float)
    D, vw = coef.diffusion, coef.vw

    def rhs(z, y):
        y = y.reshape(k, 2)
        G, S = coef.rate(z), coef.sourceTerm(z)
        out = np.empty_like(y)
        out[:, 0] = y[:, 1]
        out[:, 1] = (-vw * y[:, 1] + G * y[:, 0] - src * S) / D
        return out.ravel()

    def jac(z, y):
        J = np.zeros((2*k, 2*k))
        G = coef.rate(z)
        for i in range(k):
            J[2*i, 2*i + 1] = 1.0
            J[2*i + 1, 2*i] = G / D
            J[2*i + 1, 2*i + 1] = -vw / D
        return J

    return rhs, jac


def integrateRegion(coef: RegionCoefficients, L: float, Y0: np.ndarray,
                    withSource, config: TransportConfig, firstStep: float):
    """
    Integrate k copies of the region's system from the wall to ``direction·L``.

    Raises
    ------
    IntegrationError
        If the stiff integrator fails or produces non-finite values.
    """
    rhs, jac = _stackedSystem(coef, np.asarray(withSource))
    zEnd = coef.direction * L
    sol = integrate.solve_ivp(rhs, (0.0, zEnd), np.asarray(Y0, dtype=float).ravel(),
                              method=config.odeMethod, jac=jac, rtol=config.rtol,
                              atol=config.atol, dense_output=True,
                              first_step=min(firstStep, L / 10.0))
    if not sol.success:
        raise IntegrationError(f"{coef.species}/{coef.region.value}: {sol.message}")
    if not np.all(np.isfinite(sol.y)):
        raise IntegrationError(f"{coef.species}/{coef.region.value}: non-finite solution")
    return sol


class SpeciesState(NamedTuple):
    """Solved chemical potential of one species on both sides of the wall."""
    species: str
    coefficients: Dict[Region, RegionCoefficients]
    z: Dict[Region, np.ndarray]
    mu: Dict[Region, np.ndarray]
    lengths: Dict[Region, float]
    solver: str


# ---------------------------------------------------------------------------
# The solver
# ---------------------------------------------------------------------------

class TransportSolver:
    """
    Transport equations and baryon asymmetry.

    Parameters
    ----------
    config : TransportConfig, optional
        Transport methods, solver choice and tolerances.

    Examples
    --------
    >>> solver = TransportSolver()
    >>> res = solver.calcEta(0.1, pt.brokenVEV, pt.symmetricVEV, pt.Tc, model)
    >>> res.eta, res.etas["top"]
    """

    def __init__(self, config: Optional[TransportConfig] = None):
        self.config = config or TransportConfig()

    # -- input -------------------------------------------------------------

    @staticmethod
    def validate(vw, brokenVEV, symmetricVEV, Tc, model):
        try:
            vw = float(vw)
            Tc = float(Tc)
        except (TypeError, ValueError) as err:
            raise InputError(f"wall velocity and Tc must be numbers: {err}") from err
        if not (np.isfinite(vw) and 0.0 < vw < 1.0):
            raise InputError(f"wall velocity must lie in (0, 1), got {vw}")
        if not (np.isfinite(Tc) and Tc > 0.0):
            raise InputError(f"critical temperature must be positive and finite, got {Tc}")
        out = []
        for name, X in (("brokenVEV", brokenVEV), ("symmetricVEV", symmetricVEV)):
            X = np.asarray(X, dtype=float).reshape(-1)
            if X.shape != (model.Ndim,):
                raise InputError(f"{name} has {X.size} components, model has Ndim={model.Ndim}")
            if not np.all(np.isfinite(X)):
                raise InputError(f"{name} is not finite: {X}")
            out.append(X)
        return vw, out[0], out[1], Tc

    # -- one species ---------------------------------------------------------

    def _shoot(self, coefs: Dict[Region, RegionCoefficients], lengths, firstStep):
        cfg = self.config
        regions = (Region.symmetric, Region.broken)

        # superposition: particular solution + the two homogeneous ones
        J = np.empty((2, 2))
        r0 = np.empty(2)
        for i, reg in enumerate(regions):
            c, L = coefs[reg], lengths[reg]
            sol = integrateRegion(c, L, np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]]),
                                  [True, False, False], cfg, firstStep)
            yL = sol.y[:, -1].reshape(3, 2)
            res = c.residual(yL[:, 0], yL[:, 1])
            r0[i] = res[0]
            J[i] = res[1:]
        try:
            y0 = np.linalg.solve(J, -r0)
        except np.linalg.LinAlgError as err:
            raise IntegrationError(f"{coefs[Region.symmetric].species}: singular shooting matrix") from err

        for it in range(cfg.maxNewton + 1):
            sols, r, err = {}, np.empty(2), 0.0
            for i, reg in enumerate(regions):
                c, L = coefs[reg], lengths[reg]
                sol = integrateRegion(c, L, y0[None, :], [True], cfg, firstStep)
                sols[reg] = sol
                r[i] = c.residual(sol.y[0, -1], sol.y[1, -1])
                scale = max(float(np.max(np.abs(sol.y[0]))), np.finfo(float).tiny)
                err = max(err, abs(c.growingAmplitude(r[i], L)) / scale)
            if err < cfg.shootingTol:
                log.debug("%s: shooting converged after %d corrections (residual %.3g)",
                          coefs[Region.symmetric].species, it, err)
                return sols
            y0 = y0 + np.linalg.solve(J, -r)
        raise IntegrationError(f"{coefs[Region.symmetric].species}: shooting residual {err:.3g} "
                               f"above tolerance after {cfg.maxNewton} corrections")

    def _relax(self, coefs: Dict[Region, RegionCoefficients], lengths, window):
        """Collocation on [-L_b, L_s] with the terminal conditions at both ends."""
        cfg = self.config
        cs, cb = coefs[Region.symmetric], coefs[Region.broken]
        Ls, Lb = lengths[Region.symmetric], lengths[Region.broken]
        D, vw = cs.diffusion, cs.vw
        w = min(window, Ls, Lb)
        half = cfg.relaxationNodes // 2
        x = np.unique(np.concatenate([np.linspace(-Lb, Ls, half),
                                      np.linspace(-w, w, half)]))

        def fun(z, y):
            # rate and source do not depend on the region
            return np.vstack([y[1], (-vw * y[1] + cs.rate(z) * y[0] - cs.sourceTerm(z)) / D])

        def fun_jac(z, y):
            J = np.zeros((2, 2, z.size))
            J[0, 1] = 1.0
            J[1, 0] = cs.rate(z) / D
            J[1, 1] = -vw / D
            return J

        def bc(ya, yb):
            return np.array([cb.residual(ya[0], ya[1]), cs.residual(yb[0], yb[1])])

        sol = integrate.solve_bvp(fun, bc, x, np.zeros((2, x.size)), fun_jac=fun_jac,
                                  tol=cfg.relaxationTol, max_nodes=100 * cfg.relaxationNodes)
        if not sol.success:
            raise IntegrationError(f"{cs.species}: relaxation failed ({sol.message})")
        return sol

    def solveSpecies(self, species: str, profile: TransportProfile, n: float) -> SpeciesState:
        """
        Chemical potential of `species` for truncation factor `n`.

        Shooting is tried first (unless ``solver="relaxation"``); relaxation
        is the fallback.
        """
        cfg = self.config
        params = cfg.speciesParameters(species)
        sp = profile.species[species]
        coefs = {reg: RegionCoefficients.build(params, reg, sp, profile.Tc, profile.vw)
                 for reg in (Region.symmetric, Region.broken)}
        lengths = {reg: c.truncation(n, profile.LW, cfg.growthCap) for reg, c in coefs.items()}
        grids = {reg: self._grid(lengths[reg], profile.window) * c.direction
                 for reg, c in coefs.items()}

        if sp.static:
            # no source: μ vanishes identically
            mu = {reg: np.zeros_like(g) for reg, g in grids.items()}
            return SpeciesState(species, coefs, grids, mu, lengths, "none")

        solver = cfg.solver
        if solver == "shooting":
            try:
                sols = self._shoot(coefs, lengths, firstStep=profile.LW / 20.0)
                mu = {reg: sols[reg].sol(grids[reg])[0] for reg in grids}
                return SpeciesState(species, coefs, grids, mu, lengths, "shooting")
            except IntegrationError as err:
                log.debug("%s: %s; falling back to relaxation", species, err)
                solver = "relaxation"
        sol = self._relax(coefs, lengths, profile.window)
        mu = {reg: sol.sol(grids[reg])[0] for reg in grids}
        return SpeciesState(species, coefs, grids, mu, lengths, "relaxation")

    @staticmethod
    def _grid(L: float, window: float, npts: int = 600) -> np.ndarray:
        """Distances from the wall, dense inside the profile window."""
        w = min(window, L)
        g = np.linspace(0.0, w, npts)
        if L > w:
            g = np.concatenate([g, np.linspace(w, L, npts)[1:]])
        return g

    # -- eta -------------------------------------------------------------------

    def sphaleronFactor(self, h, T):
        cfg = self.config
        return np.minimum(1.0, 2.4 / cfg.sphaleronRate * np.exp(-cfg.sphaleronSuppression * h / T))

    def speciesIntegral(self, state: SpeciesState, profile: TransportProfile) -> float:
        """∫ dz μ_f(z) f_sph(z) exp(-ν|z|), including the analytic bulk tails."""
        cfg = self.config
        T = profile.Tc
        nu = 45.0 * cfg.sphaleronRate * T / (4.0 * profile.vw)
        total = 0.0
        for reg, z in state.z.items():
            mu = state.mu[reg]
            fsph = self.sphaleronFactor(profile.higgsAt(z), T)
            integrand = mu * fsph * np.exp(-nu * np.abs(z))
            part = simpson(integrand[::-1], x=z[::-1]) if reg is Region.broken else simpson(integrand, x=z)
            # beyond the truncation μ follows the bulk decaying mode
            c, L = state.coefficients[reg], state.lengths[reg]
            tail = mu[-1] * fsph[-1] * np.exp(-nu * L) / (nu + abs(c.decay))
            total += float(part) + float(tail)
        return total

    def etasAtTruncation(self, profile: TransportProfile, n: float, species=None) -> Dict[str, float]:
        """η of every configured method for truncation factor `n`."""
        species = self.config.activeSpecies() if species is None else species
        cfg = self.config
        T, vw = profile.Tc, profile.vw
        if cfg.workers > 1 and len(species) > 1:
            with ThreadPoolExecutor(max_workers=cfg.workers) as pool:
                states = list(pool.map(lambda f: self.solveSpecies(f, profile, n), species))
        else:
            states = [self.solveSpecies(f, profile, n) for f in species]
        integrals = {s.species: self.speciesIntegral(s, profile) for s in states}
        pref = 405.0 * cfg.sphaleronRate * T / (4.0 * np.pi**2 * vw * cfg.gStar * T)
        etas = {}
        for m in cfg.methods:
            muBL = sum(cfg.speciesParameters(f).baryonWeight * integrals[f] for f in TRANSPORT_METHODS[m])
            etas[m] = pref * muBL
        return etas

    def calcEta(self, vw, brokenVEV, symmetricVEV, Tc, model) -> EtaResult:
        """
        Baryon-to-entropy ratio for one transition.

        Parameters
        ----------
        vw : float
            Wall velocity, 0 < vw < 1.
        brokenVEV, symmetricVEV : array_like
            Degenerate minima at `Tc`.
        Tc : float
            Critical temperature (GeV).
        model :
            The :class:`~.models.PotentialModel` of the transition.

        Returns
        -------
        EtaResult

        Raises
        ------
        InputError
            For an unphysical wall velocity, temperature or VEVs.
        """
        cfg = self.config
        vw, brk, sym, Tc = self.validate(vw, brokenVEV, symmetricVEV, Tc, model)
        species = cfg.activeSpecies()
        phases = {}
        for f in species:
            phases[(f, Region.symmetric.value)] = float(model.cpPhase(f, sym[None, :])[0])
            phases[(f, Region.broken.value)] = float(model.cpPhase(f, brk[None, :])[0])

        dh = abs(float(model.higgsMagnitude(brk) - model.higgsMagnitude(sym)))
        if dh == 0.0:
            log.info("Order parameter does not change across the wall: eta = 0")
            return EtaResult(0.0, {m: 0.0 for m in cfg.methods}, np.nan, phases,
                             EtaStatus.OK, np.nan, "no conversion across the wall")

        LW = np.nan
        n = cfg.truncationFactor
        try:
            profile = TransportProfile.build(model, Tc, vw, brk, sym, cfg, species)
            LW = profile.LW
            etas = self.etasAtTruncation(profile, n, species)
            for k in range(cfg.maxDoublings):
                n2 = 2.0 * n
                etas2 = self.etasAtTruncation(profile, n2, species)
                prev, new = etas[cfg.primaryMethod], etas2[cfg.primaryMethod]
                log.debug("truncation n=%g: eta=%.6g, n=%g: eta=%.6g", n, prev, n2, new)
                etas, n = etas2, n2
                if abs(new - prev) <= cfg.convergenceFraction * abs(prev) or new == prev:
                    break
            else:
                raise IntegrationError(
                    f"eta not converged after {cfg.maxDoublings} doublings of the truncation")
        except (IntegrationError, np.linalg.LinAlgError, FloatingPointError, ValueError) as err:
            log.warning("Transport failed (Tc=%.6g, vw=%.3g): %s", Tc, vw, err)
            return _sentinel(cfg.methods, LW, phases, n, str(err))

        if not all(np.isfinite(v) for v in etas.values()):
            log.warning("Transport produced non-finite eta (Tc=%.6g, vw=%.3g)", Tc, vw)
            return _sentinel(cfg.methods, LW, phases, n, "non-finite eta")

        eta = etas[cfg.primaryMethod]
        log.info("eta = %.6g (%s), LW = %.4g GeV^-1, truncation n = %g",
                 eta, cfg.primaryMethod, LW, n)
        return EtaResult(float(eta), {m: float(v) for m, v in etas.items()}, float(LW),
                         phases, EtaStatus.OK, float(n), "")

    def calcEtaForTransition(self, point, vw, model) -> EtaResult:
        """
        :meth:`calcEta` for a :class:`~.transitionFinder.PhaseTransitionPoint`.

        Returns a zero result with status ``NoTransition`` when the point
        was not found.
        """
        if not point.found:
            methods = self.config.methods
            return EtaResult(0.0, {m: 0.0 for m in methods}, np.nan, {},
                             EtaStatus.NoTransition, np.nan, point.message)
        return self.calcEta(vw, point.brokenVEV, point.symmetricVEV, point.Tc, model)


def calcEta(vw, brokenVEV, symmetricVEV, Tc, model,
            config: Optional[TransportConfig] = None) -> EtaResult:
    """Functional entry point: ``TransportSolver(config).calcEta(...)``."""
    return TransportSolver(config).calcEta(vw, brokenVEV, symmetricVEV, Tc, model)
