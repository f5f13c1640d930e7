"""
config
======

Run configuration and the error taxonomy shared by the whole package.

A run is configured by a JSON file with (all optional) sections::

    {
      "model": "vdm",
      "vw": 0.1,
      "minimizer": {"xtol": 1e-6, "seed": 12345, ...},
      "finder":    {"Thigh": 300.0, "Tlow": 10.0, "nScan": 60, ...},
      "transport": {"methods": ["top", "top_bot", "top_bot_tau"],
                    "solver": "shooting", "species": {"top": {"diffusionDT": 6.0}}, ...}
    }

The file is read once by :func:`load_config` and turned into frozen
dataclasses. Unknown keys, unknown transport methods or solvers and
out-of-range values raise :class:`ConfigurationError`.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple, Union

log = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Bad configuration file, option value or model selection. Fatal for the run."""
    pass


class InputError(Exception):
    """Missing/malformed input row, missing file or unphysical input values."""
    pass


# ---------------------------------------------------------------------------
# Transport species and methods
# ---------------------------------------------------------------------------

SPECIES = ("top", "bottom", "tau")

# species entering mu_BL for each transport method
TRANSPORT_METHODS: Dict[str, Tuple[str, ...]] = {
    "top": ("top",),
    "top_bot": ("top", "bottom"),
    "top_bot_tau": ("top", "bottom", "tau"),
}

SOLVERS = ("shooting", "relaxation")
ODE_METHODS = ("Radau", "BDF", "LSODA")


@dataclass(frozen=True)
class SpeciesParameters:
    """
    Transport coefficients of one fermion species.

    Attributes
    ----------
    name :
        Species name (``"top"``, ``"bottom"`` or ``"tau"``).
    diffusionDT :
        Dimensionless D·T; the diffusion constant is ``diffusionDT / T``.
    flipCoefficient :
        γ in the helicity-flip rate Γ(z) = γ |m(z)|² / T.
    sourceCoefficient :
        κ in the CP-violating source S(z) = κ vw (|m|² θ')' / T².
    baryonWeight :
        Weight of the species' chemical potential in mu_BL.
    """
    name: str
    diffusionDT: float
    flipCoefficient: float = 0.05
    sourceCoefficient: float = 1.0
    baryonWeight: float = 1.0


DEFAULT_SPECIES: Tuple[SpeciesParameters, ...] = (
    SpeciesParameters("top", diffusionDT=6.0, baryonWeight=1.0),
    SpeciesParameters("bottom", diffusionDT=6.0, baryonWeight=1.0),
    SpeciesParameters("tau", diffusionDT=100.0, baryonWeight=1.0/3.0),
)


# ---------------------------------------------------------------------------
# Option blocks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MinimizerConfig:
    """Tolerances and budgets of :mod:`.minimizer`."""
    xtol: float = 1e-5          # relative position tolerance (scaled by max(|x|, 1))
    ftol: float = 1e-8          # relative value tolerance (scaled by max(|V|, T^4, 1))
    hessTol: float = 1e-6       # relative eigenvalue tolerance for Degenerate / saddle
    maxiter: int = 2000
    maxfev: int = 4000
    maxAttempts: int = 4
    perturbation: float = 0.05  # relative size of retry perturbations
    seed: int = 12345
    workers: int = 1

    def __post_init__(self):
        _require(self.xtol > 0 and self.ftol > 0 and self.hessTol > 0,
                 "minimizer tolerances must be positive")
        _require(self.maxiter > 0 and self.maxfev > 0, "minimizer budgets must be positive")
        _require(self.maxAttempts >= 1, "maxAttempts must be >= 1")
        _require(self.workers >= 1, "workers must be >= 1")


@dataclass(frozen=True)
class FinderConfig:
    """Temperature scan and bisection options of :mod:`.transitionFinder`."""
    Thigh: float = 300.0
    Tlow: float = 0.0
    nScan: int = 61
    Ttol: float = 1e-3
    dVtol: float = 1e-10        # |ΔV| tolerance in units of T^4
    vevTol: float = 1e-2        # phases are distinct when |Δx| > vevTol * max(T, 1)
    maxBisections: int = 60
    workers: int = 1

    def __post_init__(self):
        _require(self.Thigh > self.Tlow >= 0.0, "need Thigh > Tlow >= 0")
        _require(self.nScan >= 2, "nScan must be >= 2")
        _require(self.Ttol > 0 and self.dVtol > 0 and self.vevTol > 0,
                 "finder tolerances must be positive")
        _require(self.maxBisections >= 1, "maxBisections must be >= 1")
        _require(self.workers >= 1, "workers must be >= 1")


@dataclass(frozen=True)
class TransportConfig:
    """
    Transport method selection and numerical tolerances of
    :mod:`.transportSolver`.
    """
    methods: Tuple[str, ...] = tuple(TRANSPORT_METHODS)
    solver: str = "shooting"
    odeMethod: str = "Radau"
    rtol: float = 1e-8
    atol: float = 1e-14
    shootingTol: float = 1e-6
    maxNewton: int = 4
    truncationFactor: float = 10.0
    growthCap: float = 15.0
    convergenceFraction: float = 0.05
    maxDoublings: int = 3
    profileWindow: float = 12.0
    profilePoints: int = 1201
    relaxationNodes: int = 600
    relaxationTol: float = 1e-6
    gStar: float = 106.75
    sphaleronRate: float = 1e-6          # Γ_ws / T
    sphaleronSuppression: float = 40.0   # f_sph = min(1, 2.4 T/Γ_ws exp(-c h/T))
    species: Tuple[SpeciesParameters, ...] = DEFAULT_SPECIES
    workers: int = 1

    def __post_init__(self):
        if isinstance(self.methods, str):
            object.__setattr__(self, "methods", (self.methods,))
        else:
            object.__setattr__(self, "methods", tuple(self.methods))
        _require(len(self.methods) > 0, "at least one transport method is required")
        for m in self.methods:
            _require(m in TRANSPORT_METHODS,
                     f"unknown transport method {m!r}; choose from {sorted(TRANSPORT_METHODS)}")
        _require(self.solver in SOLVERS, f"unknown solver {self.solver!r}; choose from {SOLVERS}")
        _require(self.odeMethod in ODE_METHODS,
                 f"unknown ODE method {self.odeMethod!r}; choose from {ODE_METHODS}")
        _require(self.rtol > 0 and self.atol > 0 and self.shootingTol > 0,
                 "integration tolerances must be positive")
        _require(self.truncationFactor > 0 and self.growthCap > 0,
                 "truncation lengths must be positive")
        _require(0 < self.convergenceFraction < 1, "convergenceFraction must be in (0, 1)")
        _require(self.maxDoublings >= 1, "maxDoublings must be >= 1")
        _require(self.profileWindow > 0 and self.profilePoints >= 11,
                 "profileWindow must be positive and profilePoints >= 11")
        _require(self.gStar > 0 and self.sphaleronRate > 0, "gStar and sphaleronRate must be positive")
        _require(self.workers >= 1, "workers must be >= 1")
        names = [s.name for s in self.species]
        for m in self.methods:
            for s in TRANSPORT_METHODS[m]:
                _require(s in names, f"transport method {m!r} needs species {s!r}")

    @property
    def primaryMethod(self) -> str:
        """The last configured method, the most complete one by convention."""
        return self.methods[-1]

    def speciesParameters(self, name: str) -> SpeciesParameters:
        for s in self.species:
            if s.name == name:
                return s
        raise ConfigurationError(f"no transport parameters for species {name!r}")

    def activeSpecies(self) -> Tuple[str, ...]:
        """Species needed by at least one configured method, in canonical order."""
        needed = {s for m in self.methods for s in TRANSPORT_METHODS[m]}
        return tuple(s for s in SPECIES if s in needed)


@dataclass(frozen=True)
class RunConfig:
    """Complete configuration of a batch run."""
    model: str = "landau_ginzburg"
    vw: float = 0.1
    minimizer: MinimizerConfig = field(default_factory=MinimizerConfig)
    finder: FinderConfig = field(default_factory=FinderConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)

    def __post_init__(self):
        _require(0.0 < self.vw < 1.0, f"wall velocity must lie in (0, 1), got {self.vw}")


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigurationError(msg)


def _build(cls, data: Mapping[str, Any], section: str):
    """Instantiate the dataclass `cls` from `data`, rejecting unknown keys."""
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"section {section!r} must be a JSON object")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"unknown key(s) in {section!r}: {', '.join(unknown)}")
    try:
        return cls(**data)
    except TypeError as err:
        raise ConfigurationError(f"invalid value in {section!r}: {err}") from err


def _build_species(data: Mapping[str, Any]) -> Tuple[SpeciesParameters, ...]:
    """Species overrides are merged into the defaults by name."""
    if not isinstance(data, Mapping):
        raise ConfigurationError("section 'transport.species' must be a JSON object")
    out = []
    for sp in DEFAULT_SPECIES:
        override = data.get(sp.name, {})
        if not isinstance(override, Mapping):
            raise ConfigurationError(f"species {sp.name!r} must be a JSON object")
        if "name" in override:
            raise ConfigurationError("species name cannot be overridden")
        known = {f.name for f in fields(SpeciesParameters)} - {"name"}
        unknown = sorted(set(override) - known)
        if unknown:
            raise ConfigurationError(f"unknown key(s) for species {sp.name!r}: {', '.join(unknown)}")
        out.append(replace(sp, **override))
    extra = sorted(set(data) - set(SPECIES))
    if extra:
        raise ConfigurationError(f"unknown species: {', '.join(extra)}")
    return tuple(out)


def config_from_dict(data: Mapping[str, Any]) -> RunConfig:
    """
    Build a :class:`RunConfig` from an already-parsed mapping.

    Raises
    ------
    ConfigurationError
        On unknown sections/keys or invalid values.
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError("configuration must be a JSON object")
    allowed = {"model", "vw", "minimizer", "finder", "transport"}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigurationError(f"unknown configuration section(s): {', '.join(unknown)}")

    transport = dict(data.get("transport", {}))
    if "species" in transport:
        transport["species"] = _build_species(transport["species"])
    if "methods" in transport and isinstance(transport["methods"], list):
        transport["methods"] = tuple(transport["methods"])

    kwargs: Dict[str, Any] = dict(
        minimizer=_build(MinimizerConfig, data.get("minimizer", {}), "minimizer"),
        finder=_build(FinderConfig, data.get("finder", {}), "finder"),
        transport=_build(TransportConfig, transport, "transport"),
    )
    if "model" in data:
        if not isinstance(data["model"], str):
            raise ConfigurationError("'model' must be a string")
        kwargs["model"] = data["model"]
    if "vw" in data:
        try:
            kwargs["vw"] = float(data["vw"])
        except (TypeError, ValueError) as err:
            raise ConfigurationError(f"invalid wall velocity: {data['vw']!r}") from err
    return RunConfig(**kwargs)


def load_config(path: Optional[Union[str, os.PathLike]] = None) -> RunConfig:
    """
    Read a JSON configuration file once and return the frozen run configuration.

    Parameters
    ----------
    path : str or path-like, optional
        Location of the JSON file. ``None`` returns the defaults.

    Raises
    ------
    ConfigurationError
        If the file is missing, is not valid JSON or contains invalid options.
    """
    if path is None:
        return RunConfig()
    path = os.fspath(path)
    if not os.path.isfile(path):
        raise ConfigurationError(f"configuration file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as err:
            raise ConfigurationError(f"{path}: invalid JSON ({err})") from err
    cfg = config_from_dict(data)
    log.info("Loaded configuration from %s (model=%s, methods=%s, solver=%s)",
             path, cfg.model, ",".join(cfg.transport.methods), cfg.transport.solver)
    return cfg
