"""
batch
=====

Command-line batch driver.

Reads a tab-separated input file whose first line is a legend, builds one
model per selected data line, runs the phase-transition finder and the
transport solver and appends the results to the input row::

    baryotransitions vdm points.tsv results.tsv --line 2 3 4 --config run.json

The model name may be left out; the ``model`` key of the configuration file
(default ``landau_ginzburg``) is used then.

Lines are counted from 1 (line 1 is the legend). Every requested line gets
an output row carrying a status flag, also when the transition is not found
or the transport fails. With ``--mu-steps N`` each point is evaluated at N
renormalisation scales mu = (1/2 + step/N) v0 and produces N rows.
"""

from __future__ import annotations

import argparse
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import ConfigurationError, InputError, RunConfig, load_config
from .models import V_EW, PotentialModel, get_model
from .transitionFinder import PhaseTransitionPoint, findCriticalTemperature
from .transportSolver import EtaResult, TransportSolver

log = logging.getLogger(__name__)

SEP = "\t"
PHASE_COLUMNS = (("top", "sym"), ("top", "brk"), ("bottom", "sym"),
                 ("bottom", "brk"), ("tau", "sym"), ("tau", "brk"))
_SHORT = {"top": "top", "bottom": "bot", "tau": "tau"}


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

def readInput(path: str, lines: Optional[Sequence[int]] = None) -> Tuple[List[str], Dict[int, List[str]]]:
    """
    Legend and selected data rows of a tab-separated file.

    Parameters
    ----------
    path :
        Input file.
    lines :
        1-based line numbers of the data rows (>= 2). ``None`` selects all
        non-empty data lines.

    Raises
    ------
    InputError
        If the file is missing or empty, or a requested line does not exist.
    """
    if not os.path.isfile(path):
        raise InputError(f"input file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        content = [ln.rstrip("\r\n") for ln in f]
    if not content or not content[0].strip():
        raise InputError(f"{path}: missing legend line")
    legend = content[0].split(SEP)
    if lines is None:
        lines = [i for i in range(2, len(content) + 1) if content[i - 1].strip()]
    rows = {}
    for ln in lines:
        if ln < 2:
            raise InputError(f"line {ln}: data lines start at 2 (line 1 is the legend)")
        if ln > len(content) or not content[ln - 1].strip():
            raise InputError(f"{path}: no data on line {ln}")
        rows[ln] = content[ln - 1].split(SEP)
    return legend, rows


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

def _fmt(x) -> str:
    if isinstance(x, str):
        return x
    return f"{float(x):.10g}"


def outputLegend(modelClass, cfg: RunConfig, legend: Sequence[str], muSteps: int = 0) -> List[str]:
    """Input legend followed by the result column names."""
    suffix = "_mu" if muSteps else ""
    cols = list(legend)
    if muSteps:
        cols += ["mu_factor", "mu"]
    cols += [c + suffix for c in ["T_c", "v_c", "v_c/T_c", *modelClass.vevLabels]]
    cols += ["StatusFlag", "vw", "L_W"]
    cols += [f"{_SHORT[f]}_{r}_phase" for f, r in PHASE_COLUMNS]
    cols += [f"eta_{m}" + ("_muvar" if muSteps else "") for m in cfg.transport.methods]
    cols += ["EtaStatus"]
    return cols


def resultColumns(model: PotentialModel, cfg: RunConfig, pt: PhaseTransitionPoint,
                  eta: EtaResult) -> List[str]:
    cols = [pt.Tc, pt.vc if pt.found else np.nan, pt.strength, *pt.brokenVEV]
    cols += [pt.statusFlag.value, cfg.vw, eta.wallWidth]
    cols += [eta.perSpeciesPhases.get((f, r), np.nan) for f, r in PHASE_COLUMNS]
    cols += [eta.etas.get(m, np.nan) for m in cfg.transport.methods]
    cols += [eta.status.value]
    return [_fmt(c) for c in cols]


def failureColumns(model, cfg: RunConfig, flag: str) -> List[str]:
    """Columns of a row whose model could not be built or evaluated."""
    n = 3 + len(model.vevLabels)
    cols = [np.nan] * n + [flag, cfg.vw, np.nan] + [np.nan] * len(PHASE_COLUMNS)
    cols += [np.nan] * len(cfg.transport.methods) + [flag]
    return [_fmt(c) for c in cols]


class ResultWriter:
    """Line-oriented output sink shared by the worker threads."""

    def __init__(self, stream):
        self.stream = stream
        self._lock = threading.Lock()

    def write(self, fields: Sequence[str]) -> None:
        line = SEP.join(fields) + "\n"
        with self._lock:
            self.stream.write(line)
            self.stream.flush()


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def evaluate(model: PotentialModel, cfg: RunConfig) -> Tuple[PhaseTransitionPoint, EtaResult]:
    """Critical point and baryon asymmetry of one model."""
    pt = findCriticalTemperature(model, cfg.finder, cfg.minimizer)
    eta = TransportSolver(cfg.transport).calcEtaForTransition(pt, cfg.vw, model)
    return pt, eta


def _muColumns(step: int, muSteps: int, scale: Optional[float] = None) -> List[str]:
    if not muSteps:
        return []
    factor = 0.5 + step / muSteps
    return [_fmt(factor), _fmt(factor * V_EW if scale is None else scale)]


def runPoint(modelClass, cfg: RunConfig, legend: Sequence[str], line: int,
             row: Sequence[str], writer: ResultWriter, muSteps: int = 0) -> int:
    """
    Evaluate one input row and write its output row(s).

    Returns the number of rows written. Input errors of the row are logged
    and recorded as ``InputError`` in the status columns; any other error
    raised while evaluating a scale step is logged with its traceback and
    recorded as ``NumericalFailure``.
    """
    nrows = max(muSteps, 1)
    try:
        model = modelClass.fromLegendRow(legend, row)
    except InputError as err:
        log.error("line %d: %s", line, err)
        for step in range(nrows):
            writer.write(list(row) + _muColumns(step, muSteps) + failureColumns(modelClass, cfg, "InputError"))
        return nrows

    model.logParameters()
    for step in range(nrows):
        m = model
        if muSteps:
            m = model.resetScale((0.5 + step / muSteps) * V_EW)
            log.info("line %d: mu_factor = %g (mu = %.6g GeV)", line, 0.5 + step / muSteps, m.scale)
        try:
            pt, eta = evaluate(m, cfg)
        except Exception:
            log.exception("line %d: evaluation failed", line)
            writer.write(list(row) + _muColumns(step, muSteps, m.scale)
                         + failureColumns(modelClass, cfg, "NumericalFailure"))
            continue
        writer.write(list(row) + _muColumns(step, muSteps, m.scale) + resultColumns(m, cfg, pt, eta))
        log.info("line %d: %s, eta = %s", line, pt.statusFlag.value, _fmt(eta.eta))
    return nrows


def runBatch(modelName: str, inputPath: str, outputPath: str,
             lines: Optional[Sequence[int]] = None, cfg: Optional[RunConfig] = None,
             muSteps: int = 0, workers: int = 1) -> int:
    """
    Run the pipeline on the selected input lines and write the output file.

    Returns the number of output rows (legend excluded).

    Raises
    ------
    ConfigurationError
        For an unknown model.
    InputError
        For a missing input file or line, or a negative number of scale steps.
    """
    cfg = cfg or RunConfig()
    modelClass = get_model(modelName)
    if muSteps < 0:
        raise InputError("the number of scale steps must be positive")
    legend, rows = readInput(inputPath, lines)
    log.info("Running %s on %d point(s) from %s", modelClass.modelName, len(rows), inputPath)

    with open(outputPath, "w", encoding="utf-8") as out:
        writer = ResultWriter(out)
        writer.write(outputLegend(modelClass, cfg, legend, muSteps))
        args = [(modelClass, cfg, legend, ln, row, writer, muSteps) for ln, row in rows.items()]
        if workers > 1 and len(args) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                counts = list(pool.map(lambda a: runPoint(*a), args))
        else:
            counts = [runPoint(*a) for a in args]
    total = sum(counts)
    log.info("Wrote %d row(s) to %s", total, outputPath)
    return total


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

def buildParser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="baryotransitions",
        description="Critical temperature and electroweak baryogenesis for a grid of model points.")
    p.add_argument("model", nargs="?", default=None,
                   help="model name (landau_ginzburg, lg, vdm; default: the configuration's model)")
    p.add_argument("input", help="tab-separated input file; line 1 is the legend")
    p.add_argument("output", help="tab-separated output file")
    p.add_argument("--line", type=int, nargs="+", dest="lines", metavar="N",
                   help="1-based line number(s) of the data rows (default: all)")
    p.add_argument("--config", help="JSON configuration file")
    p.add_argument("--vw", type=float, help="wall velocity (overrides the configuration)")
    p.add_argument("--mu-steps", type=int, default=0, metavar="N",
                   help="vary the renormalisation scale in N steps between 0.5 and 1.5 v0")
    p.add_argument("--workers", type=int, default=1, help="number of points evaluated in parallel")
    p.add_argument("-v", "--verbose", action="count", default=0,
                   help="more output (-v: info, -vv: debug)")
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = buildParser().parse_args(argv)
    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    try:
        cfg = load_config(args.config)
        if args.vw is not None:
            if not (np.isfinite(args.vw) and 0.0 < args.vw < 1.0):
                raise InputError(f"wall velocity must lie in (0, 1), got {args.vw}")
            cfg = replace(cfg, vw=args.vw)
        runBatch(args.model or cfg.model, args.input, args.output, args.lines, cfg,
                 muSteps=args.mu_steps, workers=max(1, args.workers))
    except ConfigurationError as err:
        log.error("configuration error: %s", err)
        return 1
    except InputError as err:
        log.error("input error: %s", err)
        return 2
    return 0
