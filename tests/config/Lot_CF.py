"""
Block CF – config: JSON run configuration and its validation.

What this file checks
---------------------
1) defaults and the derived transport properties;
2) parsing of a complete file, species overrides merged by name;
3) every kind of invalid option raises ConfigurationError.
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path

import pytest

from BaryoTransitions.config import (
    ConfigurationError,
    FinderConfig,
    MinimizerConfig,
    RunConfig,
    TransportConfig,
    config_from_dict,
    load_config,
)


def test_blockCF_1_defaults():
    print("\n[Block CF / Test 1] defaults")
    cfg = load_config(None)
    print(f"  {cfg}")
    assert cfg == RunConfig()
    assert cfg.vw == 0.1
    assert cfg.transport.methods == ("top", "top_bot", "top_bot_tau")
    assert cfg.transport.primaryMethod == "top_bot_tau"
    assert cfg.transport.activeSpecies() == ("top", "bottom", "tau")
    assert cfg.transport.speciesParameters("tau").baryonWeight == pytest.approx(1.0 / 3.0)
    assert TransportConfig(methods="top").methods == ("top",)
    assert TransportConfig(methods=["top_bot"]).activeSpecies() == ("top", "bottom")
    with pytest.raises(ConfigurationError):
        TransportConfig().speciesParameters("charm")


def test_blockCF_2_parse_file(tmp_path):
    print("\n[Block CF / Test 2] complete configuration file")
    data = {
        "model": "vdm",
        "vw": 0.3,
        "minimizer": {"xtol": 1e-6, "seed": 7},
        "finder": {"Thigh": 250.0, "Tlow": 20.0, "nScan": 46},
        "transport": {"methods": ["top", "top_bot"], "solver": "relaxation",
                      "species": {"top": {"diffusionDT": 7.0}}},
    }
    path = tmp_path / "run.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    cfg = load_config(path)
    print(f"  {cfg}")
    assert cfg.model == "vdm" and cfg.vw == 0.3
    assert cfg.minimizer == MinimizerConfig(xtol=1e-6, seed=7)
    assert cfg.finder == FinderConfig(Thigh=250.0, Tlow=20.0, nScan=46)
    assert cfg.transport.methods == ("top", "top_bot")
    assert cfg.transport.solver == "relaxation"
    assert cfg.transport.speciesParameters("top").diffusionDT == 7.0
    # species that are not overridden keep their defaults
    assert cfg.transport.speciesParameters("bottom").diffusionDT == 6.0
    assert cfg.transport.speciesParameters("tau").diffusionDT == 100.0


@pytest.mark.parametrize("data", [
    {"plotting": {}},
    {"minimizer": {"tolerance": 1e-3}},
    {"minimizer": {"xtol": -1.0}},
    {"finder": {"Thigh": 50.0, "Tlow": 100.0}},
    {"finder": {"nScan": 1}},
    {"finder": []},
    {"transport": {"methods": ["top", "charm"]}},
    {"transport": {"methods": []}},
    {"transport": {"solver": "multigrid"}},
    {"transport": {"odeMethod": "RK45"}},
    {"transport": {"species": {"charm": {"diffusionDT": 6.0}}}},
    {"transport": {"species": {"top": {"mass": 172.0}}}},
    {"transport": {"species": {"top": {"name": "bottom"}}}},
    {"vw": 1.0},
    {"vw": "fast"},
    {"model": 3},
    [],
])
def test_blockCF_3_invalid_options(data):
    print(f"\n[Block CF / Test 3] {data!r}")
    with pytest.raises(ConfigurationError):
        config_from_dict(data)


def test_blockCF_4_unreadable_files(tmp_path):
    print("\n[Block CF / Test 4] missing file and invalid JSON")
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "missing.json")
    bad = tmp_path / "bad.json"
    bad.write_text('{"vw": 0.1,', encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(bad)


if __name__ == "__main__":
    test_blockCF_1_defaults()
    with tempfile.TemporaryDirectory() as tmp:
        test_blockCF_2_parse_file(Path(tmp))
    for case in ({"plotting": {}}, {"vw": 1.0}, {"transport": {"solver": "multigrid"}}):
        test_blockCF_3_invalid_options(case)
    with tempfile.TemporaryDirectory() as tmp:
        test_blockCF_4_unreadable_files(Path(tmp))
    print("\n[Block CF] All example tests executed.")
