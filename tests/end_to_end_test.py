import json
import os

import pandas as pd
import pytest

from conftest import INFORMATIVE
from feature_subset_search import main, parse_args
from fsearch.config import SearchConfig
from fsearch.runner import search_dataset


@pytest.fixture(scope="module")
def forest_outcome(majority_data):
    cfg = SearchConfig(seed=0)
    cfg.evaluator.seed = 0
    cfg.evaluator.model_budget = 15
    cfg.evaluator.final_budget = 30
    cfg.ga.pop_size, cfg.ga.maxiter = 12, 10
    cfg.pso.maxit = 10
    cfg.sa.max_call = 100
    return search_dataset(majority_data, cfg)


@pytest.mark.parametrize("name", ["ga", "pso", "sa"])
def test_random_forest_finds_informative_columns(forest_outcome, name):
    row = forest_outcome.report.row(name)
    selected = {int(f[1:]) for f in row.selected_features}
    assert row.status == "ok"
    assert len(selected & set(INFORMATIVE)) >= 2
    assert row.n_selected < 10
    assert row.final_f1 > 0.6


def test_cli_writes_outputs(tmp_path):
    out = tmp_path / "run"
    config = tmp_path / "stub.json"
    config.write_text(json.dumps({"evaluator": {"classifier": "stub"}}))
    code = main([
        "--synthetic", "--seed", "1", "--config", str(config),
        "--pop-size", "6", "--generations", "3", "--pso-maxit", "2", "--swarm-size", "5", "--sa-max-call", "10",
        "--output", str(out),
    ])
    assert code == 0
    table = pd.read_csv(out / "comparison.csv")
    assert list(table["optimizer"]) == ["ga", "pso", "sa"]
    assert set(table["status"]) == {"ok"}
    for name in ("ga", "pso", "sa"):
        best = json.loads((out / f"best_{name}.json").read_text())
        assert best["num_selected"] == len(best["selected_features"])
        assert 0.0 <= best["final_f1"] <= 1.0
        trace = pd.read_csv(out / f"{name}_trace.csv")
        assert "max" in trace.columns
    freq = pd.read_csv(out / "ga_selection_frequency.csv")
    assert len(freq) == 10
    assert not os.path.exists(out / "sa_selection_frequency.csv")
    assert json.loads((out / "config.json").read_text())["ga"]["pop_size"] == 6


def test_cli_rejects_bad_config(tmp_path, capsys):
    code = main(["--synthetic", "--split-ratio", "1.5", "--output", str(tmp_path)])
    assert code == 2
    assert "[CONFIG]" in capsys.readouterr().err


def test_cli_does_not_offer_the_stub_classifier():
    with pytest.raises(SystemExit):
        parse_args(["--synthetic", "--classifier", "stub"])
