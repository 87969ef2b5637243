import importlib.util
import os

import pandas as pd
import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


@pytest.fixture(scope="module")
def run_repeats():
    mod_spec = importlib.util.spec_from_file_location("run_repeats", os.path.join(ROOT, "scripts", "run_repeats.py"))
    module = importlib.util.module_from_spec(mod_spec)
    mod_spec.loader.exec_module(module)
    return module


def _write_run(out_dir, ga_f1, sa_status="ok"):
    os.makedirs(out_dir, exist_ok=True)
    pd.DataFrame(
        [
            {"optimizer": "ga", "status": "ok", "final_f1": ga_f1, "n_selected": 3, "n_evals": 40},
            {"optimizer": "sa", "status": sa_status, "final_f1": 0.5 if sa_status == "ok" else float("nan"),
             "n_selected": 4 if sa_status == "ok" else None, "n_evals": 10 if sa_status == "ok" else None},
        ]
    ).to_csv(os.path.join(out_dir, "comparison.csv"), index=False)
    pd.DataFrame({"gen": [0, 1, 2], "max": [0.5, 0.7, 0.7]}).to_csv(os.path.join(out_dir, "ga_trace.csv"), index=False)


def test_summary_over_runs(tmp_path, run_repeats):
    _write_run(str(tmp_path / "run_1"), 0.8)
    _write_run(str(tmp_path / "run_2"), 0.6, sa_status="failed")
    records = []
    for i in (1, 2):
        for row in run_repeats.collect_run(str(tmp_path / f"run_{i}")):
            records.append({"run": i, **row})
    summary = run_repeats.summarize(pd.DataFrame(records), crashed=0).set_index("optimizer")

    assert summary.loc["ga", "Avg_final_f1"] == pytest.approx(0.7)
    assert summary.loc["ga", "Best_final_f1"] == pytest.approx(0.8)
    assert summary.loc["ga", "Avg_selected"] == pytest.approx(3.0)
    assert summary.loc["ga", "Avg_max_fitness_step"] == pytest.approx(1.0)
    assert summary.loc["ga", "Failed"] == 0
    assert summary.loc["sa", "Repeats"] == 1
    assert summary.loc["sa", "Failed"] == 1
