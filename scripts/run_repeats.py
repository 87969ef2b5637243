#!/usr/bin/env python3
"""
Run the feature-subset search several times with consecutive seeds and
aggregate the comparison tables.

Metrics reported per optimizer (across repeats):
- Avg_final_f1 / Best_final_f1: from comparison.csv.final_f1
- Avg_selected: mean of comparison.csv.n_selected
- Avg_evals: mean fitness evaluations spent by the search
- Avg_max_fitness_step: for each run, earliest trace step where 'max' reaches its run-maximum; averaged
- Failed: repeats where the optimizer's row was marked failed (or the run crashed)

Usage example:
  python scripts/run_repeats.py --out-root results/repeats --repeats 5 --seed 42 \
    --extra-arg=--synthetic --extra-arg=--model-budget=15

Outputs each run to <out-root>/run_<i> and writes <out-root>/summary.csv.
"""

from __future__ import annotations

import argparse
import math
import os
import subprocess
import sys
from typing import Dict, List

import pandas as pd

SCRIPT = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "feature_subset_search.py")


def run_one(out_dir: str, seed: int, args: argparse.Namespace) -> int:
    cmd = [sys.executable, SCRIPT, "--output", out_dir, "--seed", str(seed)]
    if args.config:
        cmd += ["--config", args.config]
    for ea in (args.extra_arg or []):
        cmd.append(ea)
    print("[RUN]", " ".join(cmd))
    return subprocess.call(cmd)


def earliest_max_step(trace_csv: str) -> float:
    """Index of the first trace row whose 'max' equals the run maximum."""
    if not os.path.exists(trace_csv):
        return float("nan")
    df = pd.read_csv(trace_csv)
    if "max" not in df.columns or df.empty:
        return float("nan")
    hits = df.index[(df["max"] - df["max"].max()).abs() <= 1e-12]
    return float(hits[0]) if len(hits) else float("nan")


def collect_run(out_dir: str) -> List[Dict]:
    table = pd.read_csv(os.path.join(out_dir, "comparison.csv"))
    rows = []
    for rec in table.to_dict("records"):
        name = rec["optimizer"]
        rows.append({
            "optimizer": name,
            "status": rec["status"],
            "final_f1": rec.get("final_f1", float("nan")),
            "n_selected": rec.get("n_selected", float("nan")),
            "n_evals": rec.get("n_evals", float("nan")),
            "earliest_max_step": earliest_max_step(os.path.join(out_dir, f"{name}_trace.csv")),
        })
    return rows


def summarize(per_run: pd.DataFrame, crashed: int) -> pd.DataFrame:
    out = []
    for name, grp in per_run.groupby("optimizer", sort=False):
        ok = grp[grp["status"] == "ok"]
        out.append({
            "optimizer": name,
            "Avg_final_f1": ok["final_f1"].mean(),
            "Best_final_f1": ok["final_f1"].max(),
            "Avg_selected": ok["n_selected"].mean(),
            "Avg_evals": ok["n_evals"].mean(),
            "Avg_max_fitness_step": ok["earliest_max_step"].mean(),
            "Repeats": len(ok),
            "Failed": int((grp["status"] == "failed").sum()) + crashed,
        })
    return pd.DataFrame(out)


def main():
    ap = argparse.ArgumentParser(description="Repeat the GA/PSO/SA comparison over several seeds")
    ap.add_argument("--out-root", type=str, required=True, help="Output root directory for repeats")
    ap.add_argument("--repeats", type=int, default=3)
    ap.add_argument("--seed", type=int, default=42, help="Base seed; each repeat uses seed+i")
    ap.add_argument("--config", type=str, default=None, help="JSON config forwarded to every run")
    ap.add_argument("--extra-arg", action="append", default=[], help="Extra arg forwarded to the search; can repeat")
    args = ap.parse_args()

    os.makedirs(args.out_root, exist_ok=True)

    records: List[Dict] = []
    crashed = 0
    for i in range(args.repeats):
        out_dir = os.path.join(args.out_root, f"run_{i+1}")
        rc = run_one(out_dir, args.seed + i, args)
        # exit code 1 means at least one optimizer failed; its row is still written
        if rc not in (0, 1):
            print(f"[WARN] repeat {i+1} exited with code {rc}")
            crashed += 1
            continue
        try:
            for row in collect_run(out_dir):
                records.append({"run": i + 1, **row})
        except (OSError, KeyError, pd.errors.ParserError) as e:
            print(f"[WARN] failed to parse outputs for run_{i+1}: {e}")
            crashed += 1

    if not records:
        print("[SUMMARY] no successful repeats")
        sys.exit(1)

    per_run = pd.DataFrame(records)
    per_run.to_csv(os.path.join(args.out_root, "per_run.csv"), index=False)
    summary = summarize(per_run, crashed)
    summary_csv = os.path.join(args.out_root, "summary.csv")
    summary.to_csv(summary_csv, index=False)

    print("[SUMMARY]")
    for rec in summary.to_dict("records"):
        parts = []
        for k, v in rec.items():
            if isinstance(v, float):
                parts.append(f"{k}={v:.4f}" if not math.isnan(v) else f"{k}=nan")
            else:
                parts.append(f"{k}={v}")
        print("- " + ", ".join(parts))
    print(f"[OK] Wrote summary to {summary_csv}")


if __name__ == "__main__":
    main()
