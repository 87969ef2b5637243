#!/usr/bin/env python3
"""
Feature-subset search with GA, PSO and SA sharing one fitness evaluator.

Supports CSV input (with a target column), built-in scikit-learn datasets,
OpenML datasets, or a synthetic majority-vote dataset. Each optimizer scores
candidate subsets by training a small random forest and measuring macro-F1
on a held-out split; the best subset of each is re-scored with a larger
forest and written to a comparison table.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Dict, List, Optional

from fsearch.aggregate import selection_frequency, trace_frame
from fsearch.base import OptimizerResult
from fsearch.config import SearchConfig, load_config
from fsearch.data import Dataset, load_dataset, make_majority_vote_dataset
from fsearch.errors import ConfigurationError
from fsearch.runner import SearchOutcome, search_dataset


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Metaheuristic feature-subset search (GA / PSO / SA)")
    src = p.add_mutually_exclusive_group(required=False)
    src.add_argument("--csv", type=str, help="Path to CSV file")
    src.add_argument("--sklearn-dataset", type=str, help="Built-in dataset: breast_cancer|iris|wine")
    src.add_argument("--openml-name", type=str, help="OpenML dataset by name (requires network)")
    src.add_argument("--openml-id", type=str, help="OpenML dataset by numeric ID (requires network)")
    src.add_argument("--synthetic", action="store_true", help="Synthetic 10-feature data; only f2, f5, f7 are informative")
    p.add_argument("--target-col", type=str, help="Target column name (with --csv)")
    p.add_argument("--openml-version", type=int, default=None, help="Specific OpenML dataset version")
    p.add_argument("--data-home", type=str, default=None, help="Cache directory for OpenML downloads")
    p.add_argument("--drop-cols", type=str, default="", help="Comma-separated identifier columns to drop")
    p.add_argument("--no-standardize", action="store_true", help="Skip StandardScaler on the feature columns")

    p.add_argument("--config", type=str, default=None, help="JSON config file; CLI flags below override it")
    p.add_argument("--optimizers", type=str, default=None, help="Comma-separated subset of ga,pso,sa")
    p.add_argument("--split-ratio", type=float, default=None, help="Train share of the stratified split (default 0.7)")
    p.add_argument("--split-seed", type=int, default=None, help="Seed for the train/test split")
    p.add_argument("--seed", type=int, default=None, help="Base seed for optimizers and evaluators")
    p.add_argument("--classifier", type=str, default=None, choices=["rf"], help="Classifier used for fitness (default rf)")
    p.add_argument("--model-budget", type=int, default=None, help="Trees per fitness evaluation (default 25)")
    p.add_argument("--final-budget", type=int, default=None, help="Trees for the final comparison model (default 50)")
    p.add_argument("--threads", type=int, default=None, help="n_jobs inside each random forest")
    p.add_argument("--n-procs", type=int, default=None, help="Worker processes for evaluating a generation/iteration")
    p.add_argument("--concurrent-optimizers", action="store_true", help="Run the optimizers in parallel processes")
    p.add_argument("--time-limit", type=float, default=None, help="Seconds per optimizer before it stops early")

    p.add_argument("--pop-size", type=int, default=None, help="GA population size (default 15)")
    p.add_argument("--generations", type=int, default=None, help="GA generations (default 15)")
    p.add_argument("--pmutation", type=float, default=None, help="GA per-bit mutation probability (default 0.1)")
    p.add_argument("--pcrossover", type=float, default=None, help="GA crossover probability (default 0.8)")
    p.add_argument("--patience", type=int, default=None, help="GA generations without improvement before stopping (default 5)")
    p.add_argument("--pso-maxit", type=int, default=None, help="PSO iterations (default 15)")
    p.add_argument("--swarm-size", type=int, default=None, help="PSO swarm size (default floor(10 + 2*sqrt(n)))")
    p.add_argument("--sa-max-call", type=int, default=None, help="SA fitness-call budget (default 150)")

    p.add_argument("--output", type=str, default=None, help="Directory to save outputs")
    p.add_argument("--verbose", "-v", action="count", default=0, help="-v for progress, -vv for per-generation detail")
    return p.parse_args(argv)


def resolve_config(args: argparse.Namespace) -> SearchConfig:
    cfg = load_config(args.config) if args.config else SearchConfig()
    overrides = {
        ("", "split_ratio"): args.split_ratio,
        ("", "split_seed"): args.split_seed,
        ("", "seed"): args.seed,
        ("", "n_procs"): args.n_procs,
        ("", "time_limit"): args.time_limit,
        ("", "output"): args.output,
        ("evaluator", "classifier"): args.classifier,
        ("evaluator", "model_budget"): args.model_budget,
        ("evaluator", "final_budget"): args.final_budget,
        ("evaluator", "threads"): args.threads,
        ("ga", "pop_size"): args.pop_size,
        ("ga", "maxiter"): args.generations,
        ("ga", "pmutation"): args.pmutation,
        ("ga", "pcrossover"): args.pcrossover,
        ("ga", "run"): args.patience,
        ("pso", "maxit"): args.pso_maxit,
        ("pso", "swarm_size"): args.swarm_size,
        ("sa", "max_call"): args.sa_max_call,
    }
    for (section, key), value in overrides.items():
        if value is None:
            continue
        setattr(getattr(cfg, section) if section else cfg, key, value)
    if args.optimizers:
        cfg.optimizers = [o.strip().lower() for o in args.optimizers.split(",") if o.strip()]
    if args.concurrent_optimizers:
        cfg.concurrent_optimizers = True
    if args.seed is not None and cfg.evaluator.seed is None:
        cfg.evaluator.seed = args.seed
    return cfg


def resolve_dataset(args: argparse.Namespace) -> Dataset:
    if args.synthetic:
        data = make_majority_vote_dataset(seed=args.seed if args.seed is not None else 0)
        print(f"[DATA] Synthetic majority-vote dataset with X.shape={data.X.shape}, y.shape={data.y.shape}")
        return data
    if not any([args.csv, args.sklearn_dataset, args.openml_name, args.openml_id]):
        raise SystemExit("Provide a dataset via --csv, --sklearn-dataset, --openml-name/--openml-id or --synthetic")
    data = load_dataset(
        csv=args.csv,
        target_col=args.target_col,
        sklearn_dataset=args.sklearn_dataset,
        openml_name=args.openml_name,
        openml_id=args.openml_id,
        openml_version=args.openml_version,
        data_home=args.data_home,
        drop_cols=[c.strip() for c in args.drop_cols.split(",") if c.strip()],
        standardize=not args.no_standardize,
    )
    if args.openml_id or args.openml_name:
        src = f"id={args.openml_id}" if args.openml_id else f"name='{args.openml_name}'"
        print(f"[DATA] Loaded OpenML dataset ({src}) with X.shape={data.X.shape}, y.shape={data.y.shape}")
    elif args.sklearn_dataset:
        print(f"[DATA] Loaded sklearn dataset '{args.sklearn_dataset}' with X.shape={data.X.shape}, y.shape={data.y.shape}")
    else:
        print(f"[DATA] Loaded CSV dataset from '{args.csv}' with X.shape={data.X.shape}, y.shape={data.y.shape}")
    return data


def _best_solution(result: OptimizerResult, feature_names: List[str]) -> Dict:
    selected_idx = [int(i) for i, b in enumerate(result.best_mask) if b]
    return {
        "optimizer": result.name,
        "best_fitness": result.best_score,
        "selected_indices": selected_idx,
        "selected_features": [feature_names[i] for i in selected_idx],
        "num_selected": len(selected_idx),
        "total_features": len(feature_names),
        "n_evals": result.n_evals,
        "aborted": result.aborted,
    }


def save_results(output_dir: str, outcome: SearchOutcome, feature_names: List[str], cfg: SearchConfig) -> None:
    os.makedirs(output_dir, exist_ok=True)
    outcome.report.to_csv(os.path.join(output_dir, "comparison.csv"))
    with open(os.path.join(output_dir, "config.json"), "w") as f:
        json.dump(cfg.to_dict(), f, indent=2)

    for name, result in outcome.results.items():
        if isinstance(result, BaseException):
            continue
        best = _best_solution(result, feature_names)
        best["final_f1"] = outcome.report.row(name).final_f1
        with open(os.path.join(output_dir, f"best_{name}.json"), "w") as f:
            json.dump(best, f, indent=2)
        trace_frame(result).to_csv(os.path.join(output_dir, f"{name}_trace.csv"), index=False)
        if result.population is not None:
            freq = selection_frequency(result.population, feature_names)
            freq.to_frame().to_csv(os.path.join(output_dir, f"{name}_selection_frequency.csv"), index_label="feature")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    level = logging.WARNING if args.verbose == 0 else (logging.INFO if args.verbose == 1 else logging.DEBUG)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        cfg = resolve_config(args)
        cfg.validate()
    except ConfigurationError as e:
        print(f"[CONFIG] {e}", file=sys.stderr)
        return 2

    data = resolve_dataset(args)
    print(f"[RUN] optimizers={','.join(cfg.optimizers)} model_budget={cfg.evaluator.model_budget} final_budget={cfg.evaluator.final_budget}")
    outcome = search_dataset(data, cfg)
    save_results(cfg.output, outcome, data.feature_names, cfg)

    print(outcome.report.format_table())
    for row in outcome.report.rows:
        if row.status == "failed":
            print(f"[FAILED] {row.optimizer}: {row.error}")
    print(f"Results saved to '{cfg.output}'.")
    return 1 if outcome.report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
