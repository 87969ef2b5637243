"""
Run configuration: one dataclass per stage, with the documented defaults.

Every optimizer receives its own config object; nothing is read from module
state. ``SearchConfig.validate`` runs before any optimizer starts.
"""

from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional

from fsearch.errors import ConfigurationError

OPTIMIZER_NAMES = ("ga", "pso", "sa")


def _positive_int(name: str, value: Any) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")


def _probability(name: str, value: Any) -> None:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number in [0, 1], got {value!r}")
    if not 0.0 <= v <= 1.0:
        raise ConfigurationError(f"{name} must be in [0, 1], got {value!r}")


def _positive_float(name: str, value: Any) -> None:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a positive number, got {value!r}")
    if not (v > 0.0 and math.isfinite(v)):
        raise ConfigurationError(f"{name} must be a positive number, got {value!r}")


@dataclass
class EvaluatorConfig:
    classifier: str = "rf"
    model_budget: int = 25  # trees per fitness evaluation
    final_budget: int = 50  # trees for the final comparison model
    threads: int = 1  # n_jobs inside each forest
    seed: Optional[int] = None

    def validate(self) -> None:
        if self.classifier not in ("rf", "stub"):
            raise ConfigurationError(f"classifier must be rf|stub, got {self.classifier!r}")
        _positive_int("evaluator.model_budget", self.model_budget)
        _positive_int("evaluator.final_budget", self.final_budget)
        _positive_int("evaluator.threads", self.threads)


@dataclass
class GAConfig:
    pop_size: int = 15
    maxiter: int = 15
    pmutation: float = 0.1  # per-bit flip probability
    pcrossover: float = 0.8
    run: int = 5  # generations without improvement before stopping
    elitism: int = 1
    init_prob: float = 0.5
    seed: Optional[int] = None

    def validate(self) -> None:
        _positive_int("ga.pop_size", self.pop_size)
        _positive_int("ga.maxiter", self.maxiter)
        _positive_int("ga.run", self.run)
        _probability("ga.pmutation", self.pmutation)
        _probability("ga.pcrossover", self.pcrossover)
        _probability("ga.init_prob", self.init_prob)
        if not isinstance(self.elitism, int) or self.elitism < 0 or self.elitism >= self.pop_size:
            raise ConfigurationError(f"ga.elitism must be in [0, pop_size), got {self.elitism!r}")


@dataclass
class PSOConfig:
    maxit: int = 15
    swarm_size: Optional[int] = None  # None: floor(10 + 2*sqrt(n_features))
    inertia: float = 1.0 / (2.0 * math.log(2.0))
    cognitive: float = 0.5 + math.log(2.0)
    social: float = 0.5 + math.log(2.0)
    seed: Optional[int] = None

    def validate(self) -> None:
        _positive_int("pso.maxit", self.maxit)
        if self.swarm_size is not None:
            _positive_int("pso.swarm_size", self.swarm_size)
        for name in ("inertia", "cognitive", "social"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value < 0 or not math.isfinite(value):
                raise ConfigurationError(f"pso.{name} must be a non-negative number, got {value!r}")


@dataclass
class SAConfig:
    max_call: int = 150
    initial_temperature: float = 0.1
    final_temperature: float = 1e-3
    step_size: float = 0.1
    seed: Optional[int] = None

    def validate(self) -> None:
        _positive_int("sa.max_call", self.max_call)
        _positive_float("sa.initial_temperature", self.initial_temperature)
        _positive_float("sa.final_temperature", self.final_temperature)
        _positive_float("sa.step_size", self.step_size)
        if self.final_temperature > self.initial_temperature:
            raise ConfigurationError("sa.final_temperature must not exceed sa.initial_temperature")


@dataclass
class SearchConfig:
    split_ratio: float = 0.7
    split_seed: int = 42
    seed: Optional[int] = None  # base seed for optimizers whose own seed is unset
    optimizers: List[str] = field(default_factory=lambda: list(OPTIMIZER_NAMES))
    n_procs: int = 1  # processes for evaluating one generation/iteration
    concurrent_optimizers: bool = False
    time_limit: Optional[float] = None  # seconds per optimizer
    output: str = "search_results"
    evaluator: EvaluatorConfig = field(default_factory=EvaluatorConfig)
    ga: GAConfig = field(default_factory=GAConfig)
    pso: PSOConfig = field(default_factory=PSOConfig)
    sa: SAConfig = field(default_factory=SAConfig)

    def validate(self) -> None:
        try:
            ratio = float(self.split_ratio)
        except (TypeError, ValueError):
            raise ConfigurationError(f"split_ratio must be a number in (0, 1), got {self.split_ratio!r}")
        if not 0.0 < ratio < 1.0:
            raise ConfigurationError(f"split_ratio must be in (0, 1), got {self.split_ratio!r}")
        if not self.optimizers:
            raise ConfigurationError("at least one optimizer must be selected")
        unknown = [o for o in self.optimizers if o not in OPTIMIZER_NAMES]
        if unknown:
            raise ConfigurationError(f"unknown optimizer(s) {unknown}; choose from {list(OPTIMIZER_NAMES)}")
        if len(set(self.optimizers)) != len(self.optimizers):
            raise ConfigurationError(f"optimizers listed more than once: {self.optimizers}")
        _positive_int("n_procs", self.n_procs)
        if self.concurrent_optimizers and self.n_procs > 1:
            raise ConfigurationError("concurrent_optimizers cannot be combined with n_procs > 1 (nested pools)")
        if self.time_limit is not None:
            _positive_float("time_limit", self.time_limit)
        self.evaluator.validate()
        for name in self.optimizers:
            getattr(self, name).validate()

    def optimizer_seed(self, name: str) -> Optional[int]:
        own = getattr(self, name).seed
        if own is not None:
            return own
        if self.seed is None:
            return None
        return int(self.seed) + OPTIMIZER_NAMES.index(name) + 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_SECTIONS = {"evaluator": EvaluatorConfig, "ga": GAConfig, "pso": PSOConfig, "sa": SAConfig}


def _build(cls, data: Dict[str, Any], where: str):
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"unknown key(s) in {where}: {unknown}")
    return cls(**data)


def config_from_dict(data: Dict[str, Any]) -> SearchConfig:
    top = dict(data)
    sections = {}
    for name, cls in _SECTIONS.items():
        section = top.pop(name, {}) or {}
        if not isinstance(section, dict):
            raise ConfigurationError(f"section '{name}' must be an object")
        sections[name] = _build(cls, section, name)
    cfg = _build(SearchConfig, top, "config")
    for name, section in sections.items():
        setattr(cfg, name, section)
    return cfg


def load_config(path: str) -> SearchConfig:
    """Load a JSON config file over the defaults; unknown keys are rejected."""
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"config file {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} must hold a JSON object")
    return config_from_dict(data)
