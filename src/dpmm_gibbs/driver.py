"""
DPMM Gibbs — Gibbs Driver
=========================
Runs a Dirichlet process mixture chain sweep by sweep.

Each sweep:
    1. CRP update of every observation's component (fixed or shuffled order)
    2. Concentration update α | K, n (optional)
    3. Conjugate refresh of every component's parameters (optional)
    4. Record a SampleRecord if past burn-in and on the thinning grid

Chains are strictly sequential internally. Independent chains (distinct
seeds, no shared state) may run in parallel through run_chains().

Usage:
    from dpmm_gibbs import GibbsDriver, GibbsConfig, NormalFixedVariance

    base = NormalFixedVariance(mean_loc=0.0, mean_scale=10.0, variance=1.0)
    config = GibbsConfig(total_iterations=2000, burn_in=500, seed=1)
    result = GibbsDriver([-10, -9, -11, 10, 11], base, config).run()

    print(result.status, len(result.samples))
    print(posterior_mode_cluster_count(result.samples))
"""

import numpy as np
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional
from tqdm import tqdm

from .base_measure import BaseMeasure, NormalFixedVariance
from .concentration import CONCENTRATION_METHODS, ConcentrationSampler
from .crp import NEW_COMPONENT_SCHEMES, CRPSampler
from .exceptions import InvalidConfiguration
from .samples import ChainResult, RunStatus, SampleRecord, posterior_mode_cluster_count
from .stores import ClusterAssignmentStore, ComponentParameterStore

INITIALIZATIONS = ('sequential', 'single')


# ═══════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════

class SweepOrder(Enum):
    """Order in which observations are visited within a sweep."""
    FIXED = "fixed"
    RANDOMIZED = "randomized"


@dataclass
class GibbsConfig:
    """Configuration for a single Gibbs chain."""
    total_iterations: int = 1000   # Number of sweeps
    burn_in: int = 0               # Sweeps discarded before recording
    thinning_interval: int = 1     # Record every k-th sweep after burn-in
    seed: Optional[int] = None     # None draws fresh OS entropy
    sweep_order: SweepOrder = SweepOrder.FIXED

    # Concentration α
    initial_concentration: float = 1.0
    sample_concentration: bool = True
    concentration_shape: float = 1.0   # Gamma hyperprior shape
    concentration_rate: float = 1.0    # Gamma hyperprior rate
    concentration_method: str = 'escobar_west'  # 'escobar_west', 'grid'

    # Component updates
    new_component_scheme: str = 'marginal'  # 'marginal', 'auxiliary'
    n_auxiliary: int = 1
    resample_parameters: bool = True
    initialization: str = 'sequential'      # 'sequential', 'single'

    # Reporting
    progressbar: bool = False
    verbose: bool = False

    def validate(self):
        """Raise InvalidConfiguration on any unusable setting."""
        for name in ('total_iterations', 'burn_in', 'thinning_interval'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidConfiguration(f"{name} must be an int, got {value!r}")
        if self.total_iterations <= 0:
            raise InvalidConfiguration(f"total_iterations must be positive, got {self.total_iterations}")
        if not 0 <= self.burn_in < self.total_iterations:
            raise InvalidConfiguration(
                f"burn_in must lie in [0, {self.total_iterations}), got {self.burn_in}"
            )
        if self.thinning_interval < 1:
            raise InvalidConfiguration(f"thinning_interval must be >= 1, got {self.thinning_interval}")
        try:
            self.sweep_order = SweepOrder(self.sweep_order)
        except ValueError:
            raise InvalidConfiguration(f"Unknown sweep order: {self.sweep_order}") from None
        if not (np.isfinite(self.initial_concentration) and self.initial_concentration > 0):
            raise InvalidConfiguration(
                f"initial_concentration must be positive, got {self.initial_concentration}"
            )
        if self.concentration_method not in CONCENTRATION_METHODS:
            raise InvalidConfiguration(f"Unknown concentration method: {self.concentration_method}")
        if self.new_component_scheme not in NEW_COMPONENT_SCHEMES:
            raise InvalidConfiguration(f"Unknown new-component scheme: {self.new_component_scheme}")
        if self.n_auxiliary < 1:
            raise InvalidConfiguration(f"n_auxiliary must be >= 1, got {self.n_auxiliary}")
        if self.initialization not in INITIALIZATIONS:
            raise InvalidConfiguration(f"Unknown initialization: {self.initialization}")
        if self.sample_concentration:
            # Hyperprior checks live with the sampler
            self.concentration_sampler()

    def concentration_sampler(self) -> ConcentrationSampler:
        return ConcentrationSampler(hyper_shape=self.concentration_shape,
                                    hyper_rate=self.concentration_rate,
                                    method=self.concentration_method)


# ═══════════════════════════════════════════════════════════════
# Driver
# ═══════════════════════════════════════════════════════════════

class GibbsDriver:
    """Single-chain Gibbs sampler for a Dirichlet process mixture."""

    def __init__(self,
                 observations,
                 base_measure: BaseMeasure,
                 config: Optional[GibbsConfig] = None,
                 monitors: Optional[Dict[str, Callable[['GibbsDriver'], float]]] = None):
        """
        Args:
            observations: 1-D sequence of observation values
            base_measure: Prior over component (mean, variance)
            config: Chain configuration (validated here, before any sweep)
            monitors: Extra scalars to record, name → fn(driver) → float
        """
        self.config = config or GibbsConfig()
        self.config.validate()

        values = np.asarray(observations, dtype=np.float64).ravel()
        if values.size == 0:
            raise InvalidConfiguration("At least one observation is required")
        if not np.all(np.isfinite(values)):
            raise InvalidConfiguration("Observations must be finite")

        self.observations = values
        self.base_measure = base_measure
        self.monitors = dict(monitors or {})
        self.concentration_sampler = (self.config.concentration_sampler()
                                      if self.config.sample_concentration else None)

        # Chain state (built by initialize())
        self.rng: Optional[np.random.Generator] = None
        self.components: Optional[ComponentParameterStore] = None
        self.assignments: Optional[ClusterAssignmentStore] = None
        self.crp: Optional[CRPSampler] = None
        self.alpha = float(self.config.initial_concentration)

    @property
    def n_observations(self) -> int:
        return len(self.observations)

    @property
    def n_active_components(self) -> int:
        return len(self.assignments.active_components())

    @property
    def degeneracy_count(self) -> int:
        return self.crp.degeneracy_count if self.crp is not None else 0

    def initialize(self):
        """Reset the chain from the configured seed and seat every observation."""
        cfg = self.config
        self.rng = np.random.default_rng(cfg.seed)
        self.alpha = float(cfg.initial_concentration)
        self.components = ComponentParameterStore(self.base_measure, self.rng)
        self.assignments = ClusterAssignmentStore(self.observations, self.components)
        self.crp = CRPSampler(self.assignments, self.components, self.base_measure, self.rng,
                              scheme=cfg.new_component_scheme, n_auxiliary=cfg.n_auxiliary)

        if cfg.initialization == 'single':
            count = self.n_observations
            total = float(self.observations.sum())
            total_sq = float(np.dot(self.observations, self.observations))
            k = self.components.create_component(
                self.base_measure.sample_posterior(count, total, total_sq, self.rng)
            )
            for i in range(self.n_observations):
                self.assignments.assign(i, k)
        else:
            # Seat observations one at a time through the CRP conditional
            for i in range(self.n_observations):
                self.crp.update_observation(i, self.alpha)

        if cfg.verbose:
            print(f"[Gibbs] Initialized {self.n_observations} observations into "
                  f"{self.n_active_components} components (alpha={self.alpha:.3f})")

    def step(self):
        """Run one full sweep."""
        if self.crp is None:
            self.initialize()
        n = self.n_observations

        if self.config.sweep_order is SweepOrder.RANDOMIZED:
            order = self.rng.permutation(n)
        else:
            order = range(n)
        self.crp.sweep(self.alpha, order)

        if self.concentration_sampler is not None:
            self.alpha = self.concentration_sampler(self.alpha, self.n_active_components, n, self.rng)

        if self.config.resample_parameters:
            self.crp.refresh_parameters()

    def snapshot(self, iteration: int) -> SampleRecord:
        return SampleRecord(
            iteration=iteration,
            assignments=self.assignments.assignments(),
            components=self.components.snapshot(),
            concentration=self.alpha,
            monitors={name: fn(self) for name, fn in self.monitors.items()},
        )

    def _should_record(self, sweep_index: int) -> bool:
        cfg = self.config
        return (sweep_index >= cfg.burn_in
                and (sweep_index - cfg.burn_in) % cfg.thinning_interval == 0)

    def run(self, cancel_event=None) -> ChainResult:
        """Run the configured number of sweeps.

        Args:
            cancel_event: Object with is_set() (e.g. threading.Event), polled
                between sweeps. When set, the samples so far are returned with
                status CANCELLED.

        Returns:
            ChainResult with samples and per-sweep diagnostics
        """
        cfg = self.config
        self.initialize()

        if cfg.verbose:
            print(f"[Gibbs] Running {cfg.total_iterations} sweeps "
                  f"(burn-in {cfg.burn_in}, thinning {cfg.thinning_interval}, "
                  f"scheme {cfg.new_component_scheme})")

        samples: List[SampleRecord] = []
        active_trace: List[int] = []
        alpha_trace: List[float] = []
        status = RunStatus.COMPLETED
        sweeps_completed = 0

        for sweep_index in tqdm(range(cfg.total_iterations), desc='Gibbs sweeps',
                                disable=not cfg.progressbar):
            if cancel_event is not None and cancel_event.is_set():
                status = RunStatus.CANCELLED
                break

            self.step()
            sweeps_completed += 1
            active_trace.append(self.n_active_components)
            alpha_trace.append(self.alpha)

            if self._should_record(sweep_index):
                samples.append(self.snapshot(sweep_index))

        if cfg.verbose:
            if status is RunStatus.CANCELLED:
                print(f"[Gibbs] Cancelled after {sweeps_completed} sweeps")
            print(f"[Gibbs] Sampling complete: {len(samples)} samples, "
                  f"{self.degeneracy_count} degenerate updates")

        return ChainResult(
            samples=samples,
            status=status,
            sweeps_completed=sweeps_completed,
            degeneracy_count=self.degeneracy_count,
            active_component_trace=active_trace,
            concentration_trace=alpha_trace,
            seed=cfg.seed,
        )


# ═══════════════════════════════════════════════════════════════
# Multiple chains
# ═══════════════════════════════════════════════════════════════

def _run_chain(observations, base_measure, config, monitors) -> ChainResult:
    return GibbsDriver(observations, base_measure, config, monitors).run()


def run_chains(observations,
               base_measure: BaseMeasure,
               config: Optional[GibbsConfig] = None,
               n_chains: int = 4,
               n_jobs: int = 1,
               monitors: Optional[Dict[str, Callable]] = None) -> List[ChainResult]:
    """Run independent chains with seeds spawned from config.seed.

    With n_jobs > 1 chains run in a process pool; monitors must then be
    picklable (module-level functions, not lambdas).
    """
    config = config or GibbsConfig()
    config.validate()
    if n_chains < 1:
        raise InvalidConfiguration(f"n_chains must be >= 1, got {n_chains}")

    children = np.random.SeedSequence(config.seed).spawn(n_chains)
    seeds = [int(child.generate_state(1)[0]) for child in children]
    configs = [replace(config, seed=seed, progressbar=config.progressbar and n_jobs == 1)
               for seed in seeds]

    if n_jobs == 1:
        return [_run_chain(observations, base_measure, c, monitors) for c in configs]

    with ProcessPoolExecutor(max_workers=n_jobs) as pool:
        futures = [pool.submit(_run_chain, observations, base_measure, c, monitors)
                   for c in configs]
        return [f.result() for f in futures]


# ═══════════════════════════════════════════════════════════════
# Demo
# ═══════════════════════════════════════════════════════════════

def demo_gibbs(total_iterations: int = 2000, burn_in: int = 500,
               seed: int = 2024) -> ChainResult:
    """Two well-separated groups of observations; expect K = 2."""
    print("[Demo] Dirichlet process mixture on [-10, -9, -11, 10, 11]")
    observations = [-10.0, -9.0, -11.0, 10.0, 11.0]
    base = NormalFixedVariance(mean_loc=0.0, mean_scale=10.0, variance=1.0)
    config = GibbsConfig(total_iterations=total_iterations, burn_in=burn_in,
                         seed=seed, concentration_shape=1.0, concentration_rate=1.0,
                         verbose=True)

    result = GibbsDriver(observations, base, config).run()

    print(f"  Samples recorded: {len(result.samples)}")
    print(f"  Posterior mode of K: {posterior_mode_cluster_count(result.samples)}")
    print(f"  Mean alpha: {np.mean([s.concentration for s in result.samples]):.3f}")
    return result


if __name__ == '__main__':
    demo_gibbs()
