"""
DPMM Gibbs — Sample Records and Traces
======================================
Immutable per-sweep snapshots of a chain, their JSON representation, and
tabular views for downstream analysis.

Usage:
    result = GibbsDriver(y, base, config).run()

    save_samples('chain0.jsonl', result.samples)
    samples = load_samples('chain0.jsonl')

    df = samples_to_dataframe(samples)
    print(cluster_count_distribution(samples))
"""

import json
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .base_measure import ComponentParams


class RunStatus(Enum):
    """How a chain finished."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SampleRecord:
    """Snapshot of the chain state after one recorded sweep."""
    iteration: int
    assignments: Tuple[int, ...]
    components: Mapping[int, ComponentParams]
    concentration: float
    monitors: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        # Normalize and freeze the containers the caller handed in
        object.__setattr__(self, 'iteration', int(self.iteration))
        object.__setattr__(self, 'assignments', tuple(int(z) for z in self.assignments))
        object.__setattr__(self, 'components', MappingProxyType({
            int(k): ComponentParams(float(v[0]), float(v[1]))
            for k, v in self.components.items()
        }))
        object.__setattr__(self, 'concentration', float(self.concentration))
        object.__setattr__(self, 'monitors', MappingProxyType({
            str(k): float(v) for k, v in self.monitors.items()
        }))

    @property
    def n_active_components(self) -> int:
        return len(self.components)

    def to_dict(self) -> Dict:
        return {
            'iteration': self.iteration,
            'assignments': list(self.assignments),
            'components': {str(k): [p.mean, p.variance] for k, p in self.components.items()},
            'concentration': self.concentration,
            'monitors': dict(self.monitors),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> 'SampleRecord':
        return cls(
            iteration=data['iteration'],
            assignments=data['assignments'],
            components={int(k): v for k, v in data['components'].items()},
            concentration=data['concentration'],
            monitors=data.get('monitors', {}),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> 'SampleRecord':
        return cls.from_dict(json.loads(text))

    def __reduce__(self):
        # mappingproxy is not picklable; go through the plain-dict form
        return (self.__class__.from_dict, (self.to_dict(),))


@dataclass
class ChainResult:
    """Output of one GibbsDriver run."""
    samples: List[SampleRecord]
    status: RunStatus
    sweeps_completed: int
    degeneracy_count: int = 0
    active_component_trace: List[int] = field(default_factory=list)
    concentration_trace: List[float] = field(default_factory=list)
    seed: Optional[int] = None

    @property
    def cancelled(self) -> bool:
        return self.status is RunStatus.CANCELLED


# ═══════════════════════════════════════════════════════════════
# Persistence
# ═══════════════════════════════════════════════════════════════

def save_samples(filepath, samples: Sequence[SampleRecord]):
    """Write samples as JSON lines, one record per line."""
    filepath = Path(filepath)
    with open(filepath, 'w', encoding='utf-8') as f:
        for record in samples:
            f.write(record.to_json())
            f.write('\n')
    print(f"[Samples] {len(samples)} records saved to {filepath}")


def load_samples(filepath) -> List[SampleRecord]:
    """Read samples written by save_samples()."""
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Sample file not found: {filepath}")
    with open(filepath, encoding='utf-8') as f:
        return [SampleRecord.from_json(line) for line in f if line.strip()]


# ═══════════════════════════════════════════════════════════════
# Tabular views
# ═══════════════════════════════════════════════════════════════

def samples_to_dataframe(samples: Sequence[SampleRecord]) -> pd.DataFrame:
    """One row per record: iteration, concentration, K, monitors, z_<i>."""
    rows = []
    for record in samples:
        row = {
            'iteration': record.iteration,
            'concentration': record.concentration,
            'n_active_components': record.n_active_components,
        }
        row.update(record.monitors)
        row.update({f'z_{i}': z for i, z in enumerate(record.assignments)})
        rows.append(row)
    return pd.DataFrame(rows)


def cluster_count_distribution(samples: Sequence[SampleRecord]) -> pd.Series:
    """Posterior frequency of each number of active components."""
    counts = pd.Series([r.n_active_components for r in samples], name='n_active_components')
    return counts.value_counts(normalize=True).sort_index()


def posterior_mode_cluster_count(samples: Sequence[SampleRecord]) -> int:
    if not samples:
        raise ValueError("No samples available")
    return int(cluster_count_distribution(samples).idxmax())


def co_clustering_matrix(samples: Sequence[SampleRecord]) -> np.ndarray:
    """Fraction of samples in which observations i and j share a component."""
    if not samples:
        raise ValueError("No samples available")
    z = np.array([r.assignments for r in samples])
    return (z[:, :, None] == z[:, None, :]).mean(axis=0)
