"""
DPMM Gibbs — Component and Assignment Stores
============================================
The two pieces of mutable state a single Gibbs chain owns:

- ComponentParameterStore: component ids → (mean, variance), with the
  Active → Retiring → Deleted lifecycle.
- ClusterAssignmentStore: observation index → component id, plus per-component
  sufficient statistics (count, sum, sum of squares) so that adding or
  removing one observation is O(1).

Invariants (checked on every mutation):
    - Every assigned component id exists in the parameter store
    - No component count is ever negative
    - Ids are never reused while the store is alive
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from .base_measure import BaseMeasure, ComponentParams
from .exceptions import (
    ComponentNotEmpty, InvalidComponent, InvariantViolation, NegativeCount,
    UnknownComponent,
)

UNASSIGNED = -1


# ═══════════════════════════════════════════════════════════════
# Components
# ═══════════════════════════════════════════════════════════════

class ComponentState(Enum):
    """Lifecycle of a mixture component."""
    ACTIVE = "active"
    RETIRING = "retiring"
    DELETED = "deleted"


@dataclass
class Component:
    """A single mixture component."""
    id: int
    params: ComponentParams
    state: ComponentState = ComponentState.ACTIVE


class ComponentParameterStore:
    """Registry of live components and their parameters."""

    def __init__(self, base_measure: BaseMeasure, rng: np.random.Generator):
        """
        Args:
            base_measure: Prior used when a component is created without parameters
            rng: Random source for those prior draws
        """
        self.base_measure = base_measure
        self.rng = rng
        self._components: Dict[int, Component] = {}
        self._next_id = 0
        self._assignments: Optional['ClusterAssignmentStore'] = None

    def bind_assignments(self, assignments: 'ClusterAssignmentStore'):
        """Attach the assignment store consulted before deleting a component."""
        self._assignments = assignments

    def __contains__(self, component_id: int) -> bool:
        return component_id in self._components

    def __len__(self) -> int:
        return len(self._components)

    def ids(self) -> List[int]:
        """Live component ids in creation order."""
        return list(self._components)

    def create_component(self, params: Optional[ComponentParams] = None) -> int:
        if params is None:
            params = self.base_measure.sample_prior(self.rng)
        component_id = self._next_id
        self._next_id += 1
        self._components[component_id] = Component(
            id=component_id,
            params=ComponentParams(float(params[0]), float(params[1])),
        )
        return component_id

    def _get(self, component_id: int) -> Component:
        try:
            return self._components[component_id]
        except KeyError:
            raise UnknownComponent(component_id) from None

    def remove_component(self, component_id: int):
        component = self._get(component_id)
        if self._assignments is not None:
            count = self._assignments.count_for(component_id)
            if count > 0:
                raise ComponentNotEmpty(
                    f"Component {component_id} still has {count} observations"
                )
        component.state = ComponentState.DELETED
        del self._components[component_id]

    def retire_component(self, component_id: int) -> Component:
        """Move an emptied component through Retiring to Deleted."""
        component = self._get(component_id)
        component.state = ComponentState.RETIRING
        self.remove_component(component_id)
        return component

    def parameters_for(self, component_id: int) -> ComponentParams:
        return self._get(component_id).params

    def update_parameters(self, component_id: int, params: ComponentParams):
        self._get(component_id).params = ComponentParams(float(params[0]), float(params[1]))

    def parameter_arrays(self, component_ids: List[int]) -> Tuple[np.ndarray, np.ndarray]:
        """Means and variances of the given components as arrays."""
        params = [self._get(k).params for k in component_ids]
        means = np.array([p.mean for p in params], dtype=np.float64)
        variances = np.array([p.variance for p in params], dtype=np.float64)
        return means, variances

    def snapshot(self) -> Dict[int, ComponentParams]:
        return {k: c.params for k, c in self._components.items()}


# ═══════════════════════════════════════════════════════════════
# Assignments
# ═══════════════════════════════════════════════════════════════

class ClusterAssignmentStore:
    """Observation → component mapping with per-component sufficient statistics."""

    def __init__(self, observations, components: ComponentParameterStore):
        """
        Args:
            observations: 1-D sequence of observation values (copied, read-only)
            components: Parameter store every assigned id must exist in
        """
        values = np.array(observations, dtype=np.float64).ravel()
        values.setflags(write=False)
        self.observations = values
        self.components = components
        components.bind_assignments(self)

        self._assignments: List[int] = [UNASSIGNED] * len(values)
        self._counts: Dict[int, int] = {}
        self._sums: Dict[int, float] = {}
        self._sums_sq: Dict[int, float] = {}

    @property
    def n_observations(self) -> int:
        return len(self._assignments)

    def component_of(self, obs_index: int) -> int:
        return self._assignments[obs_index]

    def assignments(self) -> Tuple[int, ...]:
        return tuple(self._assignments)

    def count_for(self, component_id: int) -> int:
        return self._counts.get(component_id, 0)

    def sufficient_stats(self, component_id: int) -> Tuple[int, float, float]:
        """(count, sum, sum of squares) of the observations in a component."""
        return (self._counts.get(component_id, 0),
                self._sums.get(component_id, 0.0),
                self._sums_sq.get(component_id, 0.0))

    def active_components(self) -> Set[int]:
        return {k for k, n in self._counts.items() if n > 0}

    def _add(self, component_id: int, y: float):
        self._counts[component_id] = self._counts.get(component_id, 0) + 1
        self._sums[component_id] = self._sums.get(component_id, 0.0) + y
        self._sums_sq[component_id] = self._sums_sq.get(component_id, 0.0) + y * y

    def _remove(self, component_id: int, y: float) -> int:
        count = self._counts.get(component_id, 0) - 1
        if count < 0:
            raise NegativeCount(f"Component {component_id} would reach count {count}")
        if count == 0:
            del self._counts[component_id]
            del self._sums[component_id]
            del self._sums_sq[component_id]
        else:
            self._counts[component_id] = count
            self._sums[component_id] -= y
            self._sums_sq[component_id] -= y * y
        return count

    def assign(self, obs_index: int, component_id: int):
        """Move an observation to `component_id`, updating both counts."""
        if component_id not in self.components:
            raise InvalidComponent(f"Component {component_id} does not exist")
        old = self._assignments[obs_index]
        if old == component_id:
            return
        y = float(self.observations[obs_index])
        if old != UNASSIGNED:
            self._remove(old, y)
        self._add(component_id, y)
        self._assignments[obs_index] = component_id

    def unassign(self, obs_index: int) -> Tuple[int, int]:
        """Detach an observation from its component.

        Returns:
            (previous component id, that component's remaining count);
            (UNASSIGNED, 0) if the observation was not assigned.
        """
        old = self._assignments[obs_index]
        if old == UNASSIGNED:
            return UNASSIGNED, 0
        remaining = self._remove(old, float(self.observations[obs_index]))
        self._assignments[obs_index] = UNASSIGNED
        return old, remaining

    def check_invariants(self):
        """Raise InvariantViolation if the stores disagree with each other."""
        assigned = [k for k in self._assignments if k != UNASSIGNED]
        if sum(self._counts.values()) != len(assigned):
            raise InvariantViolation(
                f"counts total {sum(self._counts.values())} but {len(assigned)} observations are assigned"
            )
        for k, n in self._counts.items():
            if n <= 0:
                raise InvariantViolation(f"component {k} has count {n}")
            if k not in self.components:
                raise InvariantViolation(f"component {k} missing from parameter store")
            if assigned.count(k) != n:
                raise InvariantViolation(
                    f"component {k} has count {n} but {assigned.count(k)} assigned observations"
                )
