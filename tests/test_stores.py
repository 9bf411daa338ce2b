"""
Unit tests for the component parameter and cluster assignment stores
"""

import pytest
import numpy as np

from dpmm_gibbs.base_measure import ComponentParams
from dpmm_gibbs.exceptions import (
    ComponentNotEmpty, InvalidComponent, InvariantViolation, NegativeCount, UnknownComponent,
)
from dpmm_gibbs.stores import (
    ClusterAssignmentStore, ComponentParameterStore, ComponentState, UNASSIGNED,
)


@pytest.fixture
def components(fixed_variance_base, rng):
    return ComponentParameterStore(fixed_variance_base, rng)


@pytest.fixture
def assignments(components, two_groups):
    return ClusterAssignmentStore(two_groups, components)


class TestComponentParameterStore:
    """Test component creation, lookup and removal."""

    def test_create_with_params(self, components):
        k = components.create_component(ComponentParams(1.5, 2.0))
        assert k in components
        assert components.parameters_for(k) == (1.5, 2.0)

    def test_create_draws_from_prior(self, components):
        k = components.create_component()
        params = components.parameters_for(k)
        assert np.isfinite(params.mean)
        assert params.variance == 1.0

    def test_ids_are_unique_and_never_reused(self, components):
        first = components.create_component()
        components.remove_component(first)
        second = components.create_component()
        assert second != first
        assert components.ids() == [second]

    def test_unknown_component(self, components):
        with pytest.raises(UnknownComponent):
            components.parameters_for(99)
        with pytest.raises(UnknownComponent):
            components.remove_component(99)
        with pytest.raises(KeyError):
            components.update_parameters(99, ComponentParams(0.0, 1.0))

    def test_update_parameters(self, components):
        k = components.create_component(ComponentParams(0.0, 1.0))
        components.update_parameters(k, ComponentParams(3.0, 0.5))
        assert components.parameters_for(k) == ComponentParams(3.0, 0.5)

    def test_remove_non_empty_component_fails(self, components, assignments):
        k = components.create_component()
        assignments.assign(0, k)
        with pytest.raises(ComponentNotEmpty):
            components.remove_component(k)
        assert k in components

    def test_retire_walks_lifecycle(self, components):
        k = components.create_component()
        component = components.retire_component(k)
        assert component.state is ComponentState.DELETED
        assert k not in components

    def test_parameter_arrays(self, components):
        a = components.create_component(ComponentParams(1.0, 2.0))
        b = components.create_component(ComponentParams(3.0, 4.0))
        means, variances = components.parameter_arrays([b, a])
        np.testing.assert_array_equal(means, [3.0, 1.0])
        np.testing.assert_array_equal(variances, [4.0, 2.0])


class TestClusterAssignmentStore:
    """Test assignment bookkeeping and sufficient statistics."""

    def test_starts_unassigned(self, assignments):
        assert assignments.assignments() == (UNASSIGNED,) * 5
        assert assignments.active_components() == set()

    def test_observations_are_read_only(self, assignments):
        with pytest.raises(ValueError):
            assignments.observations[0] = 0.0

    def test_assign_to_missing_component(self, assignments):
        with pytest.raises(InvalidComponent):
            assignments.assign(0, 7)

    def test_assign_moves_counts(self, components, assignments):
        a = components.create_component()
        b = components.create_component()
        for i in range(3):
            assignments.assign(i, a)
        assignments.assign(3, b)

        assert assignments.count_for(a) == 3
        assert assignments.count_for(b) == 1

        assignments.assign(0, b)
        assert assignments.count_for(a) == 2
        assert assignments.count_for(b) == 2
        assert assignments.active_components() == {a, b}
        assignments.check_invariants()

    def test_reassign_to_same_component_is_noop(self, components, assignments):
        a = components.create_component()
        assignments.assign(0, a)
        assignments.assign(0, a)
        assert assignments.count_for(a) == 1

    def test_sufficient_statistics(self, components, assignments, two_groups):
        a = components.create_component()
        for i in (0, 1, 2):
            assignments.assign(i, a)
        count, total, total_sq = assignments.sufficient_stats(a)

        assert count == 3
        assert total == pytest.approx(two_groups[:3].sum())
        assert total_sq == pytest.approx(np.sum(two_groups[:3] ** 2))

    def test_unassign_reports_remaining(self, components, assignments):
        a = components.create_component()
        assignments.assign(0, a)
        assignments.assign(1, a)

        assert assignments.unassign(0) == (a, 1)
        assert assignments.unassign(1) == (a, 0)
        assert assignments.count_for(a) == 0
        assert a not in assignments.active_components()
        assert assignments.unassign(1) == (UNASSIGNED, 0)

    def test_count_never_negative(self, components, assignments):
        a = components.create_component()
        with pytest.raises(NegativeCount):
            assignments._remove(a, 1.0)
        assert assignments.count_for(a) == 0

    def test_emptied_component_can_be_removed(self, components, assignments):
        a = components.create_component()
        assignments.assign(0, a)
        assignments.unassign(0)
        components.remove_component(a)
        assert len(components) == 0

    def test_invariant_check_raises_on_count_mismatch(self, components, assignments):
        a = components.create_component()
        assignments.assign(0, a)
        assignments.assign(1, a)
        assignments.check_invariants()

        assignments._counts[a] = 3
        with pytest.raises(InvariantViolation):
            assignments.check_invariants()

    def test_invariant_check_raises_on_missing_component(self, components, assignments):
        a = components.create_component()
        assignments.assign(0, a)

        del components._components[a]
        with pytest.raises(InvariantViolation):
            assignments.check_invariants()


if __name__ == '__main__':
    pytest.main([__file__, '-v', '--tb=short'])
