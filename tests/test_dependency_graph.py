"""Tests for the journaled dependency graph."""

import pytest

from resolution.graph import Assignment, DependencyGraph, Edge
from versioning.models import Requirement, RequirementSet, Version


def _edge(requirer, version, text):
    return Edge(requirer, version, Requirement.parse(text))


@pytest.fixture
def graph():
    """Graph with rails required by the manifest and rails 7.1.0 requiring rack."""
    g = DependencyGraph()
    g.add_edge("rails", _edge(None, None, "~> 7.1"))
    g.assign(Assignment("rails", Version("7.1.0"), dependencies=RequirementSet({"rack": ">= 2.2"})))
    g.add_edge("rack", _edge("rails", "7.1.0", ">= 2.2"))
    return g


class TestDependencyGraph:
    """Edges, assignments and rollback."""

    def test_requirement_for_merges_edges(self, graph):
        """Requirements from every requirer are combined."""
        graph.add_edge("rack", _edge(None, None, "< 3"))
        assert str(graph.requirement_for("rack")) == ">= 2.2, < 3"
        assert graph.requirement_for("unknown").is_any

    def test_pending_lists_unassigned_required_names(self, graph):
        """Only required names without an assignment are pending."""
        assert graph.pending() == ["rack"]

    def test_assign_twice_rejected(self, graph):
        """A name holds at most one assignment."""
        with pytest.raises(ValueError):
            graph.assign(Assignment("rails", Version("7.0.0")))

    def test_rollback_restores_checkpoint(self, graph):
        """Everything recorded after the mark is undone."""
        mark = graph.checkpoint()
        graph.assign(Assignment("rack", Version("3.0.8")))
        graph.add_edge("rack", _edge(None, None, "< 3"))
        graph.add_edge("webrick", _edge("rack", "3.0.8", ">= 0"))
        assert graph.violations() == ["rack"]

        graph.rollback(mark)

        assert not graph.is_assigned("rack")
        assert graph.edges("webrick") == []
        assert str(graph.requirement_for("rack")) == ">= 2.2"
        assert graph.violations() == []

    def test_requirements_snapshot(self, graph):
        """The snapshot covers every required name."""
        reqs = graph.requirements()
        assert sorted(reqs) == ["rack", "rails"]
        assert str(reqs.get("rails")) == "~> 7.1"

    def test_assignments_sorted_by_name(self, graph):
        """Assignments come back in name order."""
        graph.assign(Assignment("rack", Version("3.0.8")))
        assert [a.name for a in graph.assignments()] == ["rack", "rails"]

    def test_requirers_carry_paths(self, graph):
        """Each requirer records the chain from the manifest down to it."""
        graph.assign(Assignment("rack", Version("3.0.8")))
        graph.add_edge("webrick", _edge("rack", "3.0.8", "~> 1.8"))

        requirers = graph.requirers("webrick")

        assert len(requirers) == 1
        assert requirers[0].label == "rack (3.0.8)"
        assert requirers[0].path == ("rails (7.1.0)",)
        assert graph.requirers("rails")[0].label == "manifest"

    def test_path_to_stops_on_cycles(self):
        """A dependency cycle does not loop forever."""
        g = DependencyGraph()
        g.add_edge("a", _edge("b", "1", ">= 0"))
        g.add_edge("b", _edge("a", "1", ">= 0"))
        assert g.path_to("a") == ("b",)
