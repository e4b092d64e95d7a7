"""Tests for the StageGraph — Dockerfile parsing, cookbooks, ancestry."""

from __future__ import annotations

from pathlib import Path

import pytest

from agentic_container.core.stage_graph import (
    StageGraph,
    StageGraphError,
    UnknownTargetError,
    discover_cookbooks,
    parse_dockerfile,
    target_for_dockerfile,
)
from agentic_container.models import BuildTarget


@pytest.fixture
def chain() -> StageGraph:
    return StageGraph(
        [
            BuildTarget(name="a"),
            BuildTarget(name="b", parent="a"),
            BuildTarget(name="c", parent="b"),
            BuildTarget(name="d", parent="a"),
        ]
    )


class TestParseDockerfile:
    def test_named_stages_in_order(self, project: Path):
        targets = parse_dockerfile(project / "Dockerfile")
        assert [t.name for t in targets] == ["builder", "node-stage", "standard", "dev"]

    def test_parents_follow_stage_references(self, project: Path):
        parents = {t.name: t.parent for t in parse_dockerfile(project / "Dockerfile")}
        assert parents == {
            "builder": None,
            "node-stage": "builder",
            "standard": None,
            "dev": "standard",
        }

    def test_global_arg_defaults_are_inherited(self, project: Path):
        targets = {t.name: t for t in parse_dockerfile(project / "Dockerfile")}
        assert targets["builder"].build_args == {"NODE_VERSION": "22.1.0"}
        assert targets["standard"].build_args == {"PYTHON_VERSION": "3.12.4", "EXTRA": ""}
        assert targets["dev"].build_args == {"DEV_TOOLS": "ripgrep"}

    def test_quoted_and_referencing_arg_defaults(self, tmp_path: Path):
        dockerfile = tmp_path / "Dockerfile"
        dockerfile.write_text(
            "FROM ubuntu:24.04 AS base\n"
            "ARG GREETING=\"hello world\" USER_UID=1001\n"
            "ARG USER_GID=$USER_UID\n",
            encoding="utf-8",
        )
        (base,) = parse_dockerfile(dockerfile)
        assert base.build_args == {
            "GREETING": "hello world",
            "USER_UID": "1001",
            "USER_GID": "$USER_UID",
        }

    def test_platform_flag_and_lowercase_as(self, tmp_path: Path):
        dockerfile = tmp_path / "Dockerfile"
        dockerfile.write_text(
            "FROM --platform=$BUILDPLATFORM golang:1.22 as build\n"
            "FROM build AS final\n",
            encoding="utf-8",
        )
        targets = parse_dockerfile(dockerfile)
        assert [(t.name, t.parent) for t in targets] == [("build", None), ("final", "build")]

    def test_unnamed_stages_are_skipped(self, tmp_path: Path):
        dockerfile = tmp_path / "Dockerfile"
        dockerfile.write_text("FROM alpine\nFROM alpine AS named\n", encoding="utf-8")
        assert [t.name for t in parse_dockerfile(dockerfile)] == ["named"]


class TestCookbooks:
    def test_discovery_skips_templates(self, project: Path):
        cookbooks = discover_cookbooks(project / "docs" / "cookbooks", "standard")
        assert [c.name for c in cookbooks] == ["python-cli"]

    def test_cookbook_target(self, project: Path):
        (cookbook,) = discover_cookbooks(project / "docs" / "cookbooks", "standard")
        assert cookbook.parent == "standard"
        assert cookbook.base_image_arg == "BASE_IMAGE"
        assert cookbook.standalone is True
        assert cookbook.is_multistage_stage is False

    def test_missing_cookbooks_dir(self, tmp_path: Path):
        assert discover_cookbooks(tmp_path / "nope", "standard") == []

    def test_standalone_dockerfile_without_base_arg(self, tmp_path: Path):
        dockerfile = tmp_path / "Dockerfile.custom"
        dockerfile.write_text("FROM agentic-container:dev\nARG FLAG=1\n", encoding="utf-8")
        target = target_for_dockerfile(dockerfile, "custom", "dev")
        assert target.base_image_arg is None
        assert target.build_args == {"FLAG": "1"}
        assert target.context == tmp_path


class TestStageGraph:
    def test_from_project_includes_cookbooks(self, graph: StageGraph):
        assert graph.target_names == ["builder", "node-stage", "standard", "dev", "python-cli"]
        assert "python-cli" in graph
        assert len(graph) == 5

    def test_cookbooks_need_their_parent_stage(self, tmp_path: Path, project: Path):
        dockerfile = tmp_path / "Other.Dockerfile"
        dockerfile.write_text("FROM alpine AS base\n", encoding="utf-8")
        graph = StageGraph.from_project(dockerfile, project / "docs" / "cookbooks")
        assert graph.target_names == ["base"]

    def test_ancestors_root_first(self, chain: StageGraph):
        assert [t.name for t in chain.ancestors("c")] == ["a", "b"]
        assert chain.ancestors("a") == []

    def test_descendants(self, chain: StageGraph):
        assert chain.descendants("a") == ["b", "d", "c"]
        assert chain.descendants("c") == []

    def test_unknown_target_lists_valid_names(self, chain: StageGraph):
        with pytest.raises(UnknownTargetError, match="Valid targets: a, b, c, d") as excinfo:
            chain.get("nope")
        assert excinfo.value.name == "nope"

    def test_unknown_target_is_a_key_error(self, chain: StageGraph):
        with pytest.raises(KeyError):
            chain.ancestors("nope")

    def test_duplicate_names_rejected(self):
        with pytest.raises(StageGraphError, match="Duplicate"):
            StageGraph([BuildTarget(name="a"), BuildTarget(name="a")])

    def test_parent_must_be_declared_first(self):
        with pytest.raises(StageGraphError, match="not declared before"):
            StageGraph([BuildTarget(name="b", parent="a"), BuildTarget(name="a")])

    def test_with_target_returns_new_graph(self, chain: StageGraph):
        extended = chain.with_target(BuildTarget(name="e", parent="c"))
        assert "e" in extended
        assert "e" not in chain
        assert [t.name for t in extended.ancestors("e")] == ["a", "b", "c"]
