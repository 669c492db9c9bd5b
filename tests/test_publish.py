"""Tests for mono_bump.publish."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from conftest import PackageFactory
from mono_bump.config import Settings
from mono_bump.errors import PublishFailure, TagFailure, UnknownPackage
from mono_bump.graph import WorkspaceGraph, build_graph
from mono_bump.models import PackageInfo
from mono_bump.publish import UvPublisher, plan_publish, publish_packages


@pytest.fixture
def private_middle(package: PackageFactory) -> WorkspaceGraph:
    """app → internal → core, where internal is never published."""
    return build_graph(
        [
            package("core"),
            package("internal", deps=["core"], publishable=False),
            package("app", deps=["internal>=1.0"]),
        ]
    )


class TestPlanPublish:
    """Tests for plan_publish()."""

    def test_all_packages_dependencies_first(self, chain_graph: WorkspaceGraph) -> None:
        assert plan_publish(chain_graph) == ["d", "c", "b", "a"]

    def test_diamond(self, diamond_graph: WorkspaceGraph) -> None:
        assert plan_publish(diamond_graph) == ["d", "a", "b", "c"]

    def test_target_pulls_in_dependencies(self, diamond_graph: WorkspaceGraph) -> None:
        assert plan_publish(diamond_graph, ["a"]) == ["d", "a"]

    def test_allow_only_deps(self, chain_graph: WorkspaceGraph) -> None:
        assert plan_publish(chain_graph, ["a"], allow_only_deps=True) == ["d", "c", "b"]

    def test_allow_only_deps_leaf(self, chain_graph: WorkspaceGraph) -> None:
        assert plan_publish(chain_graph, ["d"], allow_only_deps=True) == []

    def test_without_dependencies(self, chain_graph: WorkspaceGraph) -> None:
        order = plan_publish(chain_graph, ["a", "b"], include_dependencies=False)
        assert order == ["b", "a"]

    def test_unpublishable_never_appears(self, private_middle: WorkspaceGraph) -> None:
        assert plan_publish(private_middle) == ["core", "app"]
        assert plan_publish(private_middle, ["internal"]) == ["core"]

    def test_duplicate_targets(self, chain_graph: WorkspaceGraph) -> None:
        assert plan_publish(chain_graph, ["b", "b", "c"]) == ["d", "c", "b"]

    def test_unknown_target(self, chain_graph: WorkspaceGraph) -> None:
        with pytest.raises(UnknownPackage):
            plan_publish(chain_graph, ["zzz"])

    def test_dependencies_precede_dependents(
        self, diamond_graph: WorkspaceGraph
    ) -> None:
        order = plan_publish(diamond_graph)
        for name in order:
            for dep in diamond_graph.dependencies(name):
                assert order.index(dep) < order.index(name)


class TestPublishPackages:
    """Tests for publish_packages()."""

    def test_publishes_in_order(self, diamond_graph: WorkspaceGraph) -> None:
        invoker = MagicMock(return_value=True)
        published: list[str] = []

        result = publish_packages(
            diamond_graph,
            ["d", "a", "b", "c"],
            invoker,
            lambda info: published.append(info.name),
        )

        assert result.published == ["d", "a", "b", "c"]
        assert result.skipped == []
        assert [c.args[0].name for c in invoker.call_args_list] == ["d", "a", "b", "c"]
        assert published == ["d", "a", "b", "c"]

    def test_skips_released_versions(self, chain_graph: WorkspaceGraph) -> None:
        invoker = MagicMock(return_value=True)

        result = publish_packages(chain_graph, ["d", "c"], invoker)

        assert result.published == []
        assert result.skipped == ["d", "c"]
        invoker.assert_not_called()

    def test_stops_at_first_failure(self, diamond_graph: WorkspaceGraph) -> None:
        invoker = MagicMock(side_effect=lambda info: info.name != "b")
        on_published = MagicMock()

        with pytest.raises(PublishFailure) as exc_info:
            publish_packages(diamond_graph, ["d", "a", "b", "c"], invoker, on_published)

        failure = exc_info.value
        assert failure.package == "b"
        assert failure.published == ["d", "a"]
        assert failure.remaining == ["b", "c"]
        assert "Resume with: mono-bump publish --only b c" in str(failure)
        assert [c.args[0].name for c in invoker.call_args_list] == ["d", "a", "b"]
        assert on_published.call_count == 2

    def test_missing_build_tool_is_a_publish_failure(
        self, diamond_graph: WorkspaceGraph
    ) -> None:
        def invoker(info: PackageInfo) -> bool:
            if info.name == "a":
                raise FileNotFoundError("uv")
            return True

        with pytest.raises(PublishFailure) as exc_info:
            publish_packages(diamond_graph, ["d", "a", "b", "c"], invoker)

        failure = exc_info.value
        assert not isinstance(failure, TagFailure)
        assert failure.package == "a"
        assert failure.published == ["d"]
        assert failure.remaining == ["a", "b", "c"]
        assert "uv" in failure.reason
        assert isinstance(failure.__cause__, FileNotFoundError)

    def test_tagging_error_reports_uploaded_package(
        self, diamond_graph: WorkspaceGraph
    ) -> None:
        invoker = MagicMock(return_value=True)

        def on_published(info: PackageInfo) -> None:
            if info.name == "b":
                raise subprocess.CalledProcessError(
                    128, ["git", "tag", "b/v1.0.0"], stderr="fatal: not a git repo\n"
                )

        with pytest.raises(TagFailure) as exc_info:
            publish_packages(diamond_graph, ["d", "a", "b", "c"], invoker, on_published)

        failure = exc_info.value
        assert failure.package == "b"
        assert failure.published == ["d", "a", "b"]
        assert failure.remaining == ["c"]
        assert failure.reason == "fatal: not a git repo"
        assert "Published 'b' but could not tag it" in str(failure)
        assert "Resume with: mono-bump publish --only c" in str(failure)
        assert invoker.call_count == 3

    def test_tagging_error_on_last_package(self, diamond_graph: WorkspaceGraph) -> None:
        on_published = MagicMock(side_effect=OSError("disk full"))

        with pytest.raises(TagFailure) as exc_info:
            publish_packages(
                diamond_graph, ["d"], MagicMock(return_value=True), on_published
            )

        assert exc_info.value.published == ["d"]
        assert exc_info.value.remaining == []
        assert "Nothing left to publish" in str(exc_info.value)


def _fake_build(*args: str, **kwargs: Any) -> MagicMock:
    """Stand-in for ``run`` that drops two dists into --out-dir on build."""
    if "--out-dir" in args:
        out_dir = Path(args[args.index("--out-dir") + 1])
        out_dir.mkdir(parents=True)
        (out_dir / "core-1.1.0.tar.gz").write_text("")
        (out_dir / "core-1.1.0-py3-none-any.whl").write_text("")
    return MagicMock(returncode=0)


class TestUvPublisher:
    """Tests for UvPublisher."""

    @pytest.fixture
    def core(self) -> PackageInfo:
        return PackageInfo(name="core", path="packages/core", version="1.1.0")

    @patch("mono_bump.publish.run")
    def test_build_then_publish(
        self, mock_run: MagicMock, tmp_path: Path, core: PackageInfo
    ) -> None:
        mock_run.side_effect = _fake_build

        assert UvPublisher(tmp_path, Settings())(core)

        out_dir = tmp_path / "dist" / "core"
        assert mock_run.call_args_list[0].args == (
            "uv",
            "build",
            "packages/core",
            "--out-dir",
            str(out_dir),
        )
        assert mock_run.call_args_list[1].args == (
            "uv",
            "publish",
            str(out_dir / "core-1.1.0-py3-none-any.whl"),
            str(out_dir / "core-1.1.0.tar.gz"),
        )
        assert mock_run.call_args_list[1].kwargs == {"cwd": tmp_path, "check": False}

    @patch("mono_bump.publish.run")
    def test_old_dists_are_removed(
        self, mock_run: MagicMock, tmp_path: Path, core: PackageInfo
    ) -> None:
        mock_run.side_effect = _fake_build
        stale = tmp_path / "dist" / "core" / "core-1.0.0.tar.gz"
        stale.parent.mkdir(parents=True)
        stale.write_text("")

        UvPublisher(tmp_path, Settings())(core)

        assert not stale.exists()
        assert len(mock_run.call_args_list[1].args) == 4

    @patch("mono_bump.publish.run")
    def test_build_failure(
        self, mock_run: MagicMock, tmp_path: Path, core: PackageInfo
    ) -> None:
        mock_run.return_value = MagicMock(returncode=1)

        assert not UvPublisher(tmp_path, Settings())(core)
        mock_run.assert_called_once()

    @patch("mono_bump.publish.run")
    def test_no_dists_built(
        self, mock_run: MagicMock, tmp_path: Path, core: PackageInfo
    ) -> None:
        mock_run.return_value = MagicMock(returncode=0)

        assert not UvPublisher(tmp_path, Settings())(core)
        mock_run.assert_called_once()

    @patch("mono_bump.publish.time.sleep")
    @patch("mono_bump.publish.run")
    def test_publish_delay_and_custom_commands(
        self,
        mock_run: MagicMock,
        mock_sleep: MagicMock,
        tmp_path: Path,
        core: PackageInfo,
    ) -> None:
        mock_run.side_effect = _fake_build
        settings = Settings(
            publish_command=["twine", "upload"], publish_delay=1.5, dist_dir="out"
        )

        assert UvPublisher(tmp_path, settings)(core)

        mock_sleep.assert_called_once_with(1.5)
        assert mock_run.call_args_list[1].args[:2] == ("twine", "upload")
        assert (tmp_path / "out" / "core").is_dir()
