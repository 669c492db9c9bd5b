"""Error types raised by mono-bump.

Every failure aborts the current invocation. Library code raises these; only
the CLI turns them into a process exit.
"""

from __future__ import annotations

from collections.abc import Sequence


class MonoBumpError(Exception):
    """Base class for all mono-bump failures."""


class ConfigError(MonoBumpError):
    """The [tool.mono-bump] table in the root pyproject.toml is invalid."""


class DuplicatePackage(MonoBumpError):
    """Two workspace members declare the same package name."""

    def __init__(self, name: str, first: str, second: str) -> None:
        super().__init__(
            f"Package {name!r} is declared twice: in {first} and in {second}"
        )
        self.name = name
        self.paths = (first, second)


class CyclicDependency(MonoBumpError):
    """The normal/build dependency graph contains a cycle.

    Attributes:
        cycle: Package names along the cycle, first and last entry equal.
    """

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class UnknownPackage(MonoBumpError):
    """A package name was requested that is not a workspace member."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Package {name!r} is not a member of the workspace")
        self.name = name


class UnreadableManifest(MonoBumpError):
    """A pyproject.toml could not be read or understood."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class WriteFailure(MonoBumpError):
    """Applying mutations to a manifest failed; the manifest is untouched."""

    def __init__(self, manifest: str, reason: str) -> None:
        super().__init__(f"Failed to update {manifest}: {reason}")
        self.manifest = manifest
        self.reason = reason


class VersionNotBumped(MonoBumpError):
    """A package about to be released has already been published."""

    def __init__(self, name: str, version: str, published: str) -> None:
        super().__init__(
            f"Version of {name!r} ({version}) is not newer than the published "
            f"version ({published}). Run `mono-bump bump {name}` first."
        )
        self.name = name
        self.version = version
        self.published = published


class PublishFailure(MonoBumpError):
    """Publishing stopped partway through the publish plan.

    Attributes:
        package: The package whose publish step failed.
        published: Packages published during this run, in order.
        remaining: The failed package and everything after it.
    """

    def __init__(
        self,
        package: str,
        published: Sequence[str],
        remaining: Sequence[str],
        reason: str = "publish command failed",
    ) -> None:
        self.package = package
        self.published = list(published)
        self.remaining = list(remaining)
        self.reason = reason
        super().__init__(f"{self._headline()}\n{self._progress()}")

    def _headline(self) -> str:
        return f"Failed to publish {self.package!r}: {self.reason}"

    def _progress(self) -> str:
        done = ", ".join(self.published) or "<none>"
        if not self.remaining:
            return f"  Already published: {done}\n  Nothing left to publish"
        todo = " ".join(self.remaining)
        return (
            f"  Already published: {done}\n"
            f"  Resume with: mono-bump publish --only {todo}"
        )


class TagFailure(PublishFailure):
    """A package was uploaded but its release tag could not be created.

    ``published`` includes ``package``; ``remaining`` starts after it.
    """

    def _headline(self) -> str:
        return f"Published {self.package!r} but could not tag it: {self.reason}"
