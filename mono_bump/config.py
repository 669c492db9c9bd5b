"""Workspace-level settings from the root pyproject.toml.

Example::

    [tool.mono-bump]
    publish-command = ["uv", "publish", "--index", "internal"]
    tag-format = "{name}-v{version}"
    exclude = ["docs-site"]
"""

from __future__ import annotations

import tomlkit
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError
from .toml import get_tool_table


class Settings(BaseModel):
    """Options read from [tool.mono-bump] in the workspace root.

    Attributes:
        build_command: Command that builds one package; the package directory
            and ``--out-dir <dist>`` are appended.
        publish_command: Command that uploads the built distributions; their
            paths are appended.
        dist_dir: Where built distributions are collected, per package.
        tag_format: Git tag marking a released version.
        tag_published: Create a tag after each successful publish.
        publish_delay: Seconds to wait before each upload, giving the
            registry index time to pick up the previous one.
        exclude: Packages that are never published.
    """

    model_config = ConfigDict(
        alias_generator=lambda name: name.replace("_", "-"),
        populate_by_name=True,
        extra="forbid",
    )

    build_command: list[str] = Field(default_factory=lambda: ["uv", "build"])
    publish_command: list[str] = Field(default_factory=lambda: ["uv", "publish"])
    dist_dir: str = "dist"
    tag_format: str = "{name}/v{version}"
    tag_published: bool = True
    publish_delay: float = Field(default=0.0, ge=0)
    exclude: list[str] = Field(default_factory=list)

    @field_validator("tag_format")
    @classmethod
    def _tag_format_has_placeholders(cls, value: str) -> str:
        if "{name}" not in value or "{version}" not in value:
            raise ValueError("must contain {name} and {version}")
        return value

    @field_validator("build_command", "publish_command")
    @classmethod
    def _command_not_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("command must not be empty")
        return value

    def tag_for(self, name: str, version: str) -> str:
        return self.tag_format.format(name=name, version=version)

    def tag_pattern(self, name: str) -> str:
        """Glob matching every release tag of ``name``."""
        return self.tag_format.replace("{version}", "*").format(name=name)

    def version_from_tag(self, name: str, tag: str) -> str | None:
        prefix, _, suffix = self.tag_format.format(name=name, version="\0").partition(
            "\0"
        )
        if not tag.startswith(prefix) or not tag.endswith(suffix):
            return None
        return tag[len(prefix) : len(tag) - len(suffix)] or None


def load_settings(doc: tomlkit.TOMLDocument) -> Settings:
    """Validate the [tool.mono-bump] table of the root pyproject.toml.

    Raises:
        ConfigError: On unknown keys or values of the wrong type.
    """
    table = get_tool_table(doc)
    # Member-level key; harmless if someone sets it on the root package
    table.pop("publish", None)
    try:
        return Settings.model_validate(table)
    except ValidationError as exc:
        raise ConfigError(f"Invalid [tool.mono-bump] settings:\n{exc}") from exc
