"""Resolve a flake reference to its locked URL and configuration attribute.

Resolution asks ``nix flake metadata`` (or the legacy ``nix flake info``)
for the canonical URL of the flake, then folds in the submodule flag so
the later build fetches exactly what the metadata call saw.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr, ValidationError, field_validator

from darwin_rebuild.errors import FlakeReferenceError, MetadataResolutionError
from darwin_rebuild.flake.reference import FlakeReference
from darwin_rebuild.utils.commands import CommandRunner
from darwin_rebuild.utils.env import Environment

logger = logging.getLogger(__name__)

CONFIGURATION_NAMESPACE = "darwinConfigurations"
FLAKE_FLAGS = ["--extra-experimental-features", "nix-command flakes"]


class _ResolvedInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    submodules: Optional[StrictBool] = None


class FlakeMetadata(BaseModel):
    """The subset of ``nix flake metadata --json`` we rely on."""

    model_config = ConfigDict(extra="ignore")

    url: StrictStr
    resolved: Optional[_ResolvedInfo] = None

    @field_validator("url")
    @classmethod
    def _url_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("flake url is empty")
        return value

    @property
    def submodules(self) -> bool:
        return bool(self.resolved and self.resolved.submodules)


@dataclass(frozen=True)
class ResolvedReference:
    """A locked flake URL plus the fully-qualified configuration attribute."""

    url: str
    attribute: str

    @property
    def installable(self) -> str:
        """Target passed to ``nix build``."""
        return f"{self.url}#{self.attribute}.system"

    @property
    def edit_target(self) -> str:
        return f"{self.url}#{self.attribute}"


def configuration_attribute(reference: FlakeReference, env: Environment) -> str:
    """Return ``darwinConfigurations.<name>`` for the reference.

    The fragment is used verbatim; without one the local host name is.
    """
    name = reference.attribute
    if name is None:
        logger.debug("No attribute in %s, using the local host name", reference.raw)
        try:
            name = env.hostname()
        except OSError as e:
            raise FlakeReferenceError(f"Failed to get local hostname: {e}") from e
        if not name:
            raise FlakeReferenceError("Failed to get local hostname: host name is empty")
    return f"{CONFIGURATION_NAMESPACE}.{name}"


def with_submodules(url: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}submodules=1"


def parse_metadata(document: object) -> FlakeMetadata:
    """Validate a decoded metadata document.

    Raises:
        MetadataResolutionError: If ``url`` is missing, empty or not a
            string, or ``resolved.submodules`` is present but not a boolean.
    """
    try:
        return FlakeMetadata.model_validate(document)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'document'}: {err['msg']}"
            for err in e.errors()
        )
        raise MetadataResolutionError(f"Unexpected flake metadata: {problems}") from e


class MetadataResolver:
    """Canonicalizes flake references through the nix CLI."""

    def __init__(
        self,
        runner: CommandRunner,
        env: Environment,
        extra_flags: Sequence[str] = (),
    ):
        self.runner = runner
        self.env = env
        self.extra_flags = list(extra_flags)

    def metadata_subcommand(self) -> str:
        """Pick ``metadata`` when supported, else the older ``info``."""
        if self.runner.probe(["nix", *FLAKE_FLAGS, "flake", "metadata", "--version"]):
            return "metadata"
        logger.debug("nix flake metadata is unavailable, falling back to nix flake info")
        return "info"

    def fetch(self, url: str) -> FlakeMetadata:
        subcommand = self.metadata_subcommand()
        command = [
            "nix",
            *FLAKE_FLAGS,
            "flake",
            subcommand,
            "--json",
            *self.extra_flags,
            "--",
            url,
        ]
        result = self.runner.run(command)
        if not result.ok:
            raise MetadataResolutionError(
                f"Failed to get flake metadata for {url}",
                command=command,
                output=result.diagnostics,
            )
        try:
            document = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise MetadataResolutionError(
                f"Flake metadata for {url} is not valid JSON: {e}",
                command=command,
                output=result.stdout,
            ) from e
        return parse_metadata(document)

    def resolve(self, reference: FlakeReference) -> ResolvedReference:
        attribute = configuration_attribute(reference, self.env)
        logger.debug("Looking for flake metadata... %s", reference.url)
        metadata = self.fetch(reference.url)

        url = metadata.url
        if metadata.submodules:
            url = with_submodules(url)
        logger.debug("Resolved flake: %s#%s", url, attribute)
        return ResolvedReference(url=url, attribute=attribute)
