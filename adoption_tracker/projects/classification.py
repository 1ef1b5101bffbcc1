"""Classify where an adoption was found from the matched file path."""

from pathlib import PurePosixPath

SOURCE_DOCKERFILE = "dockerfile"
SOURCE_COMPOSE = "compose"
SOURCE_GITHUB_ACTIONS = "github-actions"
SOURCE_MANIFEST = "manifest"
SOURCE_OTHER = "other"

_YAML_SUFFIXES = (".yml", ".yaml")


def classify_source(path: str) -> str:
    """Return the discovery-source tag for a matched file path.

    Examples:
        >>> classify_source("Dockerfile")
        'dockerfile'
        >>> classify_source("deploy/docker-compose.prod.yml")
        'compose'
        >>> classify_source(".github/workflows/build.yaml")
        'github-actions'
    """
    if not path:
        return SOURCE_OTHER

    normalized = path.strip().lstrip("/")
    name = PurePosixPath(normalized).name.lower()

    if (
        name.startswith("dockerfile")
        or name.endswith(".dockerfile")
        or name.startswith("containerfile")
    ):
        return SOURCE_DOCKERFILE
    if name.endswith(_YAML_SUFFIXES):
        if "compose" in name:
            return SOURCE_COMPOSE
        if normalized.lower().startswith(".github/workflows/"):
            return SOURCE_GITHUB_ACTIONS
        return SOURCE_MANIFEST
    return SOURCE_OTHER
