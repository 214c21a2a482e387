"""Hosted metadata lookups.

Hosted entity metadata lives in ``<metadata_dir>/<set>.toml``, e.g.
``saml20-idp-hosted.toml``. The file holds the entity's options at the top
level (``privatekey``, ``certificate``, ``new_privatekey``, ...).
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from samldiag.infrastructure.errors import ErrorCode, ErrorContext, MetadataNotFoundError


def _not_found(kind: str, detail: str) -> MetadataNotFoundError:
    return MetadataNotFoundError(
        f"No hosted metadata available for '{kind}'",
        context=ErrorContext(
            component="metadata",
            operation=f"lookup {kind}",
            code=ErrorCode.METADATA_LOOKUP_FAILED.value,
            detail=detail,
        ),
        hints=("Create the hosted metadata file in the metadata directory",),
    )


class FileMetadataProvider:
    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def get_hosted_metadata(self, kind: str) -> Mapping[str, Any]:
        path = self._directory / f"{kind}.toml"
        try:
            with open(path, "rb") as handle:
                data = tomllib.load(handle)
        except FileNotFoundError as exc:
            raise _not_found(kind, f"{path} does not exist") from exc
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise _not_found(kind, f"{path} is unreadable: {exc}") from exc

        if not data:
            raise _not_found(kind, f"{path} is empty")
        return data


class StaticMetadataProvider:
    """In-memory metadata sets, keyed by set name."""

    def __init__(self, sets: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._sets = {name: dict(entry) for name, entry in (sets or {}).items()}

    def get_hosted_metadata(self, kind: str) -> Mapping[str, Any]:
        entry = self._sets.get(kind)
        if not entry:
            raise _not_found(kind, "set not registered")
        return entry


__all__ = ["FileMetadataProvider", "StaticMetadataProvider"]
