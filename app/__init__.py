"""FuE-Zeiterfassung: time tracking and subsidy reports for FZul and ZIM projects."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["__version__"]

DISTRIBUTION = "fue-zeiterfassung"


def _load_version() -> str:
    # A source checkout carries VERSION next to the package; installs use metadata.
    version_file = Path(__file__).resolve().parent.parent / "VERSION"
    if version_file.is_file():
        return version_file.read_text(encoding="utf-8").strip() or "0.0.0"
    try:
        return version(DISTRIBUTION)
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _load_version()
