"""
Core package for the Lumina learning portal.

Kept import-light so the policy helpers can be used without the HTTP app or
the language-model stack being importable.
"""

from importlib import metadata


def get_version() -> str:
    """Return the installed project version."""
    try:
        return metadata.version("lumina-lms")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__all__ = ["get_version"]
