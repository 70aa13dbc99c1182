"""Version checking for detecting a stale installed package."""

import tomllib
from pathlib import Path

PYPROJECT_PATH = Path(__file__).parent.parent.parent / "pyproject.toml"


def check_version_consistency(
    pyproject_path: Path = PYPROJECT_PATH,
) -> tuple[bool, str]:
    """Check that the runtime version matches pyproject.toml.

    An editable install picks up new code immediately, but a regular install
    keeps running the version it was built from.  Comparing the two tells
    the user to reinstall.

    Returns:
        Tuple of (is_consistent, message).
    """
    from . import __version__ as runtime_version

    if not pyproject_path.exists():
        return (
            False,
            "Cannot find pyproject.toml for version comparison",
        )

    try:
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        return False, f"Failed to read version from pyproject.toml: {e}"

    source_version = data.get("project", {}).get("version", "unknown")
    if runtime_version != source_version:
        return False, (
            f"Version mismatch detected! "
            f"Runtime: {runtime_version}, Source: {source_version}. "
            f"Reinstall with: pip install -e ."
        )

    return True, f"Version verified: {runtime_version}"
