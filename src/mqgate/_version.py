from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ("__version__",)

try:
    __version__ = version("mqgate")
except PackageNotFoundError:
    import tomllib

    # running from a source checkout: src/mqgate/_version.py -> pyproject.toml
    with (Path(__file__).resolve().parents[2] / "pyproject.toml").open("rb") as f:
        __version__ = tomllib.load(f)["project"]["version"]
