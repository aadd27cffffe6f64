"""Allow running wait-for-tcp as ``python -m wait_for_tcp``."""

from __future__ import annotations

from . import cli


def main() -> None:
    cli(prog_name="wait-for-tcp")


if __name__ == "__main__":  # pragma: no cover
    main()
