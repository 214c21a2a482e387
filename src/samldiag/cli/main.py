"""CLI entry point wrapper.

The :func:`main` function simply proxies to the Typer application
exported by :mod:`samldiag.cli.app`.
"""

from __future__ import annotations

from samldiag.cli.app import main as _app_main


def main(argv: list[str] | None = None) -> None:
    """Invoke the SAMLDiag CLI.

    Parameters
    ----------
    argv:
        Optional list of arguments to pass to Typer. When ``None`` the
        process arguments are used.
    """

    _app_main(argv)


__all__ = ["main"]
