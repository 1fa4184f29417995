"""Command-line interface for prebuilt.

Example:
    >>> # From terminal:
    >>> # prebuilt ripgrep,bat@0.24.0
    >>> # prebuilt --safe --path ~/bin ripgrep
    >>> # prebuilt --index cuhttp+https://prebuilt.example.com/index --pub-key RWT... foo
    >>> # prebuilt --no-verify --reports deps_out foo
    >>> # PREBUILT_OUT=1 prebuilt foo  # JSON events on stdout
"""

from pathlib import Path
from typing import Annotated, Optional

import typer

from prebuilt import __version__
from prebuilt.config import Arguments, load_config
from prebuilt.errors import ConfigError
from prebuilt.observability import configure_logging, get_logger
from prebuilt.pipeline import run_from_config

app = typer.Typer(help="Download and install prebuilt binaries from a prebuilt index.")

logger = get_logger(__name__)


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show prebuilt version and exit.",
    callback=_version_callback,
    is_eager=True,
)


@app.command()
def install(
    packages: Annotated[
        list[str],
        typer.Argument(
            metavar="PKGS",
            help="Comma separated packages to install, as id or id@version.",
        ),
    ],
    target: Annotated[
        Optional[str],
        typer.Option("--target", envvar="PREBUILT_TARGET", help="Target triple to download."),
    ] = None,
    index: Annotated[
        Optional[str],
        typer.Option(
            "--index",
            envvar="PREBUILT_INDEX",
            help="Index to use, optionally prefixed with gh-pub+ or cuhttp+.",
        ),
    ] = None,
    auth: Annotated[
        Optional[str],
        typer.Option(
            "--auth", envvar="PREBUILT_AUTH", help="Bearer token for the index.", show_default=False
        ),
    ] = None,
    path: Annotated[
        Optional[Path],
        typer.Option("--path", envvar="PREBUILT_PATH", help="Directory to install binaries into."),
    ] = None,
    report_path: Annotated[
        Optional[Path],
        typer.Option(
            "--report-path", envvar="PREBUILT_REPORT_PATH", help="Directory to write reports into."
        ),
    ] = None,
    ci: Annotated[
        bool,
        typer.Option(
            "--ci",
            envvar="PREBUILT_CI",
            help="Ignore the config file, skip reports and overwrite existing binaries.",
        ),
    ] = False,
    no_create_path: Annotated[
        bool,
        typer.Option(
            "--no-create-path",
            envvar="PREBUILT_NO_CREATE_PATH",
            help="Fail instead of creating missing directories.",
        ),
    ] = False,
    reports: Annotated[
        Optional[str],
        typer.Option(
            "--reports",
            envvar="PREBUILT_REPORTS",
            help="Comma separated reports: license, deps, audit with _dl or _out.",
        ),
    ] = None,
    hashes: Annotated[
        Optional[str],
        typer.Option(
            "--hashes",
            envvar="PREBUILT_HASHES",
            help="Comma separated hash algorithms in order of preference, or none.",
        ),
    ] = None,
    sig: Annotated[
        Optional[str],
        typer.Option("--sig", envvar="PREBUILT_SIG", help="Signature scheme: minisign or none."),
    ] = None,
    pub_key: Annotated[
        Optional[str],
        typer.Option(
            "--pub-key",
            envvar="PREBUILT_PUB_KEY",
            help="Minisign public key trusted for --index.",
        ),
    ] = None,
    no_verify: Annotated[
        bool,
        typer.Option(
            "--no-verify", envvar="PREBUILT_NO_VERIFY", help="Skip signature and hash checks."
        ),
    ] = False,
    safe: Annotated[
        bool,
        typer.Option("--safe", envvar="PREBUILT_SAFE", help="Never overwrite existing binaries."),
    ] = False,
    out: Annotated[
        bool,
        typer.Option("--out", envvar="PREBUILT_OUT", help="Write JSON events to stdout."),
    ] = False,
    color: Annotated[
        bool,
        typer.Option("--color", envvar="FORCE_COLOR", help="Force colored log output."),
    ] = False,
    no_color: Annotated[
        bool,
        typer.Option("--no-color", envvar="NO_COLOR", help="Disable colored log output."),
    ] = False,
    version: bool = VERSION_OPTION,
) -> None:
    """Install PKGS from the index into the install directory."""
    arguments = Arguments(
        target=target,
        index=index,
        auth=auth,
        path=path,
        report_path=report_path,
        ci=ci,
        no_create_path=no_create_path,
        reports=reports,
        hashes=hashes,
        sig=sig,
        pub_key=pub_key,
        no_verify=no_verify,
        safe=safe,
        out=out,
        color=color,
        no_color=no_color,
        packages=packages,
    )
    try:
        config = load_config(arguments)
        if config.color is not None:
            configure_logging(colors=config.color, force=True)
        summary = run_from_config(config, echo=typer.echo)
    except ConfigError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(e.exit_code) from e

    for result in summary.failed:
        typer.echo(f"Failed to install {result.token}: {result.error}", err=True)
    if summary.exit_code:
        logger.warning(
            "prebuilt.run.incomplete",
            failed=[r.token for r in summary.failed],
            installed=len(summary.installed),
        )
    raise typer.Exit(summary.exit_code)


def main() -> None:
    """Run the prebuilt CLI."""
    app()


if __name__ == "__main__":
    main()
