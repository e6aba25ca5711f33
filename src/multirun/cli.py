"""
CLI entry point: ``multirun <instructions-file> [extra-arg ...]``.
"""

import sys
from typing import List, Optional, Tuple

import click

from .config import EngineSettings
from .exceptions import MultirunError
from .execution import run_plan
from .instructions import load_plan
from .invocation import InvocationBuilder
from .logging import MultirunLogger


@click.command(
    context_settings={
        "ignore_unknown_options": True,
        "allow_interspersed_args": False,
    }
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--log-dir", type=str, help="Directory for log files")
@click.argument("instructions", type=str)
@click.argument("extra_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def cli(
    ctx: click.Context,
    instructions: str,
    extra_args: Tuple[str, ...],
    debug: bool = False,
    log_dir: Optional[str] = None,
):
    """Run the commands described by an instructions file.

    Arguments after INSTRUCTIONS are appended to every command.
    """
    try:
        settings = EngineSettings().with_overrides(debug=debug, log_dir=log_dir)
        MultirunLogger().setup(
            debug=settings.debug,
            log_dir=str(settings.log_dir) if settings.log_dir else None,
        )
        plan = load_plan(instructions, list(extra_args))
        builder = InvocationBuilder.for_host(shell_env_var=settings.shell_env_var)
    except MultirunError as e:
        click.secho(f"✗ {str(e)}", fg="red", err=True)
        raise click.Abort() from e

    result = run_plan(plan, builder)
    ctx.exit(result.exit_code)


def main(argv: Optional[List[str]] = None) -> None:
    """Console script entry point; every failure exits with status 1."""
    try:
        exit_code = cli.main(args=argv, prog_name="multirun", standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(1)
    except click.Abort:
        sys.exit(1)
    sys.exit(exit_code if isinstance(exit_code, int) else 0)


if __name__ == "__main__":
    main()
