"""
pdf-made-easy CLI

Renders a Jinja2 HTML template with a YAML/JSON data file into a PDF.

Commands:
    dev   - Build, then rebuild whenever the data or template file changes (default)
    build - Build once and exit

Examples:\n

    pme                                             # Same as 'pme dev'

    pme -d info.yml                                 # Watch with a different data file

    pme dev -t ./templates/default.html             # Watch with a different template

    pme build -o /home/user/document.pdf            # Build once to a given path
"""

import asyncio
import os
import signal
from dataclasses import dataclass, field
from typing import Optional, Union

import typer
from typing_extensions import Annotated

from pme import __version__
from pme.config import DEFAULT_CONFIG_FILENAME, load_config
from pme.contexts.building.builder import BuildRequest, build
from pme.contexts.building.logger import _log_debug, _log_info, log_session_error
from pme.contexts.building.watcher import Cleanup, develop
from pme.exceptions import PMEError
from pme.utils.logger import setup_logger

DEFAULT_DATA = "data.yml"
DEFAULT_TEMPLATE = "template.html"
DEFAULT_OUTPUT = "output.pdf"

SHUTDOWN_SIGNALS = [signal.SIGINT, signal.SIGTERM]
if hasattr(signal, "SIGHUP"):
    SHUTDOWN_SIGNALS.append(signal.SIGHUP)


# Commands resolved once from the command line


@dataclass(frozen=True)
class BuildCommand:
    request: BuildRequest
    root_dir: str


@dataclass(frozen=True)
class DevelopCommand:
    request: BuildRequest
    root_dir: str


Command = Union[BuildCommand, DevelopCommand]


@dataclass
class ShutdownHandle:
    """
    State shared between the watch session and the signal handlers.

    Attributes:
        cleanup: Cleanup function of the running watch session (if any)
        exit_code: Exit status to use once stopped
        stopped: Set when the session should end
    """

    cleanup: Optional[Cleanup] = None
    exit_code: int = 0
    stopped: asyncio.Event = field(default_factory=asyncio.Event)

    def request_stop(self, exit_code: int = 0) -> None:
        if not self.stopped.is_set():
            self.exit_code = exit_code
        self.stopped.set()

    def report_error(self, error: BaseException) -> None:
        """Process-level error reporter for a watch session that died."""
        log_session_error(error, "Watch session stopped")
        self.request_stop(exit_code=1)


def install_signal_handlers(handle: ShutdownHandle) -> None:
    """Route termination signals to `handle` so teardown runs on the event loop."""
    loop = asyncio.get_running_loop()

    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, handle.request_stop, 0)
        except NotImplementedError:
            # Windows event loops: Ctrl+C still arrives as KeyboardInterrupt
            _log_debug(f"Cannot install a handler for {sig.name} on this platform")


async def run_develop(command: DevelopCommand) -> int:
    handle = ShutdownHandle()
    install_signal_handlers(handle)

    handle.cleanup = await develop(
        command.request, command.root_dir, on_error=handle.report_error
    )

    await handle.stopped.wait()
    _log_info("Stopping...")
    await handle.cleanup()

    return handle.exit_code


async def run_command(command: Command) -> int:
    """Execute a resolved command and return the process exit status."""
    if isinstance(command, BuildCommand):
        await build(command.request, command.root_dir)
        return 0

    return await run_develop(command)


def execute(
    command_type: type,
    config: str,
    data: str,
    template: str,
    output: str,
    verbose: bool,
) -> None:
    """Set up logging, load the config and run `command_type` to completion."""
    setup_logger(
        context_name="dev" if command_type is DevelopCommand else "build",
        level="DEBUG" if verbose else None,
    )

    try:
        root_dir = os.getcwd()
        options = load_config(config, root_dir)
        request = BuildRequest(data=data, template=template, output=output, options=options)
        exit_code = asyncio.run(run_command(command_type(request=request, root_dir=root_dir)))
    except (PMEError, OSError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    raise typer.Exit(code=exit_code)


# Options shared by every command

ConfigOption = Annotated[
    str, typer.Option("--config", "-c", help="Path to YAML config file")
]
DataOption = Annotated[
    str, typer.Option("--data", "-d", help="Path to YAML, JSON, JSONC or JSON5 data file")
]
TemplateOption = Annotated[
    str, typer.Option("--template", "-t", help="Path to Jinja2 HTML template file")
]
OutputOption = Annotated[
    str, typer.Option("--output", "-o", help="Path to PDF output file")
]
VerboseOption = Annotated[
    bool, typer.Option("--verbose", "-v", help="Show debug output")
]


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


app = typer.Typer(
    help="Develop and create PDF documents from a template and a data file",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config: ConfigOption = DEFAULT_CONFIG_FILENAME,
    data: DataOption = DEFAULT_DATA,
    template: TemplateOption = DEFAULT_TEMPLATE,
    output: OutputOption = DEFAULT_OUTPUT,
    verbose: VerboseOption = False,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", help="Show version and exit", callback=_show_version, is_eager=True),
    ] = None,
):
    """Same as 'dev' when no command is given."""
    if ctx.invoked_subcommand is None:
        execute(DevelopCommand, config, data, template, output, verbose)


@app.command("dev")
def dev_command(
    config: ConfigOption = DEFAULT_CONFIG_FILENAME,
    data: DataOption = DEFAULT_DATA,
    template: TemplateOption = DEFAULT_TEMPLATE,
    output: OutputOption = DEFAULT_OUTPUT,
    verbose: VerboseOption = False,
):
    """
    Watch data and template files and output PDF on change.

    Examples:\n

        $ pme dev                                   # Watch data.yml and template.html

        $ pme dev -d info.yml -t resume.html        # Watch other files
    """
    execute(DevelopCommand, config, data, template, output, verbose)


@app.command("build")
def build_command(
    config: ConfigOption = DEFAULT_CONFIG_FILENAME,
    data: DataOption = DEFAULT_DATA,
    template: TemplateOption = DEFAULT_TEMPLATE,
    output: OutputOption = DEFAULT_OUTPUT,
    verbose: VerboseOption = False,
):
    """
    Output PDF using data and template files.

    Examples:\n

        $ pme build                                 # data.yml + template.html -> output.pdf

        $ pme build -o /home/user/document.pdf      # Write the PDF elsewhere
    """
    execute(BuildCommand, config, data, template, output, verbose)


if __name__ == "__main__":
    app()
