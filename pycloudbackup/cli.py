"""CLI interface for pycloudbackup."""

import logging
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import click

from .backup import CLOUD_PROVIDERS, BackupEngine, get_cloud_provider
from .backup.placeholder import decode_placeholder
from .cli_progress import run_backup_with_progress
from .config import SETTING_KEYS, config
from .exceptions import BackupError, ConfigurationError
from .output import OutputFormatter
from .utils import format_size, guess_real_name, is_placeholder_name

logger = logging.getLogger(__name__)


@contextmanager
def _cancel_on_sigterm(cancel_event: threading.Event) -> Iterator[None]:
    """Set ``cancel_event`` when SIGTERM arrives while the block runs."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum: int, frame: Any) -> None:
        logger.debug("Received signal %d, cancelling backup", signum)
        cancel_event.set()

    previous = signal.signal(signal.SIGTERM, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pycloudbackup")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """pycloudbackup - Back up cloud drive folders, including undownloaded files."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pycloudbackup").setLevel(logging.DEBUG)
    else:
        # Set default logging level to WARNING to suppress debug/info messages
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument(
    "source", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.argument("destination", type=click.Path(path_type=Path))
@click.option(
    "--yes",
    "-y",
    is_flag=True,
    help="Do not ask before replacing an existing destination",
)
@click.option("--no-progress", is_flag=True, help="Disable the progress display")
@click.option(
    "--cloud-provider",
    type=click.Choice(CLOUD_PROVIDERS),
    default="auto",
    show_default=True,
    help="How to request downloads of cloud placeholders",
)
@click.option(
    "--max-download-requests",
    type=click.IntRange(min=1),
    default=None,
    help="Give up on a placeholder after this many download requests",
)
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds between checks while only downloads are pending",
)
@click.pass_context
def backup(
    ctx: Any,
    source: Path,
    destination: Path,
    yes: bool,
    no_progress: bool,
    cloud_provider: str,
    max_download_requests: Optional[int],
    poll_interval: Optional[float],
) -> None:
    """Back up SOURCE into DESTINATION.

    DESTINATION is deleted and recreated. Cloud placeholders in SOURCE are
    downloaded on demand and copied under their real names.

    Examples:
        pycloudbackup backup ~/iCloudDrive /Volumes/Backup/iCloud
        pycloudbackup backup -y --max-download-requests 3 ./docs ./docs-backup
        pycloudbackup --json backup -y --no-progress ./docs ./docs-backup
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        settings = config.load_settings().with_overrides(
            max_download_requests=max_download_requests,
            poll_interval=poll_interval,
        )
        cloud = get_cloud_provider(cloud_provider)
    except ConfigurationError as e:
        out.error(str(e))
        ctx.exit(1)

    if destination.exists() and not yes:
        click.confirm(
            f"{destination} exists and will be replaced. Continue?",
            abort=True,
            err=True,
        )

    if not cloud.available and not (out.quiet or out.json_output):
        out.warning(
            "No cloud sync client found, placeholders that are not "
            "downloaded yet will be reported as failed"
        )

    engine_out = OutputFormatter(
        json_output=out.json_output,
        quiet=out.quiet or out.json_output,
    )
    engine = BackupEngine(settings=settings, cloud=cloud, output=engine_out)
    cancel_event = threading.Event()

    try:
        with _cancel_on_sigterm(cancel_event):
            report = run_backup_with_progress(
                engine,
                source,
                destination,
                show_progress=not (no_progress or out.quiet or out.json_output),
                cancel_event=cancel_event,
            )
    except KeyboardInterrupt:
        out.warning("Backup cancelled by user")
        ctx.exit(130)
    except BackupError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json(report.to_dict())

    if not report.succeeded:
        ctx.exit(1)


@main.command()
@click.argument(
    "placeholder", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.pass_context
def inspect(ctx: Any, placeholder: Path) -> None:
    """Show the real name and size behind a cloud PLACEHOLDER file.

    Examples:
        pycloudbackup inspect ".photo.jpg.icloud"
    """
    out: OutputFormatter = ctx.obj["out"]
    try:
        settings = config.load_settings()
    except ConfigurationError as e:
        out.error(str(e))
        ctx.exit(1)

    if not is_placeholder_name(placeholder.name, settings.placeholder_suffix):
        out.warning(f"{placeholder.name} does not look like a placeholder file")

    try:
        info = decode_placeholder(placeholder.read_bytes())
    except (BackupError, OSError) as e:
        out.error(f"Cannot decode {placeholder}: {e}")
        ctx.exit(1)

    downloaded = placeholder.parent / info.real_name
    if out.json_output:
        out.output_json(
            {
                "placeholder": str(placeholder),
                "real_name": info.real_name,
                "size_bytes": info.size_bytes,
                "downloaded": downloaded.exists(),
            }
        )
        return

    out.print(f"Placeholder: {placeholder}")
    out.print(f"Real name:   {info.real_name}")
    out.print(f"Size:        {format_size(info.size_bytes)} ({info.size_bytes} B)")
    out.print(f"Downloaded:  {'yes' if downloaded.exists() else 'no'}")

    guessed = guess_real_name(placeholder.name, settings.placeholder_suffix)
    if guessed is not None and guessed != info.real_name:
        out.warning(
            f"On-disk name suggests {guessed!r}, backup uses {info.real_name!r}"
        )


@main.command(name="config")
@click.option(
    "--set",
    "assignments",
    multiple=True,
    metavar="KEY=VALUE",
    help="Save a setting to the config file (repeatable)",
)
@click.pass_context
def config_command(ctx: Any, assignments: tuple[str, ...]) -> None:
    """Show or change the backup settings.

    Examples:
        pycloudbackup config
        pycloudbackup config --set max_download_requests=5
        pycloudbackup config --set request_delay=8,12
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        if assignments:
            values = {}
            for assignment in assignments:
                key, sep, value = assignment.partition("=")
                key = key.strip()
                if not sep or key not in SETTING_KEYS:
                    raise ConfigurationError(
                        f"Expected KEY=VALUE with KEY one of {', '.join(SETTING_KEYS)}"
                    )
                values[key] = value.strip()
            path = config.save_settings(values)
            out.success(f"Configuration saved to {path}")

        settings = config.load_settings()
    except ConfigurationError as e:
        out.error(str(e))
        ctx.exit(1)

    data = {
        "placeholder_suffix": settings.placeholder_suffix,
        "ignored_names": sorted(settings.ignored_names),
        "download_backoff": settings.download_backoff,
        "request_delay": list(settings.request_delay),
        "recheck_delay": list(settings.recheck_delay),
        "poll_interval": settings.poll_interval,
        "max_download_requests": settings.max_download_requests,
    }

    if out.json_output:
        out.output_json({"config_file": str(config.get_config_path()), **data})
        return

    out.print(f"Config file: {config.get_config_path()}")
    for key, value in data.items():
        out.print(f"  {key}: {value}")


if __name__ == "__main__":
    main()
