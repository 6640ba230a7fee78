"""
Command-line interface for drive-player.

This module implements the CLI using Click, with rich-click for the
help output colors.

Commands:
    driveplayer login                          Sign in with a device code
    driveplayer logout                         Forget the cached account
    driveplayer ls [FOLDER_ID] [--all]         Browse a remote folder
    driveplayer download FOLDER_ID --name N    Save a folder tree offline
    driveplayer offline                        List offline files
    driveplayer rm NAME                        Delete one offline file
    driveplayer clear [--yes]                  Delete every offline file
    driveplayer hide FOLDER_ID NAME            Hide a folder from ls
    driveplayer unhide FOLDER_ID               Show a hidden folder again
    driveplayer hidden                         List hidden folders
    driveplayer play [FOLDER_ID] [--start N]   Play offline tracks

Options:
    --config <path>                            config.yaml to use

Player keys:
    n next, p previous, space play/pause, s stop, f/b seek 10 s,
    i position, u upcoming, q quit

Exit codes:
    1   configuration error
    2   database error
    3   sign-in or permission error
    4   any other drive-player error
    130 interrupted
"""

import mimetypes
import sys
from pathlib import Path
from typing import Callable

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.COMMAND_GROUPS = {
    "cli": [
        {
            "name": "Account",
            "commands": ["login", "logout"],
        },
        {
            "name": "Browse & Download",
            "commands": ["ls", "download", "hide", "unhide", "hidden"],
        },
        {
            "name": "Offline",
            "commands": ["offline", "rm", "clear", "play"],
        },
    ],
}

from drive_player import __version__
from drive_player.cache import CacheEntry, CacheStore
from drive_player.catalog import (
    CatalogClient,
    CatalogItem,
    DeviceCodeCredentialProvider,
    ItemKind,
    audio_items,
    sort_for_display,
)
from drive_player.core import (
    AuthError,
    Config,
    ConfigError,
    Database,
    DatabaseError,
    DrivePlayerError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from drive_player.playback import (
    PlaybackError,
    PlaybackEvent,
    PlaybackManager,
    PlaybackStopped,
    PlaybackToggled,
    TrackFinished,
    TrackLoading,
    TrackStarted,
)
from drive_player.sync import SyncCoordinator, SyncFailure
from drive_player.utils import ensure_directory, format_duration, format_file_size

logger = get_logger(__name__)


SEEK_STEP_SECONDS = 10


class _Runtime:
    """
    Objects shared by the commands of one invocation.

    The catalog client and credential provider are created on first use,
    so offline-only commands never touch the network.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self.database = Database(config.database_path)
        self.store = CacheStore(config.cache_directory)
        self._credentials: DeviceCodeCredentialProvider | None = None
        self._client: CatalogClient | None = None

    @property
    def credentials(self) -> DeviceCodeCredentialProvider:
        if self._credentials is None:
            self._credentials = DeviceCodeCredentialProvider(
                self.config.auth,
                self.config.token_path,
                prompt=_show_sign_in_prompt
            )
        return self._credentials

    @property
    def client(self) -> CatalogClient:
        if self._client is None:
            self._client = CatalogClient(
                credentials=self.credentials,
                page_size=self.config.sync.page_size
            )
        return self._client

    def close(self) -> None:
        self.database.close()


def _show_sign_in_prompt(message: str) -> None:
    click.secho(message, fg="yellow", err=True)


def _run_command(config_path: Path | None, action: Callable[[_Runtime], None]) -> None:
    """
    Load configuration, set up logging and run one command.

    Maps drive-player errors to exit codes and always shuts logging down.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    runtime: _Runtime | None = None

    try:
        config = load_config(config_path)
        ensure_directory(config.storage.directory)
        setup_logging(config.storage.directory)

        runtime = _Runtime(config)
        action(runtime)

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except DatabaseError as e:
        click.echo(f"Database error: {e.message}", err=True)
        logger.error(f"Database error: {e.message}", exc_info=True)
        sys.exit(2)

    except AuthError as e:
        click.echo(f"Sign-in error: {e.message}", err=True)
        click.echo("Run 'driveplayer login' to sign in again", err=True)
        logger.error(f"Sign-in error: {e.message}", exc_info=True)
        sys.exit(3)

    except DrivePlayerError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        if runtime is not None:
            runtime.close()
        shutdown_logging()


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)
@click.version_option(__version__, "--version", prog_name="drive-player")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """
    drive-player: Play your OneDrive music offline.

    \b
    GETTING STARTED:
        driveplayer login                             # Sign in
        driveplayer ls                                # Browse the drive root
        driveplayer download <folder-id> --name "A"   # Save a folder offline
        driveplayer play                              # Play offline files
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# =============================================================================
# Account
# =============================================================================

@cli.command()
@click.pass_context
def login(ctx: click.Context) -> None:
    """Sign in with a device code."""
    def action(runtime: _Runtime) -> None:
        runtime.credentials.sign_in()
        click.secho("Signed in.", fg="green")

    _run_command(ctx.obj["config_path"], action)


@cli.command()
@click.pass_context
def logout(ctx: click.Context) -> None:
    """Forget the cached account."""
    def action(runtime: _Runtime) -> None:
        runtime.credentials.sign_out()
        click.echo("Signed out.")

    _run_command(ctx.obj["config_path"], action)


# =============================================================================
# Browse & Download
# =============================================================================

@cli.command("ls")
@click.argument("folder_id", required=False)
@click.option("--all", "fetch_all", is_flag=True, help="Fetch every page of the listing")
@click.pass_context
def list_folder(ctx: click.Context, folder_id: str | None, fetch_all: bool) -> None:
    """List a remote folder (the drive root by default)."""
    def action(runtime: _Runtime) -> None:
        if fetch_all:
            items = runtime.client.list_all_children(folder_id)
        else:
            items = runtime.client.list_children(folder_id)

        hidden = runtime.database.hidden_folder_ids()
        visible = [item for item in sort_for_display(items) if item.id not in hidden]

        if not visible:
            click.echo("(empty)")
            return

        for item in visible:
            click.echo(_format_listing_line(item, runtime.store))

        if len(visible) < len(items):
            click.echo(f"({len(items) - len(visible)} hidden)")

    _run_command(ctx.obj["config_path"], action)


@cli.command()
@click.argument("folder_id")
@click.option("--name", "folder_name", required=True, help="Offline folder name")
@click.option("--threads", type=click.IntRange(min=1), default=None, help="Parallel downloads")
@click.pass_context
def download(ctx: click.Context, folder_id: str, folder_name: str, threads: int | None) -> None:
    """Save every audio file under a remote folder offline."""
    def action(runtime: _Runtime) -> None:
        def record(item: CatalogItem, path: Path) -> None:
            runtime.database.record_download(item.id, item.name, path.parent.name, path)

        coordinator = SyncCoordinator(
            runtime.client,
            runtime.store,
            threads=threads or runtime.config.sync.threads,
            on_error=_report_sync_failure,
            on_downloaded=record
        )
        stats = coordinator.download_folder(folder_id, folder_name)

        logger.info("=" * 60)
        logger.info("OFFLINE SYNC")
        logger.info("=" * 60)
        logger.info(f"Folders scanned:   {stats.folders}")
        logger.info(f"Downloaded:        {stats.downloaded}")
        logger.info(f"Already offline:   {stats.skipped}")
        logger.info(f"Failed:            {stats.failed}")
        logger.info(f"Not audio:         {stats.ignored}")
        logger.info("=" * 60)

    _run_command(ctx.obj["config_path"], action)


@cli.command()
@click.argument("folder_id")
@click.argument("name")
@click.pass_context
def hide(ctx: click.Context, folder_id: str, name: str) -> None:
    """Hide a folder from listings."""
    def action(runtime: _Runtime) -> None:
        runtime.database.hide_folder(folder_id, name)
        click.echo(f"Hidden: {name}")

    _run_command(ctx.obj["config_path"], action)


@cli.command()
@click.argument("folder_id")
@click.pass_context
def unhide(ctx: click.Context, folder_id: str) -> None:
    """Show a hidden folder again."""
    def action(runtime: _Runtime) -> None:
        if runtime.database.unhide_folder(folder_id):
            click.echo(f"Unhidden: {folder_id}")
        else:
            click.echo(f"Folder {folder_id} was not hidden", err=True)

    _run_command(ctx.obj["config_path"], action)


@cli.command()
@click.pass_context
def hidden(ctx: click.Context) -> None:
    """List hidden folders."""
    def action(runtime: _Runtime) -> None:
        folders = runtime.database.get_hidden_folders()
        if not folders:
            click.echo("No hidden folders")
            return
        for folder in folders:
            click.echo(f"{folder['name']}  {click.style(folder['folder_id'], dim=True)}")

    _run_command(ctx.obj["config_path"], action)


# =============================================================================
# Offline
# =============================================================================

@cli.command()
@click.pass_context
def offline(ctx: click.Context) -> None:
    """List offline files."""
    def action(runtime: _Runtime) -> None:
        entries = runtime.store.entries()
        if not entries:
            click.echo("No offline files")
            return
        for entry in entries:
            folder = f"{entry.folder}/" if entry.folder else ""
            click.echo(
                f"{format_duration(entry.duration_seconds):>8}  "
                f"{format_file_size(entry.size_bytes):>9}  {folder}{entry.name}"
            )
        click.echo(
            f"{len(entries)} files, {format_file_size(runtime.store.total_size())}"
        )

    _run_command(ctx.obj["config_path"], action)


@cli.command()
@click.argument("name")
@click.pass_context
def rm(ctx: click.Context, name: str) -> None:
    """Delete one offline file by name."""
    def action(runtime: _Runtime) -> None:
        if runtime.store.delete(name):
            runtime.database.forget_download(name)
            click.echo(f"Deleted: {name}")
        else:
            click.echo(f"Not offline: {name}", err=True)

    _run_command(ctx.obj["config_path"], action)


@cli.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clear(ctx: click.Context, yes: bool) -> None:
    """Delete every offline file."""
    def action(runtime: _Runtime) -> None:
        if not yes and not click.confirm("Delete all offline files?", default=False):
            click.echo("Cancelled")
            return
        runtime.store.delete_all()
        runtime.database.clear_downloads()
        click.echo("All offline files deleted")

    _run_command(ctx.obj["config_path"], action)


@cli.command()
@click.argument("folder_id", required=False)
@click.option("--start", type=click.IntRange(min=0), default=0, help="Index of the first track")
@click.pass_context
def play(ctx: click.Context, folder_id: str | None, start: int) -> None:
    """
    Play offline tracks.

    With FOLDER_ID, the audio files of that remote folder are queued in
    listing order (only the offline ones can play). Without it, every
    offline file is queued.

    \b
    KEYS:
        n  next        p  previous     space  play/pause
        s  stop        u  upcoming     q      quit
        f  +10 s       b  -10 s        i      position
    """
    def action(runtime: _Runtime) -> None:
        if folder_id:
            tracks = audio_items(sort_for_display(runtime.client.list_all_children(folder_id)))
        else:
            tracks = [_item_from_entry(entry) for entry in runtime.store.entries()]

        if not tracks:
            click.echo("Nothing to play")
            return

        # libmpv is only needed here
        from drive_player.playback.mpv_engine import MpvEngine

        manager = PlaybackManager(runtime.store, MpvEngine)
        subscription = manager.events.subscribe(_print_event)
        try:
            manager.play(tracks, min(start, len(tracks) - 1))
            _transport_loop(manager, runtime.config.playback.upcoming_count)
        finally:
            subscription.dispose()
            manager.stop()

    _run_command(ctx.obj["config_path"], action)


# =============================================================================
# Helpers
# =============================================================================

def _format_listing_line(item: CatalogItem, store: CacheStore) -> str:
    if item.is_folder:
        count = f" ({item.child_count})" if item.child_count is not None else ""
        name = click.style(f"{item.name}/", fg="blue", bold=True)
        return f"{name}{count}  {click.style(item.id, dim=True)}"

    marker = " "
    if item.is_audio:
        marker = click.style("*", fg="green") if store.exists(item.name) else "-"
    return f"{marker} {item.name}  {click.style(item.id, dim=True)}"


def _item_from_entry(entry: CacheEntry) -> CatalogItem:
    mime_type, _ = mimetypes.guess_type(entry.name)
    return CatalogItem(id=entry.name, name=entry.name, kind=ItemKind.FILE, mime_type=mime_type)


def _report_sync_failure(failure: SyncFailure) -> None:
    kind = "folder" if failure.is_folder else "file"
    click.secho(f"Failed {kind}: {failure.name} ({failure.error})", fg="red", err=True)


def _print_event(event: PlaybackEvent) -> None:
    if isinstance(event, TrackLoading):
        click.echo(f"Loading [{event.index + 1}] {event.item.name}")
    elif isinstance(event, TrackStarted):
        click.secho(f"Playing [{event.index + 1}] {event.item.name}", fg="green")
    elif isinstance(event, PlaybackToggled):
        click.echo("Playing" if event.is_playing else "Paused")
    elif isinstance(event, TrackFinished):
        click.echo(f"Finished {event.item.name}")
    elif isinstance(event, PlaybackStopped):
        click.echo("Stopped")
    elif isinstance(event, PlaybackError):
        click.secho(f"Playback error: {event.error}", fg="red", err=True)


def _transport_loop(manager: PlaybackManager, upcoming_count: int) -> None:
    """Read single key presses until 'q'."""
    while True:
        key = click.getchar()
        if key == "q":
            return
        if key == "n":
            if manager.has_next:
                manager.next()
            else:
                click.echo("Last track")
        elif key == "p":
            if manager.has_previous:
                manager.previous()
            else:
                click.echo("First track")
        elif key == " ":
            manager.toggle_play_pause()
        elif key == "s":
            manager.stop()
        elif key == "f":
            manager.seek(manager.position + SEEK_STEP_SECONDS)
        elif key == "b":
            manager.seek(max(0.0, manager.position - SEEK_STEP_SECONDS))
        elif key == "i":
            click.echo(
                f"{format_duration(manager.position)} / {format_duration(manager.duration)}"
                f"  [{manager.state.value}]"
            )
        elif key == "u":
            upcoming = list(manager.upcoming(upcoming_count))
            if not upcoming:
                click.echo("Nothing queued")
            for offset, item in enumerate(upcoming, start=1):
                click.echo(f"  +{offset} {item.name}")


def main() -> None:
    """
    Entry point for the CLI.

    Called when running `driveplayer` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
