"""
Command-line interface for session_signup.

Provides CLI commands for authentication, conference setup, registration
processing and timesheet payroll, all driven from one Google spreadsheet.

Usage:
    # Show help
    session-signup --help

    # Authenticate the Google account
    session-signup auth

    # Create or update the calendar and registration form
    session-signup setup
    session-signup setup --dry-run

    # Invite registrants to the sessions they picked
    session-signup process-responses
    session-signup watch --interval 5m
"""

import sys
from pathlib import Path
from typing import Any, NoReturn, Optional

import click

from session_signup import __version__
from session_signup.api.base import GoogleAPIError, TransientUnavailable
from session_signup.api.calendar_api import CalendarAPI
from session_signup.api.forms_api import FormsAPI
from session_signup.api.gmail_api import GmailAPI
from session_signup.api.sheets_api import SheetsAPI
from session_signup.auth.google_auth import (
    DEFAULT_AUTH_TIMEOUT,
    AuthenticationError,
    GoogleAuth,
)
from session_signup.cli.formatters import show_event_changes, show_stored_state
from session_signup.config.generator import save_config_file
from session_signup.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from session_signup.config.settings import (
    DEFAULT_SETUP_SHEET,
    DEFAULT_WATCH_INTERVAL,
    ApiSettings,
    ConferenceSettings,
    TimesheetSettings,
)
from session_signup.daemon import (
    DaemonAlreadyRunningError,
    DaemonError,
    DaemonScheduler,
    TableBusyError,
    TableLock,
    parse_interval,
)
from session_signup.storage.db import SyncDatabase
from session_signup.storage.registry import ConfigMissing, DatabaseRegistry
from session_signup.sync.engine import ConferenceEngine
from session_signup.sync.responses import ResponseProcessor
from session_signup.timesheet.payroll import PayrollProcessor
from session_signup.utils import resolve_config_dir
from session_signup.utils.logging import cleanup_old_logs, get_logger, setup_logging

# State database inside the configuration directory
DATABASE_FILE = "state.db"

# Watcher PID file inside the configuration directory
WATCH_PID_FILE = "watch.pid"

# Lock name shared by every run of the response processor
RESPONSES_LOCK = "registration responses"

RESET_CONFIRMATION = (
    "Are you sure you want to reset the conference registration? "
    "This will unlink any existing calendar and form, and cause a new "
    "calendar and form to be created next time you run 'setup'."
)


def get_config_dir(config_dir: Optional[str]) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_file: Optional[str], config_dir: Path) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file)
    return config_dir / DEFAULT_CONFIG_FILE


# =============================================================================
# Workspace helpers
# =============================================================================


def open_database(ctx: click.Context) -> SyncDatabase:
    """Open (and create if needed) the state database of the config dir."""
    db_path = ctx.obj["config_dir"] / DATABASE_FILE
    db_path.parent.mkdir(parents=True, exist_ok=True)
    database = SyncDatabase(str(db_path))
    database.initialize()
    return database


def get_credentials(ctx: click.Context) -> Any:
    """
    Load stored credentials of the authenticated account.

    Raises:
        AuthenticationError: If the account is not authenticated
    """
    config = ctx.obj["config"]
    auth = GoogleAuth(
        config_dir=ctx.obj["config_dir"],
        auth_timeout=config.get("auth_timeout", DEFAULT_AUTH_TIMEOUT),
    )
    credentials = auth.get_credentials()
    if credentials is None:
        raise AuthenticationError(
            "Not authenticated. Run 'session-signup auth' first."
        )
    return credentials


def build_engine(
    ctx: click.Context, authenticated: bool = True
) -> tuple[ConferenceEngine, SyncDatabase]:
    """
    Build the conference engine from the loaded configuration.

    Args:
        ctx: Click context holding config and config_dir
        authenticated: Load credentials. Commands that only read stored ids
                       skip this; the API clients connect lazily.

    Returns:
        Tuple of (engine, state database)

    Raises:
        ConfigMissing: If no spreadsheet id is configured
        AuthenticationError: If credentials are required but missing
    """
    config = ctx.obj["config"]
    settings = ConferenceSettings.from_config(config)
    api_kwargs = ApiSettings.from_config(config).as_kwargs()
    credentials = get_credentials(ctx) if authenticated else None

    database = open_database(ctx)
    engine = ConferenceEngine(
        sheets=SheetsAPI(credentials, settings.spreadsheet_id, **api_kwargs),
        calendar=CalendarAPI(credentials, **api_kwargs),
        forms=FormsAPI(credentials, **api_kwargs),
        registry=DatabaseRegistry(database),
        settings=settings,
        database=database,
    )
    return engine, database


def build_response_processor(ctx: click.Context) -> ResponseProcessor:
    """Build a response processor sharing the engine's clients and database."""
    engine, database = build_engine(ctx)
    return ResponseProcessor(engine, engine.forms, engine.registry, database)


def build_payroll(ctx: click.Context) -> PayrollProcessor:
    """
    Build the timesheet processor from the loaded configuration.

    Raises:
        ConfigMissing: If no spreadsheet id is configured
        AuthenticationError: If the account is not authenticated
    """
    config = ctx.obj["config"]
    settings = TimesheetSettings.from_config(config)
    api_kwargs = ApiSettings.from_config(config).as_kwargs()
    credentials = get_credentials(ctx)
    return PayrollProcessor(
        sheets=SheetsAPI(credentials, settings.spreadsheet_id, **api_kwargs),
        gmail=GmailAPI(credentials, **api_kwargs),
        settings=settings,
    )


def fail(logger: Any, error: Exception, action: str) -> NoReturn:
    """
    Report a command failure and exit with status 1.

    Known failures are shown as a plain message; anything else is logged
    with its traceback.
    """
    if isinstance(error, (ConfigMissing, ConfigError, TableBusyError)):
        logger.error(f"{action} failed: {error}")
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
    elif isinstance(error, AuthenticationError):
        logger.error(f"{action} failed: {error}")
        click.echo(
            click.style(f"Authentication failed: {error}", fg="red"), err=True
        )
    elif isinstance(error, TransientUnavailable):
        logger.error(f"{action} aborted: {error}")
        click.echo(
            click.style(f"\n{action} aborted, Google is unavailable: {error}", fg="red"),
            err=True,
        )
        click.echo("Work finished before the failure is kept. Run again later.")
    elif isinstance(error, GoogleAPIError):
        logger.error(f"{action} failed: {error}")
        click.echo(click.style(f"\n{action} failed: {error}", fg="red"), err=True)
    else:
        logger.exception(f"{action} failed: {error}")
        click.echo(click.style(f"\n{action} failed: {error}", fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="session-signup")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="SESSION_SIGNUP_CONFIG_DIR",
    help="Configuration directory path (default: ~/.session-signup).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="SESSION_SIGNUP_CONFIG_FILE",
    help="Configuration file path (default: <config dir>/config.yaml).",
)
@click.option(
    "--spreadsheet-id",
    "-s",
    envvar="SESSION_SIGNUP_SPREADSHEET_ID",
    help="Spreadsheet to work on (overrides spreadsheet_id in the config file).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: Optional[str],
    config_file: Optional[str],
    spreadsheet_id: Optional[str],
) -> None:
    """
    Conference session signup from a Google spreadsheet.

    Turns the rows of a setup sheet into calendar events and a registration
    form, invites registrants to the sessions they pick, and runs the
    timesheet approval workflow.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(config_file, resolved_config_dir)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    config: dict[str, Any] = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Commands still run with defaults
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    if spreadsheet_id:
        config["spreadsheet_id"] = spreadsheet_id

    ctx.obj["config"] = config

    effective_verbose = verbose or config.get("verbose", False)
    ctx.obj["verbose"] = effective_verbose

    log_dir = None
    if config.get("log_dir"):
        log_dir = Path(config["log_dir"]).expanduser()

    setup_logging(verbose=effective_verbose, log_dir=log_dir, enable_file_logging=True)

    log_retention = config.get("log_retention_count", 10)
    if log_retention > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=log_retention)


# =============================================================================
# Auth Command
# =============================================================================


@cli.command("auth")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Force re-authentication even if already authenticated.",
)
@click.pass_context
def auth_command(ctx: click.Context, force: bool) -> None:
    """
    Authenticate the Google account.

    Opens a browser window to complete the OAuth flow and stores
    the credentials for future use. The account needs access to the
    spreadsheet, its calendars, its forms and Gmail.

    Examples:

        # Authenticate
        session-signup auth

        # Force re-authentication
        session-signup auth --force
    """
    logger = get_logger(__name__)
    config_dir = ctx.obj["config_dir"]
    config = ctx.obj["config"]

    click.echo("Authenticating...")

    try:
        auth = GoogleAuth(
            config_dir=config_dir,
            auth_timeout=config.get("auth_timeout", DEFAULT_AUTH_TIMEOUT),
        )

        if not force and auth.is_authenticated():
            click.echo(click.style("Already authenticated.", fg="green"))
            click.echo("Use --force to re-authenticate.")
            return

        auth.authenticate(force_reauth=force)

        email = auth.get_account_email()
        if email:
            click.echo(click.style(f"Successfully authenticated ({email})!", fg="green"))
        else:
            click.echo(click.style("Successfully authenticated!", fg="green"))

        logger.info("Authentication completed")

    except FileNotFoundError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        click.echo("\nTo get started:", err=True)
        click.echo("1. Go to https://console.cloud.google.com/", err=True)
        click.echo(
            "2. Create a project and enable the Sheets, Calendar, Forms "
            "and Gmail APIs",
            err=True,
        )
        click.echo("3. Create OAuth 2.0 credentials (Desktop application)", err=True)
        click.echo(
            f"4. Download and save as: {config_dir / 'credentials.json'}", err=True
        )
        sys.exit(1)

    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        click.echo(click.style(f"Authentication failed: {e}", fg="red"), err=True)
        sys.exit(1)

    except Exception as e:
        logger.exception(f"Unexpected error during authentication: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Status Command
# =============================================================================


@cli.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """
    Show authentication status and stored state.

    Displays whether the account is authenticated, which spreadsheet,
    calendar and form are in use, the last setup run and whether the
    response watcher is running.

    Example:

        session-signup status
    """
    logger = get_logger(__name__)
    config_dir = ctx.obj["config_dir"]
    config = ctx.obj["config"]

    try:
        auth = GoogleAuth(config_dir=config_dir)
        auth_status = auth.get_auth_status()

        click.echo("=== Session Signup Status ===\n")

        click.echo(f"Configuration directory: {auth_status['config_dir']}")
        creds_status = (
            "Found"
            if auth_status["credentials_exist"]
            else click.style("Not found", fg="red")
        )
        click.echo(f"OAuth credentials: {creds_status}")

        if auth_status["authenticated"]:
            label = auth.get_account_email() or "Authenticated"
            click.echo(f"Account: {click.style(label, fg='green')}")
        elif auth_status["token_exists"]:
            click.echo(
                f"Account: {click.style('Token expired or invalid', fg='yellow')}"
            )
        else:
            click.echo(f"Account: {click.style('Not authenticated', fg='red')}")

        spreadsheet_id = config.get("spreadsheet_id")
        click.echo(
            "Spreadsheet: "
            + (spreadsheet_id or click.style("Not configured", fg="yellow"))
        )
        click.echo()

        db_path = config_dir / DATABASE_FILE
        if db_path.exists():
            database = open_database(ctx)
            setup_sheet = config.get("setup_sheet", DEFAULT_SETUP_SHEET)
            show_stored_state(
                DatabaseRegistry(database).items(),
                {setup_sheet: database.get_last_run(setup_sheet)},
                database.get_processed_count(),
            )
        else:
            click.echo("State database: Not initialized (no setup performed yet)")

        pid_file = _watch_pid_file(ctx)
        pid = DaemonScheduler.get_running_pid(pid_file)
        click.echo()
        if pid is not None:
            running = click.style(f"Running (PID {pid})", fg="green")
            click.echo(f"Response watcher: {running}")
        else:
            click.echo("Response watcher: Not running")

    except Exception as e:
        logger.exception(f"Error getting status: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Init-Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Creates a configuration file with all available options documented
    and commented out. Set spreadsheet_id before running 'setup'.

    Examples:

        # Create config file (fails if already exists)
        session-signup init-config

        # Overwrite existing config file
        session-signup init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Set spreadsheet_id to the id of your setup spreadsheet")
        click.echo("2. Run 'session-signup auth' and then 'session-signup setup'")
        logger.info(f"Created configuration file: {config_file}")
    else:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        logger.error(f"Failed to create configuration file: {error}")
        sys.exit(1)


# =============================================================================
# Setup Command
# =============================================================================


@cli.command("setup")
@click.option(
    "--dry-run", "-n", is_flag=True, help="Preview changes without applying them."
)
@click.pass_context
def setup_command(ctx: click.Context, dry_run: bool) -> None:
    """
    Set up the conference calendar and registration form.

    Creates an event for every session row without one (writing its id
    back into the row), updates the events of the other rows, and rebuilds
    the time slot questions of the form. Run it again after editing the
    sheet; existing events are updated, never duplicated or deleted.

    Examples:

        # Preview changes without applying
        session-signup setup --dry-run

        # Create or update everything
        session-signup setup
    """
    logger = get_logger(__name__)
    config = ctx.obj["config"]
    verbose = ctx.obj["verbose"]
    effective_dry_run = dry_run or config.get("dry_run", False)

    try:
        engine, _ = build_engine(ctx)
        settings = engine.settings

        mode = "Analyzing" if effective_dry_run else "Setting up"
        click.echo(f"{mode} conference from '{settings.setup_sheet}'...")

        with TableLock(settings.setup_sheet, ctx.obj["config_dir"]):
            result = engine.set_up_conference(dry_run=effective_dry_run)

        click.echo("\n" + "=" * 50)
        click.echo(result.summary())
        click.echo("=" * 50)

        if verbose or effective_dry_run:
            show_event_changes(result)

        if effective_dry_run:
            click.echo(
                click.style("\nDry run complete. No changes were made.", fg="yellow")
            )
            click.echo("Run without --dry-run to apply these changes.")
        else:
            click.echo(click.style("\nConference set up successfully!", fg="green"))
            stats = result.events.stats
            logger.info(
                f"Setup completed: created {stats.created}, "
                f"updated {stats.updated}, recreated {stats.recreated}"
            )

        if result.skipped_rows:
            click.echo(
                click.style(
                    f"\nWarning: {len(result.skipped_rows)} rows could not be read.",
                    fg="yellow",
                )
            )

    except Exception as e:
        fail(logger, e, "Setup")


# =============================================================================
# Open Commands
# =============================================================================


@cli.command("open-form")
@click.option("--no-browser", is_flag=True, help="Only print the URL.")
@click.pass_context
def open_form_command(ctx: click.Context, no_browser: bool) -> None:
    """
    Open the registration form editor.

    Example:

        session-signup open-form
    """
    logger = get_logger(__name__)

    try:
        engine, _ = build_engine(ctx, authenticated=False)
        url = engine.form_url()
    except Exception as e:
        fail(logger, e, "Open form")

    click.echo(url)
    if not no_browser:
        click.launch(url)


@cli.command("open-calendar")
@click.option("--no-browser", is_flag=True, help="Only print the URL.")
@click.pass_context
def open_calendar_command(ctx: click.Context, no_browser: bool) -> None:
    """
    Open the conference calendar (subscribe link).

    Example:

        session-signup open-calendar
    """
    logger = get_logger(__name__)

    try:
        engine, _ = build_engine(ctx, authenticated=False)
        url = engine.calendar_url()
    except Exception as e:
        fail(logger, e, "Open calendar")

    click.echo(url)
    if not no_browser:
        click.launch(url)


# =============================================================================
# Reset Command
# =============================================================================


@cli.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def reset_command(ctx: click.Context, yes: bool) -> None:
    """
    Unlink the calendar and form.

    The next 'setup' creates a new calendar and form. Nothing is deleted
    from Google; the old calendar and form stay where they are.

    Example:

        session-signup reset
    """
    logger = get_logger(__name__)

    if not yes:
        click.confirm(f"{RESET_CONFIRMATION}\nContinue?", abort=True)

    try:
        engine, database = build_engine(ctx, authenticated=False)
        removed = engine.reset_conference()
        database.vacuum()

        if removed:
            click.echo(click.style("Conference registration has been reset.", fg="green"))
        else:
            click.echo("No calendar or form was linked. Nothing to reset.")
        click.echo("Next setup will create a new calendar and form.")
        logger.info("Conference reset completed")

    except Exception as e:
        fail(logger, e, "Reset")


# =============================================================================
# Registration Commands
# =============================================================================


@cli.command("process-responses")
@click.pass_context
def process_responses_command(ctx: click.Context) -> None:
    """
    Invite registrants to the sessions they picked.

    Handles every form response not processed before. A response that
    fails is retried on the next run.

    Example:

        session-signup process-responses
    """
    logger = get_logger(__name__)

    try:
        processor = build_response_processor(ctx)
        with TableLock(RESPONSES_LOCK, ctx.obj["config_dir"]):
            stats = processor.process_new_responses()

        click.echo(stats.summary())
        if stats.failed:
            click.echo(
                click.style(
                    f"\nWarning: {stats.failed} responses failed and will be retried.",
                    fg="yellow",
                )
            )
            sys.exit(1)

    except Exception as e:
        fail(logger, e, "Processing responses")


def _watch_pid_file(ctx: click.Context) -> Path:
    config = ctx.obj["config"]
    if config.get("daemon_pid_file"):
        return Path(config["daemon_pid_file"]).expanduser()
    return ctx.obj["config_dir"] / WATCH_PID_FILE


@cli.command("watch")
@click.option(
    "--interval",
    "-i",
    help=(
        "Polling interval (e.g., '30s', '5m', '1h'). "
        f"Defaults to watch_interval from config or {DEFAULT_WATCH_INTERVAL}."
    ),
)
@click.option(
    "--no-initial-run",
    is_flag=True,
    help="Wait one interval before the first poll.",
)
@click.option("--stop", is_flag=True, help="Stop the running watcher and exit.")
@click.pass_context
def watch_command(
    ctx: click.Context, interval: Optional[str], no_initial_run: bool, stop: bool
) -> None:
    """
    Process new registrations at a fixed interval.

    Runs in the foreground until interrupted (Ctrl+C or SIGTERM),
    finishing any poll in progress before it stops.

    Examples:

        # Poll every 5 minutes
        session-signup watch

        # Poll every 30 seconds with verbose output
        session-signup -v watch --interval 30s

        # Stop the watcher running in another terminal
        session-signup watch --stop
    """
    logger = get_logger(__name__)
    config = ctx.obj["config"]
    config_dir = ctx.obj["config_dir"]

    if stop:
        pid_file = _watch_pid_file(ctx)
        pid = DaemonScheduler.get_running_pid(pid_file)
        if pid is None:
            click.echo("No watcher is currently running.")
            return
        if DaemonScheduler.stop_running_daemon(pid_file):
            click.echo(click.style(f"Sent stop signal to watcher (PID: {pid}).", fg="green"))
            logger.info(f"Sent stop signal to watcher (PID: {pid})")
        else:
            click.echo(
                click.style("Failed to send stop signal to watcher.", fg="red"), err=True
            )
            sys.exit(1)
        return

    effective_interval = interval or config.get("watch_interval", DEFAULT_WATCH_INTERVAL)
    try:
        interval_seconds = parse_interval(effective_interval)
    except ValueError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    try:
        processor = build_response_processor(ctx)
    except Exception as e:
        fail(logger, e, "Watch")

    def poll() -> bool:
        with TableLock(RESPONSES_LOCK, config_dir):
            return processor.run_once()

    click.echo(
        f"Watching registrations every {effective_interval} (Ctrl+C to stop)..."
    )

    try:
        scheduler = DaemonScheduler(
            interval=interval_seconds,
            pid_file=_watch_pid_file(ctx),
            run_immediately=not no_initial_run,
        )
        scheduler.set_callback(poll)

        logger.info(f"Watcher starting (interval={interval_seconds}s)")
        scheduler.run()

        click.echo(click.style("\nWatcher stopped gracefully.", fg="green"))
        click.echo(
            f"Polls: {scheduler.stats.run_count}, "
            f"failed: {scheduler.stats.run_error_count}"
        )

    except DaemonAlreadyRunningError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        click.echo("Stop the running watcher before starting another one.")
        sys.exit(1)

    except DaemonError as e:
        logger.error(f"Watcher error: {e}")
        click.echo(click.style(f"Watcher error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Timesheet Commands
# =============================================================================


@cli.command("timesheet-setup")
@click.pass_context
def timesheet_setup_command(ctx: click.Context) -> None:
    """
    Add and compute the timesheet columns.

    Adds TOTAL HOURS, CALCULATED PAY, APPROVAL and NOTIFIED STATUS
    columns when missing, computes hours and pay for every row and
    adds an approval dropdown.

    Example:

        session-signup timesheet-setup
    """
    logger = get_logger(__name__)

    try:
        payroll = build_payroll(ctx)
        with TableLock(payroll.sheet, ctx.obj["config_dir"]):
            result = payroll.set_up_columns()

        click.echo(result.summary())
        if result.invalid_rows:
            for message in result.invalid_rows:
                click.echo(click.style(f"  - {message}", fg="yellow"))
        click.echo(click.style("\nTimesheet columns are ready.", fg="green"))

    except Exception as e:
        fail(logger, e, "Timesheet setup")


@cli.command("notify-employees")
@click.option(
    "--dry-run", "-n", is_flag=True, help="Show who would be emailed without sending."
)
@click.pass_context
def notify_employees_command(ctx: click.Context, dry_run: bool) -> None:
    """
    Email employees whose timesheet was approved or rejected.

    Each row is emailed once: after sending, its notified status is set
    right away, so an interrupted run can simply be repeated.

    Examples:

        session-signup notify-employees --dry-run
        session-signup notify-employees
    """
    logger = get_logger(__name__)
    config = ctx.obj["config"]
    effective_dry_run = dry_run or config.get("dry_run", False)

    try:
        payroll = build_payroll(ctx)
        with TableLock(payroll.sheet, ctx.obj["config_dir"]):
            result = payroll.notify_employees(dry_run=effective_dry_run)

        click.echo(result.summary())
        if effective_dry_run:
            for email in result.approved:
                click.echo(f"  + approve {email}")
            for email in result.rejected:
                click.echo(f"  - reject {email}")
            click.echo(
                click.style("\nDry run complete. No emails were sent.", fg="yellow")
            )

    except Exception as e:
        fail(logger, e, "Notification")


# =============================================================================
# Clear-Auth Command
# =============================================================================


@cli.command("clear-auth")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def clear_auth_command(ctx: click.Context, yes: bool) -> None:
    """
    Clear stored authentication credentials.

    Removes the stored OAuth token. You will need to re-authenticate
    before running any other command.

    Example:

        session-signup clear-auth
    """
    logger = get_logger(__name__)
    config_dir = ctx.obj["config_dir"]

    if not yes:
        click.confirm("Clear stored authentication?", abort=True)

    try:
        auth = GoogleAuth(config_dir=config_dir)

        if auth.clear_credentials():
            click.echo(click.style("Credentials cleared.", fg="green"))
            logger.info("Cleared stored credentials")
        else:
            click.echo("No credentials found.")

    except Exception as e:
        logger.exception(f"Clear auth failed: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Health Command
# =============================================================================


@cli.command("health")
def health_command() -> None:
    """
    Check application health status.

    Returns a simple health status indicator. Useful for container
    health checks and monitoring.

    Example:

        session-signup health
    """
    click.echo("healthy")
