import typer
from pathlib import Path
from typing import Dict, List, Set, Tuple
from pydantic import ValidationError

from svcguard.config.loader import load_config
from svcguard.core.context import GuardianContext
from svcguard.core.naming import service_key
from svcguard.host import create_service_manager
from svcguard.host.base import ServiceManager
from svcguard.cli.formatter import OutputFormatter
from svcguard.runtime.controller import GuardianController
from svcguard.store.config_store import ConfigStore
from svcguard.utils.diagnostics import ConfigStoreIOError, HostQueryError

app = typer.Typer(name="svcguard", help="Keep host services stopped.", rich_markup_mode=None)

DEFAULT_CONFIG_FILE = "svcguard.yaml"

# Options that take a value, keyed by every accepted spelling.
VALUE_OPTIONS: Dict[str, str] = {
    "--config": "config",
    "-c": "config",
    "--store": "store",
    "-s": "store",
    "--interval": "interval",
    "--backend": "backend",
}

PASSTHROUGH = {"allow_extra_args": True, "ignore_unknown_options": True}


def _read_option_value(tokens: list[str], index: int, option_name: str) -> tuple[str, int]:
    if index + 1 >= len(tokens):
        raise typer.BadParameter(f"Option {option_name} requires a value.")
    return tokens[index + 1], index + 2


def _parse_tokens(
    tokens: List[str],
    allowed_values: Set[str],
    allowed_flags: Set[str],
) -> Tuple[Dict[str, str], Set[str], List[str]]:
    """Split raw CLI tokens into option values, flags and positional arguments."""
    values: Dict[str, str] = {}
    flags: Set[str] = set()
    positionals: List[str] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        option, has_inline, inline_value = token.partition("=")
        key = VALUE_OPTIONS.get(option)
        if key is not None and key in allowed_values:
            if has_inline:
                values[key] = inline_value
                index += 1
            else:
                values[key], index = _read_option_value(tokens, index, option)
            continue
        if token in allowed_flags:
            flags.add(token)
            index += 1
            continue
        if token.startswith("-"):
            raise typer.BadParameter(f"Unknown option: {token}")
        positionals.append(token)
        index += 1

    return values, flags, positionals


def _load_context(values: Dict[str, str]) -> Tuple[GuardianContext, Path]:
    """Load settings and return them with the directory relative store paths resolve against."""
    config_path = Path(values.get("config", DEFAULT_CONFIG_FILE))
    if "config" in values and not config_path.exists():
        OutputFormatter.log(f"Config file '{config_path}' not found; using defaults.", severity="warning")

    try:
        context = GuardianContext(config_dict=load_config(config_path))
        if "store" in values:
            context.store = context.store.model_copy(update={"path": values["store"]})
        if "interval" in values:
            try:
                interval = float(values["interval"])
            except ValueError as exc:
                raise typer.BadParameter("Option --interval must be a number.") from exc
            if interval <= 0:
                raise typer.BadParameter("Option --interval must be greater than zero.")
            context.guardian = context.guardian.model_copy(update={"poll_interval_seconds": interval})
        if "backend" in values:
            context.host = context.host.model_validate(
                {**context.host.model_dump(), "backend": values["backend"]}
            )
    except ValidationError as exc:
        OutputFormatter.log(f"Invalid configuration: {exc}", severity="error")
        raise typer.Exit(code=1)

    base_dir = Path.cwd() if "store" in values else config_path.parent
    return context, base_dir


def _open_store(context: GuardianContext, base_dir: Path) -> ConfigStore:
    return ConfigStore(context.store_path(base_dir))


def _build_manager(context: GuardianContext) -> ServiceManager:
    try:
        return create_service_manager(context.host)
    except ValueError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)


@app.command(context_settings=PASSTHROUGH)
def run(ctx: typer.Context):
    """
    Sweep configured services, then keep them stopped until interrupted.
    """
    values, flags, extras = _parse_tokens(
        list(ctx.args),
        allowed_values={"config", "store", "interval", "backend"},
        allowed_flags={"--once", "--no-sweep"},
    )
    if extras:
        raise typer.BadParameter(f"Unexpected arguments: {' '.join(extras)}")

    context, base_dir = _load_context(values)
    manager = _build_manager(context)
    controller = GuardianController(
        context,
        store=_open_store(context, base_dir),
        manager=manager,
        on_event=OutputFormatter.log_event,
    )

    OutputFormatter.log(f"svcguard starting (store: {controller.store.path}, backend: {manager.backend_name})")
    try:
        sweep_report = controller.start(background=False, sweep="--no-sweep" not in flags)
    except (ConfigStoreIOError, HostQueryError) as exc:
        OutputFormatter.log(f"Unable to start: {exc}", severity="error")
        raise typer.Exit(code=1)

    if sweep_report is not None:
        OutputFormatter.log_sweep_summary(sweep_report)

    if "--once" in flags:
        report = controller.run_cycle()
        controller.stop()
        if report.aborted:
            raise typer.Exit(code=1)
        return

    OutputFormatter.log(
        f"Monitoring every {context.guardian.poll_interval_seconds:g}s. Press Ctrl+C to stop.",
        severity="info",
    )
    try:
        controller.run_forever()
    except KeyboardInterrupt:
        OutputFormatter.log("Interrupted. Shutting down.", severity="info")
    finally:
        controller.stop()


@app.command(context_settings=PASSTHROUGH)
def sweep(ctx: typer.Context):
    """Stop every configured service once and prune the ones that cannot be stopped."""
    values, _, extras = _parse_tokens(list(ctx.args), {"config", "store", "backend"}, set())
    if extras:
        raise typer.BadParameter(f"Unexpected arguments: {' '.join(extras)}")

    context, base_dir = _load_context(values)
    controller = GuardianController(
        context,
        store=_open_store(context, base_dir),
        manager=_build_manager(context),
        on_event=OutputFormatter.log_event,
    )
    try:
        controller.initialize()
        report = controller.run_startup_sweep()
    except ConfigStoreIOError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)

    OutputFormatter.log_sweep_summary(report)
    if report.error:
        raise typer.Exit(code=1)


@app.command("list", context_settings=PASSTHROUGH)
def list_services(ctx: typer.Context):
    """Print the keep-stopped list."""
    values, _, extras = _parse_tokens(list(ctx.args), {"config", "store"}, set())
    if extras:
        raise typer.BadParameter(f"Unexpected arguments: {' '.join(extras)}")

    context, base_dir = _load_context(values)
    try:
        names = _open_store(context, base_dir).read_all()
    except ConfigStoreIOError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)

    OutputFormatter.print_services(names)


@app.command(context_settings=PASSTHROUGH)
def add(ctx: typer.Context):
    """Add one or more services to the keep-stopped list."""
    values, _, names = _parse_tokens(list(ctx.args), {"config", "store"}, set())
    if not names:
        OutputFormatter.log("Error: Missing service name.", severity="error")
        raise typer.Exit(code=2)

    context, base_dir = _load_context(values)
    try:
        added = _open_store(context, base_dir).append_missing(names)
    except ConfigStoreIOError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)

    if added:
        OutputFormatter.log(f"Added: {', '.join(added)}", severity="success")
    else:
        OutputFormatter.log("Nothing to add; all services are already listed.", severity="info")


@app.command(context_settings=PASSTHROUGH)
def remove(ctx: typer.Context):
    """Remove a service from the keep-stopped list."""
    values, _, names = _parse_tokens(list(ctx.args), {"config", "store"}, set())
    if len(names) != 1:
        OutputFormatter.log("Error: Expected exactly one service name.", severity="error")
        raise typer.Exit(code=2)

    context, base_dir = _load_context(values)
    try:
        removed = _open_store(context, base_dir).remove_one(names[0])
    except ConfigStoreIOError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)

    if not removed:
        OutputFormatter.log(f"'{names[0]}' is not in the keep-stopped list.", severity="warning")
        raise typer.Exit(code=1)
    OutputFormatter.log(f"Removed: {names[0]}", severity="success")


@app.command(context_settings=PASSTHROUGH)
def status(ctx: typer.Context):
    """Show each listed service with its current host status."""
    values, _, extras = _parse_tokens(list(ctx.args), {"config", "store", "backend"}, set())
    if extras:
        raise typer.BadParameter(f"Unexpected arguments: {' '.join(extras)}")

    context, base_dir = _load_context(values)
    manager = _build_manager(context)
    try:
        names = _open_store(context, base_dir).read_all()
        snapshot = manager.enumerate_all()
    except (ConfigStoreIOError, HostQueryError) as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)

    current = {service_key(entry.name): entry.status for entry in snapshot}
    rows: List[tuple] = []
    for name in names:
        found = current.get(service_key(name))
        rows.append((name, found, "" if found is not None else "not installed"))

    OutputFormatter.print_status_table(rows)


if __name__ == "__main__":
    app()
