"""Command-line entry point: ``grpcdebug <target> [flags] <command>``.

The root callback takes the target and the global flags and prepares a
:class:`Session`; the connection is opened lazily by the first command that
needs it and closed when the invocation ends.  Application errors are shown
in an error panel and turned into the error's exit code.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, List, Optional

import typer

from src.channelz.report import ChannelzReportRenderer
from src.channelz.services.graph_resolver import GraphResolver
from src.channelz.services.paginator import PageKind, Paginator
from src.grpcdebug.config import (
    GrpcDebugConfig,
    ServerConfig,
    default_config_path,
    load_debug_config,
    resolve_server_config,
)
from src.grpcdebug.display import print_document, print_error_panel, print_report
from src.grpcdebug.transport import Connection, connect
from src.health.report import health_report
from src.shared.config import DebugSettings
from src.shared.constants import ROOT_LOGGER, VERSION
from src.shared.errors import GrpcDebugError, NotFoundError
from src.shared.logging import setup_logging, start_invocation
from src.shared.models.channelz import Channel, EntityKind, Server, Socket, Subchannel
from src.shared.utils import TimeFormatter
from src.xds.report import xds_status_report
from src.xds.services.snapshot_processor import (
    per_type_dumps,
    sort_and_filter,
    to_status_rows,
)

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, help="grpcdebug is a gRPC service admin CLI.")
channelz_app = typer.Typer(help="Display gRPC runtime status (channelz).")
xds_app = typer.Typer(help="Fetch xDS related information.")
app.add_typer(channelz_app, name="channelz")
app.add_typer(xds_app, name="xds")


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class Session:
    """Per-invocation state shared by every command."""

    def __init__(
        self,
        server: ServerConfig,
        config: GrpcDebugConfig,
        absolute_time: bool = False,
        connector: Callable[..., Connection] | None = None,
    ) -> None:
        self.server = server
        self.config = config
        self.time_formatter = TimeFormatter(absolute=absolute_time)
        self._connector = connector or connect
        self._connection: Connection | None = None
        self._paginator: Paginator | None = None
        self._resolver: GraphResolver | None = None

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            self._connection = self._connector(self.server, self.config.timeouts)
        return self._connection

    @property
    def paginator(self) -> Paginator:
        if self._paginator is None:
            self._paginator = Paginator(
                self.connection.topology, page_size=self.config.pagination.page_size
            )
        return self._paginator

    @property
    def resolver(self) -> GraphResolver:
        if self._resolver is None:
            self._resolver = GraphResolver(self.connection.topology, self.paginator)
        return self._resolver

    @property
    def renderer(self) -> ChannelzReportRenderer:
        return ChannelzReportRenderer(self.time_formatter)

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None


def _session(ctx: typer.Context) -> Session:
    return ctx.find_root().obj


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Show application errors in a panel and exit with their code."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except GrpcDebugError as exc:
            logger.debug("Command failed", exc_info=True)
            print_error_panel(exc)
            raise typer.Exit(code=exc.exit_code)

    return wrapper


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@app.callback()
@handle_errors
def main_callback(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="Address of the gRPC server, or a configured server name."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print verbose information for debugging."),
    timestamp: bool = typer.Option(
        False, "--timestamp", "-t",
        help="Print timestamps as RFC3339 instead of human readable strings.",
    ),
    security: Optional[str] = typer.Option(
        None, "--security", help="Credentials to use: insecure or tls."
    ),
    credential_file: Optional[str] = typer.Option(
        None, "--credential_file", help="Root certificates file; used in tls mode."
    ),
    server_name_override: Optional[str] = typer.Option(
        None, "--server_name_override",
        help="Overrides the peer server name if non empty; used in tls mode.",
    ),
) -> None:
    settings = DebugSettings()
    setup_logging(
        ROOT_LOGGER,
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.json_logs,
    )
    invocation_id = start_invocation()
    logger.debug("grpcdebug %s invocation %s", VERSION, invocation_id)

    config = load_debug_config(default_config_path(settings))
    server = resolve_server_config(
        target, config, security, credential_file, server_name_override
    )
    session = Session(server, config, absolute_time=timestamp)
    ctx.obj = session
    ctx.call_on_close(session.close)


# ---------------------------------------------------------------------------
# channelz
# ---------------------------------------------------------------------------


@channelz_app.command("channels")
@handle_errors
def channels_command(
    ctx: typer.Context,
    start_id: Optional[int] = typer.Option(None, "--start_id", "-s", help="The start channel ID."),
    max_results: Optional[int] = typer.Option(
        None, "--max_results", "-m", help="The maximum number of output channels."
    ),
    json_output: bool = typer.Option(False, "--json", "-o", help="Print the result as JSON."),
) -> None:
    """List client channels in a human readable way."""
    session = _session(ctx)
    page = session.paginator.page_query(PageKind.CHANNELS, start_id, max_results)
    session.resolver.remember(page.items)
    if json_output:
        print_document(page.items)
        return
    print_report(session.renderer.channels_report(page.items))


@channelz_app.command("channel")
@handle_errors
def channel_command(
    ctx: typer.Context,
    channel: str = typer.Argument(..., help="Channel ID or target URL."),
    json_output: bool = typer.Option(False, "--json", "-o", help="Print the result as JSON."),
) -> None:
    """Display a channel's state, subchannels and trace events."""
    session = _session(ctx)
    resolver = session.resolver
    if channel.isdigit():
        selected: list[Channel] = [resolver.resolve_id(EntityKind.CHANNEL, int(channel))]
    else:
        selected = resolver.find_channels_by_target(channel)
        if not selected:
            raise NotFoundError(
                f"No channel with target {channel!r}", kind=EntityKind.CHANNEL.value
            )
    if json_output:
        print_document(selected[0] if len(selected) == 1 else selected)
        return
    for entry in selected:
        subchannels: list[Subchannel] = resolver.resolve_children(entry)
        print_report(session.renderer.channel_report(entry, subchannels))


@channelz_app.command("subchannel")
@handle_errors
def subchannel_command(
    ctx: typer.Context,
    subchannel_id: int = typer.Argument(..., help="Subchannel ID."),
    json_output: bool = typer.Option(False, "--json", "-o", help="Print the result as JSON."),
) -> None:
    """Display a subchannel's state, sockets and trace events."""
    session = _session(ctx)
    subchannel = session.resolver.resolve_id(EntityKind.SUBCHANNEL, subchannel_id)
    if json_output:
        print_document(subchannel)
        return
    sockets: list[Socket] = session.resolver.resolve_children(subchannel)
    print_report(session.renderer.subchannel_report(subchannel, sockets))


@channelz_app.command("socket")
@handle_errors
def socket_command(
    ctx: typer.Context,
    socket_id: int = typer.Argument(..., help="Socket ID."),
    json_output: bool = typer.Option(False, "--json", "-o", help="Print the result as JSON."),
) -> None:
    """Display a socket's counters, options and security."""
    session = _session(ctx)
    socket = session.resolver.resolve_id(EntityKind.SOCKET, socket_id)
    if json_output:
        print_document(socket)
        return
    print_report(session.renderer.socket_report(socket))


@channelz_app.command("servers")
@handle_errors
def servers_command(
    ctx: typer.Context,
    start_id: Optional[int] = typer.Option(None, "--start_id", "-s", help="The start server ID."),
    max_results: Optional[int] = typer.Option(
        None, "--max_results", "-m", help="The maximum number of output servers."
    ),
    json_output: bool = typer.Option(False, "--json", "-o", help="Print the result as JSON."),
) -> None:
    """List servers in a human readable way."""
    session = _session(ctx)
    page = session.paginator.page_query(PageKind.SERVERS, start_id, max_results)
    session.resolver.remember(page.items)
    if json_output:
        print_document(page.items)
        return
    servers: list[tuple[Server, list[Socket]]] = [
        (server, session.resolver.resolve_children(server)) for server in page.items
    ]
    print_report(session.renderer.servers_report(servers))


@channelz_app.command("server")
@handle_errors
def server_command(
    ctx: typer.Context,
    server_id: int = typer.Argument(..., help="Server ID."),
    start_id: Optional[int] = typer.Option(
        None, "--start_id", "-s", help="The start server socket ID."
    ),
    max_results: Optional[int] = typer.Option(
        None, "--max_results", "-m", help="The maximum number of the output sockets."
    ),
    json_output: bool = typer.Option(False, "--json", "-o", help="Print the result as JSON."),
) -> None:
    """Display a server's state and its sockets."""
    session = _session(ctx)
    server = session.resolver.resolve_id(EntityKind.SERVER, server_id)
    if json_output:
        print_document(server)
        return
    listen_sockets: list[Socket] = session.resolver.resolve_children(server)
    sockets = session.resolver.resolve_server_sockets(server_id, start_id, max_results)
    print_report(session.renderer.server_report(server, listen_sockets, sockets))


# ---------------------------------------------------------------------------
# health
# ---------------------------------------------------------------------------


@app.command("health")
@handle_errors
def health_command(
    ctx: typer.Context,
    services: Optional[List[str]] = typer.Argument(None, help="Service names to check."),
) -> None:
    """Check the health status of the target's services."""
    session = _session(ctx)
    statuses = session.connection.health.check_all(services or [])
    print_report(health_report(statuses))


# ---------------------------------------------------------------------------
# xds
# ---------------------------------------------------------------------------


@xds_app.command("config")
@handle_errors
def xds_config_command(
    ctx: typer.Context,
    legacy_type: Optional[str] = typer.Argument(None, metavar="[lds|rds|cds|eds]"),
    types: Optional[str] = typer.Option(
        None, "--type", help="Comma-separated resource types to keep."
    ),
) -> None:
    """Dump the operating xDS configs."""
    session = _session(ctx)
    snapshot = session.connection.csds.fetch_snapshot()
    wanted = [value for value in (legacy_type, types) if value]
    if not wanted:
        print_document(sort_and_filter(snapshot))
        return
    dumps = per_type_dumps(sort_and_filter(snapshot, wanted))
    if not dumps:
        logger.debug("Failed to find xDS config with type %s", ",".join(wanted))
        return
    print_document(dumps[0] if len(dumps) == 1 else dumps)


@xds_app.command("status")
@handle_errors
def xds_status_command(
    ctx: typer.Context,
    types: Optional[str] = typer.Option(
        None, "--type", help="Comma-separated resource types to keep."
    ),
) -> None:
    """Print the config synchronization status of every xDS resource."""
    session = _session(ctx)
    snapshot = sort_and_filter(
        session.connection.csds.fetch_snapshot(), [types] if types else None
    )
    rows = to_status_rows(snapshot)
    print_report(xds_status_report(rows, session.time_formatter))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
