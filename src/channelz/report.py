"""Tabular reports for channelz entities.

Turns resolved channels, subchannels, servers and sockets into
:class:`~src.shared.models.common.Report` objects: a detail block for the
primary entity followed by tables for its children.  Derived columns:

* ages go through one :class:`TimeFormatter` per invocation, so the whole
  report is either exact or relative;
* counters render as ``started/succeeded/failed``;
* address pairs render as ``local->remote``.  A socket whose address cannot
  be decoded turns into an errored row while its siblings still render.

Entries missing their ``ref`` or ``data`` are skipped with a debug log.
"""

from __future__ import annotations

import logging
from typing import Sequence

from src.shared.constants import SUBCHANNEL_TARGET_WIDTH
from src.shared.decoders import decode_endpoint, decode_security, decode_socket_option
from src.shared.errors import UnsupportedVariantError
from src.shared.models.channelz import (
    Channel,
    ChannelData,
    ChannelTraceEvent,
    Server,
    Socket,
    Subchannel,
)
from src.shared.models.common import Report, Row, Table
from src.shared.rendering import key_value_table, triple
from src.shared.utils import TimeFormatter

logger = logging.getLogger(__name__)

_CHANNEL_HEADERS = [
    "Channel ID", "Target", "State", "Calls(Started/Succeeded/Failed)", "Created Time",
]
_SUBCHANNEL_HEADERS = [
    "Subchannel ID", "Target", "State", "Calls(Started/Succeeded/Failed)", "Created Time",
]
_SOCKET_HEADERS = [
    "Socket ID", "Local->Remote", "Streams(Started/Succeeded/Failed)", "Messages(Sent/Received)",
]
_SERVER_HEADERS = [
    "Server ID", "Listen Addresses", "Calls(Started/Succeeded/Failed)", "Last Call Started",
]
_TRACE_HEADERS = ["Severity", "Time", "Child Ref", "Description"]
_OPTION_HEADERS = ["Socket Options Name", "Value"]


class ChannelzReportRenderer:
    """Build tabular channelz reports from resolved entities."""

    def __init__(
        self,
        time_formatter: TimeFormatter | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._time = time_formatter or TimeFormatter()
        self._logger = log or logger

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def channels_report(self, channels: Sequence[Channel]) -> Report:
        table = Table(headers=list(_CHANNEL_HEADERS))
        for channel in channels:
            if channel.ref is None or channel.data is None:
                self._logger.debug("failed to print channel: %s", channel)
                continue
            table.rows.append(
                Row(cells=self._channel_cells(channel.ref.channel_id, channel.data))
            )
        return Report(tables=[table])

    def channel_report(
        self, channel: Channel, subchannels: Sequence[Subchannel]
    ) -> Report:
        data = channel.data or ChannelData()
        channel_id = channel.ref.channel_id if channel.ref else ""
        report = Report(tables=[self._channel_detail("Channel ID", channel_id, data)])
        if channel.subchannel_ref:
            report.add(self._subchannels_table(subchannels))
        events = data.trace.events if data.trace else []
        if events:
            report.add(self.trace_table(events))
        return report

    def subchannel_report(
        self, subchannel: Subchannel, sockets: Sequence[Socket]
    ) -> Report:
        data = subchannel.data or ChannelData()
        subchannel_id = subchannel.ref.subchannel_id if subchannel.ref else ""
        report = Report(tables=[self._channel_detail("Subchannel ID", subchannel_id, data)])
        if subchannel.socket_ref:
            report.add(self.sockets_table(sockets))
        events = data.trace.events if data.trace else []
        if events:
            report.add(self.trace_table(events))
        return report

    def trace_table(self, events: Sequence[ChannelTraceEvent]) -> Table:
        table = Table(headers=list(_TRACE_HEADERS))
        for event in events:
            table.rows.append(
                Row(cells=[
                    event.severity.value,
                    self._time.format(event.timestamp),
                    _child_ref(event),
                    event.description,
                ])
            )
        return table

    # ------------------------------------------------------------------
    # Sockets
    # ------------------------------------------------------------------

    def sockets_table(self, sockets: Sequence[Socket]) -> Table:
        table = Table(headers=list(_SOCKET_HEADERS))
        for socket in sockets:
            row = self._socket_row(socket)
            if row is not None:
                table.rows.append(row)
        return table

    def socket_report(self, socket: Socket) -> Report:
        data = socket.data
        socket_id = socket.ref.socket_id if socket.ref else ""
        detail = key_value_table([("Socket ID", socket_id)])
        detail.rows.append(self._address_detail_row(socket))
        if data is not None:
            detail.rows.extend(key_value_table([
                ("Streams Started", data.streams_started),
                ("Streams Succeeded", data.streams_succeeded),
                ("Streams Failed", data.streams_failed),
                ("Messages Sent", data.messages_sent),
                ("Messages Received", data.messages_received),
                ("Keep Alives Sent", data.keep_alives_sent),
                ("Last Local Stream Created",
                 self._time.format(data.last_local_stream_created_timestamp)),
                ("Last Remote Stream Created",
                 self._time.format(data.last_remote_stream_created_timestamp)),
                ("Last Message Sent Created",
                 self._time.format(data.last_message_sent_timestamp)),
                ("Last Message Received Created",
                 self._time.format(data.last_message_received_timestamp)),
                ("Local Flow Control Window", _optional(data.local_flow_control_window)),
                ("Remote Flow Control Window", _optional(data.remote_flow_control_window)),
            ]).rows)
        report = Report(tables=[detail])
        if data is not None and data.option:
            options = Table(headers=list(_OPTION_HEADERS))
            for option in data.option:
                options.rows.append(Row(cells=[option.name, decode_socket_option(option)]))
            report.add(options)
        if socket.security is not None:
            report.add(self._security_table(socket))
        return report

    def _socket_row(self, socket: Socket) -> Row | None:
        if socket.ref is None or socket.data is None:
            self._logger.debug("failed to print socket: %s", socket)
            return None
        socket_id = str(socket.ref.socket_id)
        try:
            addresses = _address_pair(socket)
        except UnsupportedVariantError as exc:
            self._logger.warning("Cannot render socket %s: %s", socket_id, exc.detail)
            return Row(cells=[socket_id], error=exc.detail)
        data = socket.data
        return Row(cells=[
            socket_id,
            addresses,
            triple(data.streams_started, data.streams_succeeded, data.streams_failed),
            f"{data.messages_sent}/{data.messages_received}",
        ])

    def _address_detail_row(self, socket: Socket) -> Row:
        try:
            return Row(cells=["Address:", _address_pair(socket)])
        except UnsupportedVariantError as exc:
            self._logger.warning("Cannot render address: %s", exc.detail)
            return Row(cells=["Address:"], error=exc.detail)

    def _security_table(self, socket: Socket) -> Table:
        try:
            info = decode_security(socket.security)
        except UnsupportedVariantError as exc:
            self._logger.warning("Cannot render security: %s", exc.detail)
            return Table(
                headers=["Field", "Value"],
                rows=[Row(cells=["Security Model:"], error=exc.detail)],
                show_header=False,
            )
        return key_value_table([
            ("Security Model", info.model_name),
            (info.detail_name, info.detail_value),
        ])

    # ------------------------------------------------------------------
    # Servers
    # ------------------------------------------------------------------

    def servers_report(
        self, servers: Sequence[tuple[Server, Sequence[Socket]]]
    ) -> Report:
        """List servers; each is paired with its resolved listen sockets."""
        table = Table(headers=list(_SERVER_HEADERS))
        for server, listen_sockets in servers:
            server_id = str(server.ref.server_id) if server.ref else ""
            try:
                addresses = _listen_addresses(listen_sockets)
            except UnsupportedVariantError as exc:
                self._logger.warning("Cannot render server %s: %s", server_id, exc.detail)
                table.rows.append(Row(cells=[server_id], error=exc.detail))
                continue
            data = server.data
            table.rows.append(Row(cells=[
                server_id,
                addresses,
                triple(data.calls_started, data.calls_succeeded, data.calls_failed) if data else "0/0/0",
                self._time.format(data.last_call_started_timestamp) if data else "",
            ]))
        return Report(tables=[table])

    def server_report(
        self,
        server: Server,
        listen_sockets: Sequence[Socket],
        sockets: Sequence[Socket],
    ) -> Report:
        data = server.data
        server_id = server.ref.server_id if server.ref else ""
        detail = key_value_table([("Server Id", server_id)])
        try:
            detail.rows.append(Row(cells=["Listen Addresses:", _listen_addresses(listen_sockets)]))
        except UnsupportedVariantError as exc:
            self._logger.warning("Cannot render listen addresses: %s", exc.detail)
            detail.rows.append(Row(cells=["Listen Addresses:"], error=exc.detail))
        if data is not None:
            detail.rows.extend(key_value_table([
                ("Calls Started", data.calls_started),
                ("Calls Succeeded", data.calls_succeeded),
                ("Calls Failed", data.calls_failed),
                ("Last Call Started", self._time.format(data.last_call_started_timestamp)),
            ]).rows)
        report = Report(tables=[detail])
        if sockets:
            report.add(self.sockets_table(sockets))
        return report

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _channel_cells(self, entity_id: int, data: ChannelData, width: int | None = None) -> list[str]:
        target = data.target[:width] if width else data.target
        return [
            str(entity_id),
            target,
            data.connectivity.value,
            triple(data.calls_started, data.calls_succeeded, data.calls_failed),
            self._time.format(data.creation_timestamp),
        ]

    def _channel_detail(self, id_label: str, entity_id: object, data: ChannelData) -> Table:
        return key_value_table([
            (id_label, entity_id),
            ("Target", data.target),
            ("State", data.connectivity.value),
            ("Calls Started", data.calls_started),
            ("Calls Succeeded", data.calls_succeeded),
            ("Calls Failed", data.calls_failed),
            ("Created Time", self._time.format(data.creation_timestamp)),
        ])

    def _subchannels_table(self, subchannels: Sequence[Subchannel]) -> Table:
        table = Table(headers=list(_SUBCHANNEL_HEADERS))
        for subchannel in subchannels:
            if subchannel.ref is None or subchannel.data is None:
                self._logger.debug("failed to print subchannel: %s", subchannel)
                continue
            table.rows.append(Row(cells=self._channel_cells(
                subchannel.ref.subchannel_id, subchannel.data, SUBCHANNEL_TARGET_WIDTH,
            )))
        return table


def _address_pair(socket: Socket) -> str:
    return f"{decode_endpoint(socket.local)}->{decode_endpoint(socket.remote)}"


def _listen_addresses(sockets: Sequence[Socket]) -> str:
    return "[" + ", ".join(decode_endpoint(socket.local) for socket in sockets) + "]"


def _child_ref(event: ChannelTraceEvent) -> str:
    if event.subchannel_ref is not None:
        return f"subchannel({event.subchannel_ref.subchannel_id})"
    if event.channel_ref is not None:
        return f"channel({event.channel_ref.channel_id})"
    return ""


def _optional(value: int | None) -> str:
    return "" if value is None else str(value)
