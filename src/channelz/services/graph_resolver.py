"""Resolve channelz identifier references into entity snapshots.

The remote graph is live: entities can disappear between a parent fetch and
the follow-up child lookup.  :meth:`GraphResolver.resolve` surfaces that as
:class:`NotFoundError`, while :meth:`GraphResolver.resolve_children` skips the
missing child with a log line so a report is always produced, possibly
incomplete.

Fetched entities are kept in an :class:`EntityArena` keyed by
``(kind, id)`` for the lifetime of one command invocation only.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from src.channelz.services.paginator import PageKind, Paginator
from src.shared.errors import NotFoundError
from src.shared.models.channelz import (
    Channel,
    ChannelzEntity,
    EntityKind,
    EntityRef,
    Server,
    Socket,
    Subchannel,
    entity_key,
    ref_key,
)
from src.shared.protocols import TopologyService

logger = logging.getLogger(__name__)


class EntityArena:
    """Entities fetched during one invocation, keyed by ``(kind, id)``."""

    def __init__(self) -> None:
        self._entities: dict[tuple[EntityKind, int], ChannelzEntity] = {}

    def get(self, kind: EntityKind, entity_id: int) -> ChannelzEntity | None:
        return self._entities.get((kind, entity_id))

    def put(self, entity: ChannelzEntity) -> None:
        key = entity_key(entity)
        if key is not None:
            self._entities[key] = entity

    def __contains__(self, key: object) -> bool:
        return key in self._entities

    def __len__(self) -> int:
        return len(self._entities)


class GraphResolver:
    """Point lookups and one-level child resolution over the topology service."""

    def __init__(
        self,
        topology: TopologyService,
        paginator: Paginator | None = None,
        arena: EntityArena | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._topology = topology
        self._paginator = paginator or Paginator(topology, log=log)
        self._arena = arena if arena is not None else EntityArena()
        self._logger = log or logger

    @property
    def arena(self) -> EntityArena:
        return self._arena

    # ------------------------------------------------------------------
    # Point lookups
    # ------------------------------------------------------------------

    def resolve(self, ref: EntityRef) -> ChannelzEntity:
        """Fetch the entity a reference points to.

        Raises:
            NotFoundError: If the entity no longer exists on the remote.
        """
        kind, entity_id = ref_key(ref)
        return self.resolve_id(kind, entity_id)

    def resolve_id(self, kind: EntityKind, entity_id: int) -> ChannelzEntity:
        """Fetch an entity by kind and numeric id, consulting the arena first."""
        cached = self._arena.get(kind, entity_id)
        if cached is not None:
            return cached
        fetch = {
            EntityKind.CHANNEL: self._topology.get_channel,
            EntityKind.SUBCHANNEL: self._topology.get_subchannel,
            EntityKind.SERVER: self._topology.get_server,
            EntityKind.SOCKET: self._topology.get_socket,
        }[kind]
        entity = fetch(entity_id)
        self._arena.put(entity)
        return entity

    def remember(self, entities: Iterable[ChannelzEntity]) -> None:
        """Add entities obtained from a listing to the arena."""
        for entity in entities:
            self._arena.put(entity)

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    def resolve_children(self, entity: ChannelzEntity) -> list[ChannelzEntity]:
        """Resolve the entity's child references one level deep.

        Channels yield subchannels, subchannels yield sockets and servers
        yield their listen sockets.  Missing children are skipped.
        """
        return self._resolve_all(child_refs(entity))

    def resolve_server_sockets(
        self,
        server_id: int,
        start_id: int | None = None,
        max_results: int | None = None,
    ) -> list[Socket]:
        """Page through a server's socket references and resolve each."""
        page = self._paginator.page_query(
            PageKind.SERVER_SOCKETS, start_id, max_results, server_id=server_id
        )
        return self._resolve_all(page.items)

    def find_channels_by_target(self, target: str) -> list[Channel]:
        """Return every top channel whose target equals *target*."""
        page = self._paginator.page_query(PageKind.CHANNELS)
        self.remember(page.items)
        return [
            channel for channel in page.items
            if channel.data is not None and channel.data.target == target
        ]

    def _resolve_all(self, refs: Iterable[EntityRef]) -> list[Any]:
        resolved: list[Any] = []
        for ref in refs:
            try:
                resolved.append(self.resolve(ref))
            except NotFoundError as exc:
                kind, entity_id = ref_key(ref)
                self._logger.warning(
                    "Skipping %s %d: %s", kind.value, entity_id, exc.detail
                )
        return resolved


def child_refs(entity: ChannelzEntity) -> list[EntityRef]:
    """The references :meth:`GraphResolver.resolve_children` follows."""
    if isinstance(entity, Channel):
        return list(entity.subchannel_ref)
    if isinstance(entity, Subchannel):
        return list(entity.socket_ref)
    if isinstance(entity, Server):
        return list(entity.listen_socket)
    return []
