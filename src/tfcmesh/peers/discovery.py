# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/peers/discovery.py

"""Joining an existing mesh through one bootstrap peer."""

from loguru import logger

from tfcmesh.clients.http import PeerClient
from tfcmesh.errors import AliasConflictError, FetchError
from tfcmesh.peers.registry import RegistryStore


def join_mesh(
    registry: RegistryStore,
    client: PeerClient,
    alias: str,
    url: str,
    bootstrap: str,
) -> int:
    """Register with ``bootstrap``, learn its peers and announce ourselves to them.

    Registration with the bootstrap peer must succeed (FetchError otherwise);
    failures towards the other peers are logged and skipped. Returns the
    number of peers we announced ourselves to, bootstrap included.
    """
    bootstrap = bootstrap.rstrip("/")
    url = url.rstrip("/")
    client.register(bootstrap, alias, url)
    logger.info(f"Registered {alias} with bootstrap peer {bootstrap}")

    remote = client.agents(bootstrap)
    for peer_alias, peer_url in remote.items():
        try:
            registry.add(peer_alias, peer_url)
        except AliasConflictError as e:
            logger.warning(f"Ignoring peer {peer_alias}: {e}")

    announced = 1
    for peer_alias, peer_url in registry.items():
        if peer_url in (bootstrap, url) or peer_alias == alias:
            continue
        try:
            client.register(peer_url, alias, url)
            announced += 1
        except FetchError as e:
            logger.warning(f"Unable to register with {peer_alias} at {peer_url}: {e}")
    logger.info(f"Mesh joined: {len(registry)} known agents, announced to {announced}")
    return announced
