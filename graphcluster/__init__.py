"""Cluster routing for graph database clients."""

from __future__ import annotations

from .infrastructure.bolt import (
    AutoRoutedSession,
    BoltConfig,
    GraphClusterError,
    NoAvailableRoleError,
    RoutingConfig,
    RoutingDiscoveryError,
    Statement,
    TopologyManager,
)
from .logger import LoggingConfig, configure_logging, get_logger

__all__ = [
    "AutoRoutedSession",
    "BoltConfig",
    "GraphClusterError",
    "LoggingConfig",
    "NoAvailableRoleError",
    "RoutingConfig",
    "RoutingDiscoveryError",
    "Statement",
    "TopologyManager",
    "configure_logging",
    "get_logger",
]
