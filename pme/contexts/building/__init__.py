"""
Building Context

Responsibilities:
- Orchestrates one build: template + data -> markup -> PDF -> output file
- Owns the lifecycle of the rendering resources (open -> closed)
- Watches input files and serializes rebuilds in development mode

Owns: Builder lifecycle, watch sessions, build/develop entry points
Never: Interprets template syntax or PDF layout
"""

from pme.contexts.building.builder import Builder, BuildRequest, build, get_builder
from pme.contexts.building.watcher import (
    ChangeEvent,
    Subscription,
    WatchSession,
    develop,
    filter_events,
)

__all__ = [
    "build",
    "develop",
    "get_builder",
    "Builder",
    "BuildRequest",
    "ChangeEvent",
    "Subscription",
    "WatchSession",
    "filter_events",
]
