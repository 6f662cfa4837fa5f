"""Automation session management (browser and mobile devices)."""

from __future__ import annotations

from petspot_e2e.sessions.mobile import MobileAppController
from petspot_e2e.sessions.registry import Session, SessionOptions, SessionRegistry
from petspot_e2e.sessions.web import inject_geolocation_mock, open_page

__all__ = [
    "MobileAppController",
    "Session",
    "SessionOptions",
    "SessionRegistry",
    "inject_geolocation_mock",
    "open_page",
]
