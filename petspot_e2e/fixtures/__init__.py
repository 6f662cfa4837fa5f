"""Test data fixtures created through the backend API."""

from __future__ import annotations

from petspot_e2e.fixtures.gateway import Fixture, TestDataGateway, build_payload

__all__ = ["Fixture", "TestDataGateway", "build_payload"]
