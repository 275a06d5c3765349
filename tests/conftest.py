"""
Pytest configuration and fixtures for netpolicy tests.

This module provides shared fixtures used across unit and integration tests.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from netpolicy.loader import load_ruleset
from netpolicy.schema import RuleSet


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def scenario_ruleset_yaml() -> str:
    """The three-rule ruleset used by the documented scenarios."""
    return """
rules:
  - name: zoom_priority
    priority: 100
    match:
      sni: "*.zoom.us"
      protocol: tcp
    action:
      route: tunnel_fast

  - name: fallback_if_high_latency
    priority: 80
    match:
      latency_ms: ">120"
    action:
      switch_route: backup

  - name: default_log
    priority: 10
    match:
      any: true
    action:
      log: true
"""


@pytest.fixture
def scenario_ruleset(scenario_ruleset_yaml: str) -> RuleSet:
    return load_ruleset(scenario_ruleset_yaml)


@pytest.fixture
def gated_ruleset_yaml() -> str:
    """A ruleset exercising when/disable gating."""
    return """
rules:
  - name: disable_in_failover
    priority: 80
    disable: [FAILOVER]
    match:
      port: "6667"
    action:
      block: true

  - name: failover_only
    priority: 50
    when:
      state: failover
    match:
      any: true
    action:
      switch_route: backup
      log: true
"""


@pytest.fixture
def invalid_ruleset_yaml() -> str:
    """A ruleset with several independent problems in different rules."""
    return """
rules:
  - name: bad_port
    priority: 10
    match:
      port: "22,abc"
    action:
      route: direct

  - name: bad_comparator
    priority: 10
    match:
      latency_ms: "~120"
    action:
      route: direct

  - name: two_primaries
    priority: 10
    match:
      any: true
    action:
      route: direct
      block: true

  - name: bad_port
    priority: 5
    match:
      any: true
    action:
      log: true
"""
