"""Lookup of service routing information from a local Consul agent."""

from __future__ import annotations

import json
import logging
import os
import urllib.request
from typing import Any

log = logging.getLogger(__name__)

DEFAULT_ADDRESS = "127.0.0.1:8500"
_TIMEOUT = 5.0


def _get_json(url: str) -> Any:
    with urllib.request.urlopen(url, timeout=_TIMEOUT) as resp:
        return json.loads(resp.read().decode("utf-8"))


def get_consul_info(base_url: str | None = None) -> tuple[str, str, str]:
    """Return (service, route tag, check status), or empty strings if unknown."""
    base = base_url or os.environ.get("CONSUL_HTTP_ADDR") or DEFAULT_ADDRESS
    if "://" not in base:
        base = "http://" + base
    base = base.rstrip("/")
    try:
        checks = _get_json(f"{base}/v1/agent/checks")
        for check in checks.values():
            services = _get_json(f"{base}/v1/agent/services")
            for service in services.values():
                for tag in service.get("Tags") or []:
                    if "route" in tag:
                        return check.get("ServiceID", ""), tag, check.get("Status", "")
    except (OSError, ValueError, AttributeError, TypeError) as exc:
        log.warning("failed to query consul agent at %s: %s", base, exc)
    return "", "", ""