"""Delivery of metric batches to the transfer services."""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Iterable
from typing import Any

from falconagent import config
from falconagent.metric import MetricValue
from falconagent.rpc import RpcError, SingleConnRpcClient

log = logging.getLogger(__name__)

_clients: dict[str, SingleConnRpcClient] = {}
_clients_lock = threading.Lock()


def transfer_client(addr: str) -> SingleConnRpcClient:
    """Return the shared client for ``addr``, creating it on first use."""
    with _clients_lock:
        client = _clients.get(addr)
        if client is None:
            client = SingleConnRpcClient(addr, timeout=config.current().transfer.timeout / 1000)
            _clients[addr] = client
        return client


def send_metrics(metrics: Iterable[MetricValue]) -> Any:
    """Send metrics to one transfer address, tried in random order.

    Returns the first successful response, or None when every address fails.
    """
    addrs = list(config.current().transfer.addrs)
    random.shuffle(addrs)
    payload = [metric.to_dict() for metric in metrics]
    for addr in addrs:
        client = transfer_client(addr)
        try:
            return client.call("Transfer.Update", payload)
        except RpcError as exc:
            log.warning("call Transfer.Update fail: %r %s", client, exc)
    return None