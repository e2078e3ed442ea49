"""Host monitoring agent: collects Linux system metrics, forwards them over JSON-RPC and serves an HTTP interface."""

__version__ = "1.1.0"