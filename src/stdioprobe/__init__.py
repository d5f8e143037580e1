"""stdioprobe — Bounded liveness probe for stdio JSON-RPC servers."""

__version__ = "0.1.0"
