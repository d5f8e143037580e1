"""Core probe — spawn, capture, owned timers and teardown."""
