"""Order orchestration service: turns a user's cart into a persisted order."""

__version__ = "0.1.0"
