"""Core rules engine package for FourFor4."""

__all__ = [
    "errors",
    "items",
    "catalog",
    "tokens",
    "rules_schema",
    "bidding",
    "blocking",
    "pool",
    "ranking",
    "state",
    "integrity",
    "scoring",
    "commands",
    "sync",
    "game",
    "service",
    "logging_config",
]
