"""Registries mapping type keys to classes for record-based persistence."""

from __future__ import annotations

import logging
from typing import Dict


class Registry:
    """Registry for pluggable classes using decorator pattern."""

    def __init__(self, kind: str):
        """Initialize registry state."""
        self.kind = kind
        self._classes: Dict[str, type] = {}

    def register(self, key: str):
        """Decorator to register a class under ``key``."""

        def decorator(cls):
            """Store a class in the registry."""
            self._classes[key] = cls
            cls.type_key = key
            logging.debug(f"Registered {self.kind}: {key} -> {cls.__name__}")
            return cls

        return decorator

    def get(self, key: str) -> type:
        """Get class by key."""
        if key not in self._classes:
            available = list(self._classes.keys())
            raise ValueError(f"{self.kind.capitalize()} '{key}' not found. Available: {available}")
        return self._classes[key]

    def from_record(self, record: dict):
        """Rebuild an instance from a record carrying a ``type_key`` entry."""
        return self.get(record["type_key"]).from_record(record)

    def __contains__(self, key: str) -> bool:
        return key in self._classes


model_registry = Registry("model")
termination_registry = Registry("termination condition")
burn_in_registry = Registry("burn-in test")
