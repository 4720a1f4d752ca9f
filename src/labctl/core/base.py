"""Base models shared by configuration and runtime state.

Kept separate from config.py and log.py so both can import it without a
cycle. Provides:
- Closeable, the protocol for anything that releases a resource
- BaseCloseable, a pydantic model that closes its Closeable fields
- BaseConfig, the marker for models loaded from YAML/env/CLI
"""

from __future__ import annotations

import sys
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


@runtime_checkable
class Closeable(Protocol):
    """Anything with a close() that releases a resource."""

    def close(self) -> None:
        ...


class BaseCloseable(BaseModel):
    """Pydantic model that closes its Closeable children.

    close() visits every field and calls close() on children that
    implement Closeable. A failing child is reported on stderr and the
    walk continues, so one broken sink never keeps the secrets file on
    disk. Usable as a context manager.
    """

    def close(self):
        for field_name in self.__class__.model_fields:
            child = getattr(self, field_name, None)
            if child is None or not isinstance(child, Closeable):
                continue
            try:
                child.close()
            except Exception as e:
                print(
                    f"Warning: error closing {field_name}: {e}",
                    file=sys.stderr,
                )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # noqa: U100
        self.close()
        return False


class BaseConfig(BaseCloseable):
    """Configuration loaded from YAML/env/CLI."""
    pass


__all__ = ["Closeable", "BaseCloseable", "BaseConfig"]
