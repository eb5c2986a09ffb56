"""Shared helpers for calling user-provided collaborators."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any


def settle(value: Any) -> Any:
    """Return ``value``, running it to completion first if it is awaitable.

    Source processors, mock generators, handoff handlers and asset processors
    may be plain functions or coroutines.
    """
    if inspect.isawaitable(value):
        return asyncio.run(_await(value))
    return value


async def _await(value: Any) -> Any:
    return await value


def as_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def as_text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return str(value)


__all__ = ["as_bytes", "as_text", "settle"]
