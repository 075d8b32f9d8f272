"""Shared type aliases for FlakeForge."""

from __future__ import annotations

# Target command and its arguments, shared read-only by every invocation.
Command = tuple[str, ...]

# Environment variables layered over ``os.environ`` for one invocation.
EnvOverrides = dict[str, str]
