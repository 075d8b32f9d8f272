"""Allow ``python -m flakeforge``."""

from __future__ import annotations

from flakeforge.cli.app import main

main()
