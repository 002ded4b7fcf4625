#!/usr/bin/env python
"""
PATH: manage.py

POS backend management entrypoint.

DJANGO_SETTINGS_MODULE must name a concrete module. When it is unset, or
points at the bare "backend.settings" package (which configures nothing),
local development settings are used. Tests run with backend.settings.test,
production with backend.settings.prod.
"""

from __future__ import annotations

import os
import sys

DEFAULT_SETTINGS = "backend.settings.dev"


def _settings_module() -> str:
    current = (os.environ.get("DJANGO_SETTINGS_MODULE") or "").strip()
    if current in ("", "backend.settings"):
        return DEFAULT_SETTINGS
    return current


def main() -> None:
    os.environ["DJANGO_SETTINGS_MODULE"] = _settings_module()

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Install the project first (pip install -e .) "
            "and activate its virtual environment."
        ) from exc

    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
