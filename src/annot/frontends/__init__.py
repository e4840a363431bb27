# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Source frontends for declaration annotations."""

from annot.frontends.python import PythonFrontend

__all__ = ["PythonFrontend"]
