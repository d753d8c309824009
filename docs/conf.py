"""Sphinx configuration for Gesture Liveness documentation."""

from __future__ import annotations

import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.abspath("../src"))

from gesture_liveness.__about__ import __version__  # noqa: E402

project = "Gesture Liveness"
copyright = f"{datetime.now().year}, Gesture Liveness Contributors"
author = "Gesture Liveness Contributors"
release = __version__

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.autosummary",
    "sphinx.ext.viewcode",
]

autosummary_generate = True
autodoc_member_order = "bysource"
autodoc_typehints = "description"
autodoc_default_options = {"members": True, "show-inheritance": True}
python_use_unqualified_type_names = True

templates_path = ["_templates"]
exclude_patterns = ["_build", "Thumbs.db", ".DS_Store"]

html_theme = "alabaster"
html_static_path = ["_static"]
