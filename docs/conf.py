"""Sphinx configuration for Wellness Journal documentation."""

import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.abspath(".."))

project = "Wellness Journal"
current_year = datetime.now().year
copyright = f"{current_year}, Wellness Journal"
author = "Wellness Journal Team"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
]

autodoc_member_order = "bysource"

templates_path = ["_templates"]
exclude_patterns: list[str] = []

html_theme = "alabaster"

html_static_path = ["_static"]
