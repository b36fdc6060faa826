"""Sphinx configuration for the Contact Book API documentation."""

import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.abspath(".."))

project = "Contact Book API"
current_year = datetime.now().year
copyright = f"{current_year}, Contact Book"
author = "Contact Book Team"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
]

autodoc_member_order = "bysource"
autodoc_default_options = {"members": True, "undoc-members": False}

templates_path = ["_templates"]
exclude_patterns: list[str] = ["_build"]

html_theme = "alabaster"
