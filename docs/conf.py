"""Sphinx configuration for the account lifecycle API reference."""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

project = "Account Lifecycle Service"
release = "0.1.0"

extensions = ["sphinx.ext.autodoc", "sphinx.ext.napoleon", "sphinx_autodoc_typehints"]

# Storage and mail clients are not needed to render the reference.
autodoc_mock_imports = ["psycopg", "psycopg_pool", "resend"]
autodoc_member_order = "bysource"
autodoc_typehints = "description"
napoleon_google_docstring = False
