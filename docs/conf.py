# Sphinx configuration file

import os
import sys
sys.path.insert(0, os.path.abspath('../src'))

from skill_runtime import __version__  # noqa: E402

project = 'Skill Task Runtime'
copyright = '2026, Skill Task Runtime contributors'
author = 'Skill Task Runtime contributors'
release = __version__

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.napoleon',
    'sphinx.ext.viewcode',
    'sphinx.ext.intersphinx',
    'sphinx_autodoc_typehints',
]

templates_path = ['_templates']
exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store']

html_theme = 'sphinx_rtd_theme'

autodoc_default_options = {
    'members': True,
    'member-order': 'bysource',
    'undoc-members': True,
    'exclude-members': '__weakref__,model_config,model_fields',
}
# pydantic models document their fields; skip the generated validators.
autodoc_typehints = 'description'

napoleon_google_docstring = True
napoleon_numpy_docstring = False

intersphinx_mapping = {
    'python': ('https://docs.python.org/3', None),
    'pydantic': ('https://docs.pydantic.dev/latest', None),
}
