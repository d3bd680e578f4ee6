"""Command-line interface for genemodule-finder.

Provides CLI commands for module discovery and scoring.

Example Usage
-------------
    # From command line:
    genemodule-finder --help
    genemodule-finder run -e expression.csv -m cells.csv -g genes.txt -o out/
    genemodule-finder score -e expression.csv --modules out/gene_modules.csv -o scored/
"""

__version__ = "0.1.0"

from .main import cli, main

__all__ = [
    "__version__",
    "cli",
    "main",
]
