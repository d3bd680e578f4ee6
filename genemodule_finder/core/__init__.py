"""Core computational modules for genemodule-finder.

This package contains the analysis engines:
- modules: Gene module discovery and background-corrected module scoring
"""
