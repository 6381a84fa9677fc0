# indie_scout/__init__.py
"""
IndieScout package initializer.
Defines package version; the CLI lives in :mod:`indie_scout.cli`.
"""
__version__ = "0.1.0"
