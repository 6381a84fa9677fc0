# File: indie_scout/parser/__init__.py
"""indie_scout.parser: pure parsers for robots.txt and HTML documents."""
