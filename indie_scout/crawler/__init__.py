# File: indie_scout/crawler/__init__.py
"""indie_scout.crawler: robots.txt, rate-limit, fetch with retry and the SiteCrawler composing them."""
