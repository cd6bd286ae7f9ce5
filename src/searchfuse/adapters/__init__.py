"""Search engine layer — Pluggable scrapers for public search backends.

Built-in engines:
  - Google: www.google.com result pages
  - DuckDuckGo: html.duckduckgo.com result pages plus Instant Answers

Subclass ``SearchEngine`` and register the instance to add a backend.
"""
