"""Retention — deciding from tags and age whether a version is outdated.

This package provides:
- Tag patterns: ordered, negatable glob rules classifying tags
- Durations: ISO 8601 retention durations
- Policy: per-version deletion deadlines
"""
