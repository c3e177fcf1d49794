"""
Studio Session Analytics

Filters, groups, scores and ranks historical class sessions, tagging each
one as Active or Inactive against the current weekly schedule.
"""

__version__ = "1.0.0"
