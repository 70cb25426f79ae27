"""
streaklab: daily-bar strategy simulator for streak and gap templates.
"""

__version__ = "0.1.0"
