"""
Tank Watch data pipeline

Builds the "race to the bottom" table: the worst teams in the league, how
many games they still play against each other, and which of those games
are coming up, with provider fallback and last-good snapshot fallback.
"""

__version__ = "1.0.0"
__author__ = "Tank Watch Team"
