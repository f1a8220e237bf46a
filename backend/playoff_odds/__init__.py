"""
NFL playoff odds: Monte Carlo season simulation with league tiebreakers.
"""

__version__ = "1.0.0"
