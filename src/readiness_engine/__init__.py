"""
Readiness engine.

Fuses activity and wellness data from several providers into daily
recovery, sleep and stress scores for a single athlete.
"""

__version__ = "0.1.0"
