"""Roulette - Reviewer assignment and review-lifecycle engine.

This package picks the best available human reviewer for incoming code
review work, tracks each assignment through its lifecycle as reviewers
react to it, and sweeps open assignments for stalls and risk using a
configurable rule engine.
"""

__version__ = "0.1.0"
