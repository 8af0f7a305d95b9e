"""
Services
Host-side collaborators that drive the alert engine.
"""

from .polling import PollingService, PollResult, PollStats

__all__ = ["PollingService", "PollResult", "PollStats"]
