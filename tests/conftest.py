"""Pytest configuration and shared fixtures."""

from hypothesis import settings

# Create a profile named "no_deadline" with deadline disabled.
#
# Socket-backed examples have uneven latency on shared CI runners.
settings.register_profile("no_deadline", deadline=None)
settings.load_profile("no_deadline")
