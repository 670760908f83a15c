"""
reStrike VTA - Video Tracking Assistant

Ingest backend for taekwondo PSS (Protection and Scoring System) consoles.
Receives live UDP telemetry and decodes it into typed match events for
broadcast automation.
"""

__version__ = "0.3.0"
__author__ = "reStrike Contributors"
