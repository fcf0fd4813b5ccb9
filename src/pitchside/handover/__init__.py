"""Handover: bulk reassignment of pending tasks."""

from pitchside.handover.engine import HandoverEngine

__all__ = ["HandoverEngine"]
