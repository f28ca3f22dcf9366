"""Periodic background jobs."""

from personabook.runtime.scheduling.sweeper import SessionSweeper, SweepReport

__all__ = ["SessionSweeper", "SweepReport"]
