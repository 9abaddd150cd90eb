"""Mofu timer: race-deadline reminders for keirin and autorace.

This package fetches the daily race schedule feeds, keeps a local selection
of races to be reminded about, and mirrors that selection to an optional
notification backend. A small CLI (``mofu-timer``) drives it.
"""

__all__ = []
