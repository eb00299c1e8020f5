"""Infrastructure layer — text bodies, timers, and external search tools."""
