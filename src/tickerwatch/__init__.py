"""Terminal dashboard for tracking ticker symbols."""
