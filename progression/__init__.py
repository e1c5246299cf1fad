"""Gamification progression engine: points, levels, badges and streaks."""
