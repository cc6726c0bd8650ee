"""Service layer - roster management and notification delivery."""
