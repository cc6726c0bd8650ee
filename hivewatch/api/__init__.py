"""HTTP API: roster management, player details and tracker status."""
