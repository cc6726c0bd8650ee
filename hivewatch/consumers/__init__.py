"""Consumer layer - diffing, streaks, forecasting, classification and scheduling.

Import submodules directly (hivewatch.consumers.tracker etc.).
"""
