"""Scheduling core: time budget, day assignment, watch queue and schedule generation."""
