"""Taskflow core: authorization rules, status workflows and persistence."""
