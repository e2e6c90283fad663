"""Shared services: money, notifications, audio cues."""
