"""Core types shared by every component."""
