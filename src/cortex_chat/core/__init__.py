"""Core configuration: settings, constants and the upstream agent registry."""
