"""Core project model, reconcilers and command execution."""
