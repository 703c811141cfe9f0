"""Task timeline: collects checklist tasks from a markdown vault into an ordered timeline."""

__version__ = "0.1.0"
