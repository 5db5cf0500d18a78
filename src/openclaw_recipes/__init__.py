"""OpenClaw Recipes: identity and message trust for autonomous agents."""

__version__ = "0.1.0"
