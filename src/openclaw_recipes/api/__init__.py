"""HTTP API for OpenClaw Recipes."""
