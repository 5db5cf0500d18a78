"""Business services for agent authentication and content screening."""
