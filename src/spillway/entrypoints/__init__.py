"""Runtime entry points (serverless handlers)."""
