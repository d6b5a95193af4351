"""Apply and delete serverless function resources through a client, and prepare function containers."""

__version__ = "0.1.0"