"""FastAPI server lifecycle plugins."""
