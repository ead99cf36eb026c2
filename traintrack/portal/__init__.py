"""FastAPI app serving saved reports."""
