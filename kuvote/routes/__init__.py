"""FastAPI routers for the KUVote API."""
