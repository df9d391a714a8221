"""HTTP surface: FastAPI app, routes and request dependencies."""
