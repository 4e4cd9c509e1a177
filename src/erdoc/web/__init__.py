"""ERDoc web application: FastAPI app, auth dependencies and route modules."""
