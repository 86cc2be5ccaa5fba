"""Weekly planner: FastAPI service and optimistic client sync core."""
