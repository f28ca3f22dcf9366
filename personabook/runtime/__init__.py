"""Runtime services: conversation handling and background jobs."""
