"""Docker Compose mode: stack lifecycle, container orchestration and databases."""
