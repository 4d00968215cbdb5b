"""Request-scoped orchestration and the process-wide cache."""
