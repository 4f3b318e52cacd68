"""Infrastructure layer — section-file grammar, file locking, config store."""
