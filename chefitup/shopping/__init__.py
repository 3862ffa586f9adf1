"""Shopping list generation and editing."""
