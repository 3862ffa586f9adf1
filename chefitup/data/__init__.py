"""Recipe catalog, meal plans and the shared data model."""
