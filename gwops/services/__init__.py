"""Service layer: orchestration on top of the release store."""
