"""Domain-level collaborator contracts."""
