"""Domain entities, value objects and collaborator interfaces."""
