"""Domain types, collaborator interfaces and phrases."""
