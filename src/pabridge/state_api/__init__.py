"""State API: the tasks/projects CRUD service, in-memory or table-backed."""
