"""Bridge core: command grammar, normalizers, state and the task lifecycle."""
