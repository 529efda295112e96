"""Quest creator service: generation orchestration, editing and persistence."""
