"""Child process lifecycle orchestrator."""
