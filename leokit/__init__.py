"""Leo Kit - spec-first team workflow kit."""

# No imports at package level to avoid circular import issues
# Import modules directly where needed

__version__ = "1.0.0"

__all__ = [
    "complexity",
    "config_manager",
    "constitution",
    "errors",
    "github",
    "handoff",
    "hunts",
    "instructions",
    "leokit_logging",
    "models",
    "roles",
    "workflow",
    "workflow_modes",
]
