"""Care-thread messaging engine for hospital admissions."""

__version__ = "0.1.0"
