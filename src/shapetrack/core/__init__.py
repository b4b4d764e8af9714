"""Core business logic.

Modules:
- assessment: assessment lifecycle (start, complete, stop, status, answers)
- progress: read-side aggregation (accuracy, status labels, shape progress)
- students: student registry and learning-session recording
"""

__all__ = [
    "assessment",
    "progress",
    "students",
]
