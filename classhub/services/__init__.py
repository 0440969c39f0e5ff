"""
ClassHub Services
=================

Worksheet state sync and marking services.

Services:
- worksheet_document / task_handlers / state_extractor: the live worksheet and its state
- sandbox: embedding and the frame message boundary
- sync_controller / autosave: when and how state is persisted
- assignment_store: persistence adapter (Supabase, in-memory)
- quiz_grading / replay / marking: grading and review
"""

# Services are imported directly when needed to avoid circular imports
# Example: from classhub.services.sync_controller import SyncController

__all__ = [
    'assignment_store',
    'sync_controller',
    'quiz_grading',
    'replay',
    'marking',
]
