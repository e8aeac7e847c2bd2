"""
Task subsystem.

Components:
- task_models.py: data structures (TaskDefinition, UserTask, TaskStatus, proof variants)
- task_catalog.py: read-only catalog, JSON loading and the built-in curriculum seed
- proof_validation.py: proof metadata checks against a ProofPolicy
- task_views.py: derived views (category filter, priority sort, stats, selected task)
- task_manager.py: lifecycle state machine and idempotent reward grants
- task_store.py: SQLite-backed progress + review/grant audit trail
"""
