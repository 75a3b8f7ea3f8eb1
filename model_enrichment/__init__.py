"""
Model Enrichment - Research-driven curation of the AI model catalog.

This package provides:
- selection: Candidate scoring, ranking and operator review listing
- enrichment: LLM research calls and catalog update merging
- jobs: Executions, batch processor, controller, polling and watchdog
- store: Firestore / in-memory persistence for models and executions

Entry points:
- cli.py: `model-enrichment` operator CLI
"""
