"""
Runtime package for the FlowUI engine.

This package contains:
- Flow orchestration (FlowManager: the explicit engine context)
- Stores (session data, navigation stack + flow state)
- Models (Pydantic models for frames, backups and HTTP payloads)
- API layer (FastAPI diagnostics server + routes)
"""
