"""
Pydantic datamodels used by the FlowUI runtime.

Split into:
- session_models: NavigationFrame + SessionBackup
- api_models: HTTP request/response schemas of the diagnostics API
"""
