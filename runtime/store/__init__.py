"""
Storage abstractions for the FlowUI runtime.

Includes:
- SessionStore: cross-screen key/value session data (in-memory)
- NavigationStack: back stack of (flowId, screenId) frames, per-flow
  state and backup/restore
"""
