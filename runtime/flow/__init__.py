"""
Flow orchestration for the FlowUI runtime.

FlowManager is the explicit engine context handed to the UI layer:

- receives UI events (action descriptors) and runs them
- exposes the current, variable-substituted screen
- notifies listeners when the current screen changes
"""
