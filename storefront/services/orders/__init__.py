"""
Order lifecycle management.

Submodules:
- enums: statuses, transition table and shipping status lookup
- state_machine: guarded status transitions with history
- repository: order persistence and atomic stock decrement
- service: checkout and lifecycle operations
- scheduler: delayed confirmed -> processing transition
"""
