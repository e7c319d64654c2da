"""
Core app - Shared abstractions and utilities.

This app provides platform-agnostic pieces used by every other app:
- Clock (time source for date-relative filters and token timestamps)
- Error kinds rendered by the API exception handler
- Observability sink and request timing middleware

These abstractions keep the domain services free of ambient global state,
so tests can swap the clock or the sink without patching modules.
"""
