"""
Unit tests for trialkit.

Test individual components in isolation:
- Retry policy (validation, configuration errors)
- Retry controller (continuation rule, verdicts, suspension, cancellation)
- Exception classification and the controller registry
- Marker option parsing, naming, settings
- Stopwatch and environment helpers
"""
