"""
Scheduling Engine Tests

Running Tests:
    # Unit tests (no external services)
    pytest tests/unit -v

    # Smoke tests against a running service
    pytest tests/e2e/smoke_test_e2e.py -v

Test Coverage:
    - Date, time and urgency parsing
    - Recurrence expansion and slot search
    - Conversation memory and loop detection
    - Safety filter and handover detection
    - Handover state and owner notifications
    - Scheduling state machine end to end
    - Inbound handler and HTTP routes
"""
