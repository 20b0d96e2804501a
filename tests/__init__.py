"""
Missed-Call Booking Tests

Unit tests live in tests/unit/. Database-backed tests run against a
throwaway SQLite file (aiosqlite) created per test by tests/conftest.py.

Running Tests:
    # Run all tests
    pytest -v

    # Run one module
    pytest tests/unit/test_booking_transaction.py -v

Test Coverage:
    - Intent classification and day/time extraction
    - Slot calendar and business hours
    - Conversation state machine
    - Booking transaction (conflicts, concurrent attempts)
    - Scheduling engine turns end to end
    - Webhook routes, idempotency and health probes
"""
