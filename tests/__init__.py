"""
Merit engine test suite.

Test Organization
-----------------
- tests/unit/          : Fast unit tests with mocks or pure functions
- tests/unit/domain/   : Immutable record and rule tests
- tests/integration/   : Tests against a real database (SQLite file, or a
                         PostgreSQL testcontainer with MERIT_TEST_POSTGRES=1)

Use pytest markers (unit, domain, integration, database) to select tests.
"""
