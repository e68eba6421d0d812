# Keeps the repository root importable so tests can share helpers under tests/mocks.
