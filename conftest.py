"""Repository root conftest.

Its presence puts the repository root on sys.path so that test modules can
import shared helpers from the `tests` package, e.g. `tests.channels.mock`.
"""
