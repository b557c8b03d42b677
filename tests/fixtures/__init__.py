"""Shared test fixtures package.

Provides reusable helpers and function-scoped fixtures for all test suites.
"""
