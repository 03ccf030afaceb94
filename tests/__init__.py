"""
Test suite for photovault.

This module contains all test cases for the application:
- Unit tests for models, migrations, services and the command line
- Integration tests for startup and the soft-delete flow
"""
