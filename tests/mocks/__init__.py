"""Test doubles shared by the smtoolkit test suite."""
