"""Tests - Test suite for circuit shape extraction."""
