"""
Tests package - test suite for declarative-sync.

Contains:
- unit/: Unit tests for individual components
- fixtures/: Sample manifests and the in-memory object store
"""
