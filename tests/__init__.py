"""Test suite for the formcraft form-schema interpreter.

This package contains tests for:
- Component registry (palette order, descriptors, instantiation)
- Schema model and wire format
- Editor state machine (drag/drop, selection, reorder, edit policies)
- Renderers and submission-time validation
- Schema coercion, gateways, drafts and the form runtime
- End-to-end publish and submit scenarios
"""
