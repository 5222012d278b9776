"""Rendering layer -- value formatting and email-safe HTML/SVG fragments.

Nothing in this package raises on bad data; failures become visible text.
"""
