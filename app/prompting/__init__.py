"""Prompting package.

This package owns the assistant's system-prompt template and the deterministic
helpers that render it and assemble chat messages around it. It does not
validate markdown, select providers, or invoke models.
"""
