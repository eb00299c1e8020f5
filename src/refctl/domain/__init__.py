"""Domain layer — patterns, markers, and the match model.

This layer depends only on the standard library.
It must never import from services, infrastructure, commands, or config.
"""
