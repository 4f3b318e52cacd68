"""Domain layer — realm identity formats, schemas and the realm model.

This layer depends only on stdlib, pydantic and :mod:`realmctl.errors`.
It must never import from services, infrastructure, plugins, or config.
"""
