"""Service layer: operations returning ServiceResult.

Services may import from core, engine, simulations and config.
They must never import from commands or output.
"""
