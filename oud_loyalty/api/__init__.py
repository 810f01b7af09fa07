"""
API blueprints for the Oud loyalty engine.
"""
from .loyalty_program import loyalty_program_bp

__all__ = ['loyalty_program_bp']
