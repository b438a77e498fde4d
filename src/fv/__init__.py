"""Finite volume discretization package.

Operator assembly on the staggered grid, momentum right-hand side evaluation
and the pressure Poisson solvers.
"""

__all__ = []
