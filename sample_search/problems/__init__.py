"""Concrete problems that plug into :class:`sample_search.SearchEngine`."""

from .linear import IntegerMix, LinearConstraint, LinearProblem, product_mix

__all__ = [
    "IntegerMix",
    "LinearConstraint",
    "LinearProblem",
    "product_mix",
]
