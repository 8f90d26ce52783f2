"""
Monoid implementations for HyperLogLog counters

Inspired by Twitter Algebird
"""
from hllcount.core.monoids.hll_monoid import HLLMonoid

__all__ = [
    'HLLMonoid',
]
