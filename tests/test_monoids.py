"""
Tests for Monoid implementations
"""
import hashlib

import pytest
from hllcount.core.monoids.hll_monoid import HLLMonoid
from hllcount.core.sketches.hyperloglog import (
    HyperLogLog,
    InvalidOffsetError,
    InvalidRegisterCountError,
)


def fill(hll, start, stop):
    for i in range(start, stop):
        hll.add(hashlib.sha256(f"user_{i}".encode()).digest())
    return hll


class TestHLLMonoid:
    """Test HyperLogLog Monoid"""

    def test_zero_element(self):
        """Test identity element"""
        monoid = HLLMonoid(offset=18)
        hll_zero = monoid.zero()

        assert hll_zero.cardinality() == 0
        assert hll_zero.offset == 18

    def test_invalid_offset(self):
        with pytest.raises(InvalidOffsetError):
            HLLMonoid(offset=30)

    def test_identity_law(self):
        monoid = HLLMonoid(offset=8)
        hll = fill(monoid.zero(), 0, 100)

        assert monoid.plus(monoid.zero(), hll) == hll
        assert monoid.plus(hll, monoid.zero()) == hll

    def test_plus_leaves_inputs(self):
        monoid = HLLMonoid(offset=8)
        a = fill(monoid.zero(), 0, 50)
        b = fill(monoid.zero(), 50, 100)
        a_before, b_before = a.get_registers(), b.get_registers()

        monoid.plus(a, b)

        assert a.get_registers() == a_before
        assert b.get_registers() == b_before

    def test_merge_with_overlap(self):
        """Test merging HLLs with overlapping items"""
        monoid = HLLMonoid(offset=8)

        hll1 = fill(monoid.zero(), 0, 150)
        hll2 = fill(monoid.zero(), 50, 200)  # 50-149 overlap

        merged = monoid.plus(hll1, hll2)
        assert merged == fill(monoid.zero(), 0, 200)

    def test_sum_relays(self):
        """Test merging counters returned by several relays"""
        monoid = HLLMonoid(offset=20)

        relays = [fill(monoid.zero(), n * 40, n * 40 + 100) for n in range(5)]
        combined = monoid.sum_relays(relays)

        assert combined == fill(monoid.zero(), 0, 260)

    def test_sum_empty(self):
        monoid = HLLMonoid(offset=8)
        assert monoid.sum([]) == monoid.zero()

    def test_sum_option(self):
        monoid = HLLMonoid(offset=8)
        hll = fill(monoid.zero(), 0, 10)

        assert monoid.sum_option([None, None]) is None
        assert monoid.sum_option([None, hll]) == hll

    def test_sum_register_dumps(self):
        monoid = HLLMonoid(offset=9)
        a = fill(monoid.zero(), 0, 100)
        b = fill(monoid.zero(), 100, 200)

        combined = monoid.sum_register_dumps([a.to_hex(), b.to_hex()])

        assert combined.offset == 9
        assert combined == a + b

    def test_sum_register_dumps_rejects_short_dump(self):
        monoid = HLLMonoid(offset=9)
        with pytest.raises(InvalidRegisterCountError):
            monoid.sum_register_dumps(["00" * 100])

    def test_plus_ignores_operand_offsets(self):
        monoid = HLLMonoid(offset=8)
        a = fill(HyperLogLog(8), 0, 10)
        b = fill(HyperLogLog(16), 10, 20)

        merged = monoid.plus(a, b)
        assert merged.offset == 8
        assert merged.get_registers() == (a + b).get_registers()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
