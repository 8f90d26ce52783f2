"""
HyperLogLog Monoid implementation

Enables composable cardinality estimation across:
- Relays (merge the register dumps each relay returns for one filter)
- Storage shards (merge partial counters for the same reference)

Laws:
1. Identity: plus(zero(), x) == x and plus(x, zero()) == x
2. Associativity: plus(plus(a, b), c) == plus(a, plus(b, c))
3. Commutativity and idempotence: plus(a, b) == plus(b, a), plus(a, a) == a
"""
from functools import reduce
from typing import Iterable, List, Optional

from hllcount.core.sketches.hyperloglog import HyperLogLog


class HLLMonoid:
    """
    Monoid for HyperLogLog counters sharing one key window

    Example usage:
        monoid = HLLMonoid(offset=18)

        relay_a = HyperLogLog.from_hex(reply_a["hll"], offset=18)
        relay_b = HyperLogLog.from_hex(reply_b["hll"], offset=18)

        combined = monoid.sum_relays([relay_a, relay_b])
        print(combined.cardinality())
    """

    def __init__(self, offset: int = 0):
        """
        Initialize HLLMonoid

        Args:
            offset: Key window offset of the counters being combined (0-24)
        """
        # Validates the offset
        HyperLogLog(offset)
        self.offset = offset

    def zero(self) -> HyperLogLog:
        """
        Identity element: empty HyperLogLog

        Returns:
            Empty HLL with the monoid's offset
        """
        return HyperLogLog(self.offset)

    def plus(self, a: HyperLogLog, b: HyperLogLog) -> HyperLogLog:
        """
        Combine two HyperLogLogs into a new one

        Neither input is modified. Register sets are combined even when the
        operands report different offsets; the result carries the monoid's.

        Args:
            a: First HLL
            b: Second HLL

        Returns:
            Merged HLL (union of both)
        """
        merged = self.zero()
        merged.merge(a)
        merged.merge(b)
        return merged

    def sum(self, items: Iterable[HyperLogLog]) -> HyperLogLog:
        """Combine any number of HLLs; an empty input gives zero()"""
        return reduce(self.plus, items, self.zero())

    def sum_option(self, items: List[Optional[HyperLogLog]]) -> Optional[HyperLogLog]:
        """
        Sum a list of optional counters, skipping None values

        Returns:
            Combined result or None if all inputs are None
        """
        present = [item for item in items if item is not None]
        if not present:
            return None
        return self.sum(present)

    def sum_relays(self, hlls: List[HyperLogLog]) -> HyperLogLog:
        """
        Merge the counters several relays returned for the same filter

        Example:
            total = monoid.sum_relays([hll_relay1, hll_relay2, hll_relay3])
        """
        return self.sum(hlls)

    def sum_register_dumps(self, dumps: Iterable[str]) -> HyperLogLog:
        """
        Merge hex register dumps (the "hll" field of count replies)

        Raises:
            InvalidRegisterCountError: If a dump is not 256 hex-encoded bytes
        """
        return self.sum(HyperLogLog.from_hex(dump, self.offset) for dump in dumps)
