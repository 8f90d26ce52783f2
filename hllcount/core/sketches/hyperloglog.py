"""
HyperLogLog implementation for distinct key counting
Fixed 256 registers, fed directly from a window of a 32-byte key
"""
import math
from typing import Iterable, Iterator, Union

from hllcount.utils.encoding import KEY_LENGTH, is_valid_hex_key

# Constants shared with every interoperating implementation
M = 256
ALPHA = 0.7182725932495458
LC_MAX = 220
RAW_MAX = 3 * M

WINDOW = 8
MAX_OFFSET = KEY_LENGTH - WINDOW

RegisterSource = Union[bytes, bytearray, memoryview, Iterable[int]]
KeyInput = Union[bytes, bytearray, memoryview, str]


class HyperLogLogError(ValueError):
    """Base error for invalid counter construction"""


class InvalidOffsetError(HyperLogLogError):
    """Offset does not leave room for an 8-byte window in a 32-byte key"""


class InvalidRegisterCountError(HyperLogLogError):
    """Register buffer is not exactly 256 bytes long"""


class InvalidKeyError(HyperLogLogError):
    """Key is not 32 raw bytes (or 64 hex characters)"""


class Registers:
    """
    Fixed-length set of 256 one-byte registers.

    Length is checked once, when the set is built, and never changes after.
    """

    __slots__ = ("_data",)

    def __init__(self, data: RegisterSource = None):
        if data is None:
            self._data = bytearray(M)
            return

        buf = bytearray(data)
        if len(buf) != M:
            raise InvalidRegisterCountError(f"invalid number of registers {len(buf)}")
        self._data = buf

    @classmethod
    def from_hex(cls, text: str) -> 'Registers':
        """Parse the 512-character hex transport form"""
        try:
            data = bytes.fromhex(text)
        except ValueError:
            raise InvalidRegisterCountError(f"register dump is not valid hex ({len(text)} chars)")
        return cls(data)

    def __len__(self) -> int:
        return M

    def __getitem__(self, index: int) -> int:
        return self._data[index]

    def __iter__(self) -> Iterator[int]:
        return iter(self._data)

    def __bytes__(self) -> bytes:
        return bytes(self._data)

    def __eq__(self, other) -> bool:
        if isinstance(other, Registers):
            return self._data == other._data
        return NotImplemented

    def __repr__(self) -> str:
        return f"Registers(nonzero={M - self.zero_count()})"

    def hex(self) -> str:
        return self._data.hex()

    def copy(self) -> 'Registers':
        return Registers(self._data)

    def zero_count(self) -> int:
        return self._data.count(0)

    def raise_to(self, index: int, value: int) -> None:
        """Store value at index if it is larger than the current one"""
        if value > self._data[index]:
            self._data[index] = value

    def max_with(self, other: 'Registers') -> None:
        """Elementwise maximum, in place"""
        data = self._data
        for i, value in enumerate(other):
            if value > data[i]:
                data[i] = value

    def reset(self) -> None:
        for i in range(M):
            self._data[i] = 0


class HyperLogLog:
    """
    HyperLogLog cardinality estimator over 32-byte keys.

    Keys are public keys or content hashes, so they are already uniformly
    distributed and no hashing is applied. The estimator reads the 8-byte
    window key[offset:offset + 8]: the first byte selects the register and
    the remaining 56 bits provide the rank.

    Space: 256 bytes
    Error: ~1.04/sqrt(256), about 6.5%

    Use case: follower / reaction / comment counts that can be merged across
    relays without sharing the underlying keys.
    """

    def __init__(self, offset: int = 0):
        """
        Initialize an empty HyperLogLog

        Args:
            offset: Start of the 8-byte key window (0-24)

        Raises:
            InvalidOffsetError: If offset + 8 would run past the key
        """
        if isinstance(offset, bool) or not isinstance(offset, int) or not 0 <= offset <= MAX_OFFSET:
            raise InvalidOffsetError(f"invalid offset {offset}")

        self.offset = offset
        self.registers = Registers()

    @classmethod
    def from_registers(cls, registers: RegisterSource, offset: int = 0) -> 'HyperLogLog':
        """
        Rebuild a HyperLogLog from a stored register buffer

        The buffer is copied, so later changes on either side are not shared.

        Raises:
            InvalidRegisterCountError: If the buffer is not 256 bytes
            InvalidOffsetError: If the offset is out of range
        """
        hll = cls(offset)
        hll.registers = Registers(registers)
        return hll

    def add(self, key: KeyInput) -> None:
        """
        Record one observation of a key

        Args:
            key: 32 raw bytes, or the same key as 64 hex characters
        """
        key = _coerce_key(key)
        window = key[self.offset:self.offset + WINDOW]

        # Big-endian 64-bit word; top byte is the register address
        w = int.from_bytes(window, "big")
        bucket = w >> 56
        rank = self._leading_zeros(w & 0x00FFFFFFFFFFFFFF) + 1

        self.registers.raise_to(bucket, rank)

    @staticmethod
    def _leading_zeros(w: int) -> int:
        """Count leading zeros among the low 56 bits"""
        return 56 - w.bit_length()

    def merge(self, other: 'HyperLogLog') -> 'HyperLogLog':
        """
        Fold another estimator's registers into this one

        Offsets are not compared: registers may arrive from untrusted peers
        and only the caller knows which window they were built from.

        Returns:
            self
        """
        self.registers.max_with(other.registers)
        return self

    def merge_registers(self, registers: RegisterSource) -> 'HyperLogLog':
        """Merge a raw 256-byte register buffer into this estimator"""
        if not isinstance(registers, Registers):
            registers = Registers(registers)
        self.registers.max_with(registers)
        return self

    def clear(self) -> None:
        """Reset every register to zero"""
        self.registers.reset()

    def cardinality(self) -> int:
        """
        Estimate the number of distinct keys added

        Linear counting is used while the estimate is small, the raw
        HyperLogLog estimate otherwise. Branch order, including the repeated
        linear counting check under the raw estimate guard, must match other
        implementations exactly.

        Returns:
            Estimated distinct count
        """
        zeros = self.registers.zero_count()

        if zeros != 0:
            linear_count = _linear_counting(zeros)
            if linear_count <= LC_MAX:
                return math.floor(linear_count)

        raw_estimate = self._raw_estimate()
        if raw_estimate <= RAW_MAX:
            if zeros != 0:
                return math.floor(_linear_counting(zeros))

        return math.floor(raw_estimate)

    def _raw_estimate(self) -> float:
        total = 0.0
        for value in self.registers:
            total += 1.0 / (2.0 ** value)
        return ALPHA * M * M / total

    def get_registers(self) -> bytes:
        """Snapshot of the 256 registers for persistence or transmission"""
        return bytes(self.registers)

    def set_registers(self, registers: RegisterSource) -> None:
        """Replace the register set wholesale"""
        self.registers = Registers(registers)

    def to_bytes(self) -> bytes:
        """Serialize registers to bytes for storage"""
        return bytes(self.registers)

    @classmethod
    def from_bytes(cls, data: bytes, offset: int = 0) -> 'HyperLogLog':
        """Deserialize from bytes"""
        return cls.from_registers(data, offset)

    def to_hex(self) -> str:
        return self.registers.hex()

    @classmethod
    def from_hex(cls, text: str, offset: int = 0) -> 'HyperLogLog':
        hll = cls(offset)
        hll.registers = Registers.from_hex(text)
        return hll

    def copy(self) -> 'HyperLogLog':
        return HyperLogLog.from_registers(self.registers, self.offset)

    def __add__(self, other: 'HyperLogLog') -> 'HyperLogLog':
        """Support + operator for merging into a new estimator"""
        return self.copy().merge(other)

    def __eq__(self, other) -> bool:
        if isinstance(other, HyperLogLog):
            return self.offset == other.offset and self.registers == other.registers
        return NotImplemented

    def __repr__(self) -> str:
        return f"HyperLogLog(offset={self.offset}, cardinality={self.cardinality()})"


def _linear_counting(zeros: int) -> float:
    return M * math.log(M / zeros)


def _coerce_key(key: KeyInput) -> bytes:
    if isinstance(key, str):
        if not is_valid_hex_key(key):
            raise InvalidKeyError(f"key must be 64 hex characters, got {len(key)}")
        return bytes.fromhex(key)

    key = bytes(key)
    if len(key) != KEY_LENGTH:
        raise InvalidKeyError(f"key must be {KEY_LENGTH} bytes, got {len(key)}")
    return key
