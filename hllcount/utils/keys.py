"""
Redis key naming for stored counters
"""


class RedisKeyGenerator:
    """
    Generate Redis keys for counters

    Format: {prefix}:{reference}:{offset}
    Example: "hll:3bf0c63f...459d:18"
    """

    def __init__(self, prefix: str = "hll"):
        self.prefix = prefix

    def hll_key(self, reference: str, offset: int) -> str:
        """Key of the counter for a reference and key window offset"""
        return f"{self.prefix}:{reference.lower()}:{offset}"
