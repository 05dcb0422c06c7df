from __future__ import annotations
from dataclasses import dataclass

from ..types.aliases import MAX_COMPRESSION_LEVEL, MIN_COMPRESSION_LEVEL
from ..types.enums import EntropyCodec

FORMAT_VERSION = 1
SUPPORTED_FORMAT_VERSIONS = frozenset({FORMAT_VERSION})
DEFAULT_COMPRESSION_LEVEL = 3


@dataclass(frozen=True)
class EngineConfig:
    entropy: EntropyCodec = EntropyCodec.ZSTD
    default_level: int = DEFAULT_COMPRESSION_LEVEL
    format_version: int = FORMAT_VERSION
    checksums: bool = True
    shuffle: bool = True
    threads: int = 0

    def __post_init__(self):
        if not MIN_COMPRESSION_LEVEL <= self.default_level <= MAX_COMPRESSION_LEVEL:
            raise ValueError(
                f"Default level must be within [{MIN_COMPRESSION_LEVEL}, {MAX_COMPRESSION_LEVEL}]: "
                f"{self.default_level}"
            )

        if self.format_version not in SUPPORTED_FORMAT_VERSIONS:
            raise ValueError(f"Unsupported format version: {self.format_version}")

        if self.threads < 0:
            raise ValueError(f"Thread count must be non-negative: {self.threads}")

    def with_entropy(self, entropy: EntropyCodec) -> EngineConfig:
        return self.__class__(
            entropy=entropy,
            default_level=self.default_level,
            format_version=self.format_version,
            checksums=self.checksums,
            shuffle=self.shuffle,
            threads=self.threads,
        )

    def __str__(self) -> str:
        return (
            f"EngineConfig(entropy={self.entropy.name}, level={self.default_level}, "
            f"format_version={self.format_version}, shuffle={self.shuffle})"
        )
