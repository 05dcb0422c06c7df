from __future__ import annotations
import asyncio
import logging
from typing import Optional

from .compressor import Compressor
from ..engine.base import CompressionEngine, EngineFault
from ..exceptions import CompilationError, ValidationError

logger = logging.getLogger(__name__)


class GraphCompiler:
    """Compiles description source text into an opaque compiled description.

    Compilation never touches a session. The only state kept between calls is
    the diagnostic of the most recent failure.
    """

    __slots__ = ('_engine', '_last_diagnostic')

    def __init__(self, engine: CompressionEngine):
        self._engine = engine
        self._last_diagnostic: Optional[str] = None

    @property
    def last_diagnostic(self) -> Optional[str]:
        return self._last_diagnostic

    def compile(self, source: str) -> bytes:
        if isinstance(source, (bytes, bytearray)):
            try:
                source = bytes(source).decode('utf-8')
            except UnicodeDecodeError as exc:
                raise ValidationError("source must be UTF-8 text", field='source') from exc
        if not isinstance(source, str):
            raise ValidationError(f"source must be text, got {type(source).__name__}", field='source')
        if not source.strip():
            self._last_diagnostic = "description source must not be empty"
            raise CompilationError(self._last_diagnostic, diagnostic=self._last_diagnostic)

        try:
            description = self._engine.compile_description(source)
        except EngineFault as fault:
            self._last_diagnostic = fault.context
            raise CompilationError(
                fault.context or "description compilation failed",
                diagnostic=fault.context,
                error_code=fault.code,
            ) from fault

        self._last_diagnostic = None
        logger.debug("Compiled %d chars of source into %d-byte description", len(source), len(description))
        return description

    async def compile_async(self, source: str) -> bytes:
        return await asyncio.to_thread(self.compile, source)

    def build_compressor(self, description: bytes) -> Compressor:
        return Compressor.from_description(self._engine, description)
