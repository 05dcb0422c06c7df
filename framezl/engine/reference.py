"""
Reference compression engine for framezl.

A self-contained engine backend built on zstandard / lz4 entropy coding and
numpy byte-plane transposition. It owns the physical frame layout:

    header   magic "FZLF", format version (u16), flags (u16), output count (u32)
    table    one fixed-size entry per output
    streams  per output: auxiliary stream, then payload stream

Each table entry records the output type, the entropy codec of both streams,
the byte transform, element width, element count, decompressed size and the
stored sizes of the two streams. Because the table has fixed-size entries,
per-output metadata can be read without touching any payload.

This layout is private to the reference backend. Sessions, codecs and the
inspector only talk to the CompressionEngine interface, so a production
engine can be plugged in with its own framing.
"""

from __future__ import annotations
import struct
import threading
from itertools import count
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

import lz4
import lz4.frame
import numpy as np
import zstandard as zstd

from .base import CompressionEngine, EngineFault
from .config import EngineConfig, SUPPORTED_FORMAT_VERSIONS
from .sddl import RecordLayout, compile_source
from ..types.aliases import (
    ByteSize,
    FormatVersion,
    GraphID,
    LENGTH_ITEM_SIZE,
    MAX_COMPRESSION_LEVEL,
    MIN_COMPRESSION_LEVEL,
)
from ..types.enums import ColumnType, CParam, EntropyCodec, ErrorCode, Transform

ENGINE_VERSION = "0.3.0"
FRAME_MAGIC = b"FZLF"
HEADER = struct.Struct("<4sHHI")
ENTRY = struct.Struct("<BBBxIQQQQ")
FIELD_WIDTH = struct.Struct("<I")
GENERIC_GRAPH = GraphID(1)


class _Entry(NamedTuple):
    type_tag: int
    codecs: int
    transform: int
    element_width: int
    num_elements: int
    decompressed_size: int
    aux_size: int
    payload_size: int


class _EncodedOutput(NamedTuple):
    entry: _Entry
    aux: bytes
    payload: bytes


class _DecodedOutput(NamedTuple):
    type: ColumnType
    data: bytes
    element_width: int
    num_elements: int
    string_lengths: Optional[np.ndarray]


class _CompressionContext:
    __slots__ = ('params', 'defaults', 'graph', 'released', '_compressors')

    def __init__(self, config: EngineConfig):
        self.defaults: Dict[CParam, int] = {
            CParam.FORMAT_VERSION: config.format_version,
            CParam.COMPRESSION_LEVEL: config.default_level,
            CParam.STICKY_PARAMETERS: 0,
        }
        self.params = dict(self.defaults)
        self.graph: Optional[_Graph] = None
        self.released = False
        self._compressors: Dict[int, zstd.ZstdCompressor] = {}

    def zstd_compressor(self, config: EngineConfig) -> zstd.ZstdCompressor:
        level = self.params[CParam.COMPRESSION_LEVEL]
        compressor = self._compressors.get(level)
        if compressor is None:
            compressor = zstd.ZstdCompressor(
                level=level,
                write_checksum=config.checksums,
                write_content_size=True,
                threads=config.threads,
            )
            self._compressors[level] = compressor
        return compressor

    def end_operation(self) -> None:
        if not self.params[CParam.STICKY_PARAMETERS]:
            self.params = dict(self.defaults)


class _DecompressionContext:
    __slots__ = ('released', '_decompressor')

    def __init__(self):
        self.released = False
        self._decompressor = zstd.ZstdDecompressor()

    @property
    def zstd_decompressor(self) -> zstd.ZstdDecompressor:
        return self._decompressor


class _Graph:
    __slots__ = ('layouts', 'starting_graph', 'is_default', 'released')

    def __init__(self, is_default: bool = False):
        self.layouts: Dict[GraphID, Optional[RecordLayout]] = {}
        self.starting_graph: Optional[GraphID] = None
        self.is_default = is_default
        self.released = False

    @property
    def layout(self) -> Optional[RecordLayout]:
        return self.layouts.get(self.starting_graph)


class _TypedRef:
    __slots__ = ('kind', 'payload', 'element_width', 'num_elements', 'lengths', 'released')

    def __init__(self, kind: ColumnType, payload: bytes, element_width: int,
                 num_elements: int, lengths: Optional[np.ndarray] = None):
        self.kind = kind
        self.payload = payload
        self.element_width = element_width
        self.num_elements = num_elements
        self.lengths = lengths
        self.released = False


class _TypedBuffer:
    __slots__ = ('_output', 'released')

    def __init__(self):
        self._output: Optional[_DecodedOutput] = None
        self.released = False

    def _filled(self) -> _DecodedOutput:
        if self._output is None:
            raise EngineFault(ErrorCode.GENERIC, "typed buffer has not been filled")
        return self._output

    @property
    def type(self) -> ColumnType:
        return self._filled().type

    @property
    def byte_size(self) -> ByteSize:
        return ByteSize(len(self._filled().data))

    @property
    def num_elements(self) -> int:
        return self._filled().num_elements

    @property
    def element_width(self) -> int:
        return self._filled().element_width

    @property
    def data(self) -> bytes:
        return self._filled().data

    @property
    def string_lengths(self) -> Optional[np.ndarray]:
        return self._filled().string_lengths


class _FrameInfoView:
    __slots__ = ('frame', 'format_version', 'num_outputs', 'released')

    def __init__(self, frame: bytes, format_version: int, num_outputs: int):
        self.frame = frame
        self.format_version = format_version
        self.num_outputs = num_outputs
        self.released = False


def _live(handle: Any, kind: str) -> None:
    if handle is None or handle.released:
        raise EngineFault(ErrorCode.GENERIC, f"{kind} used after release")


def _transpose(data: bytes, width: int) -> bytes:
    return np.frombuffer(data, dtype=np.uint8).reshape(-1, width).T.tobytes()


def _untranspose(data: bytes, width: int) -> bytes:
    if width <= 0 or len(data) % width:
        raise EngineFault(ErrorCode.CORRUPTION, f"stream of {len(data)} bytes does not split into width {width}")
    return np.frombuffer(data, dtype=np.uint8).reshape(width, -1).T.tobytes()


def _read_header(frame: bytes) -> Tuple[int, int]:
    if len(frame) < HEADER.size:
        raise EngineFault(ErrorCode.SRC_SIZE_TOO_SMALL, f"frame is too short ({len(frame)} bytes)")
    magic, version, _flags, num_outputs = HEADER.unpack_from(frame, 0)
    if magic != FRAME_MAGIC:
        raise EngineFault(ErrorCode.CORRUPTION, "frame header magic mismatch")
    if version not in SUPPORTED_FORMAT_VERSIONS:
        raise EngineFault(ErrorCode.FORMAT_VERSION_UNSUPPORTED, f"frame format version {version} is not supported")
    return version, num_outputs


def _read_entry(frame: bytes, index: int) -> _Entry:
    offset = HEADER.size + index * ENTRY.size
    if offset + ENTRY.size > len(frame):
        raise EngineFault(ErrorCode.SRC_SIZE_TOO_SMALL, f"output table entry {index} is truncated")
    return _Entry(*ENTRY.unpack_from(frame, offset))


def _parse_frame(frame: bytes) -> Tuple[List[_Entry], List[Tuple[bytes, bytes]]]:
    _, num_outputs = _read_header(frame)
    entries = [_read_entry(frame, i) for i in range(num_outputs)]

    offset = HEADER.size + num_outputs * ENTRY.size
    streams = []
    for entry in entries:
        split = offset + entry.aux_size
        end = split + entry.payload_size
        if end > len(frame):
            raise EngineFault(ErrorCode.CORRUPTION, "output stream is truncated")
        streams.append((frame[offset:split], frame[split:end]))
        offset = end

    if offset != len(frame):
        raise EngineFault(ErrorCode.CORRUPTION, f"{len(frame) - offset} trailing bytes after the last output")
    return entries, streams


class ReferenceEngine(CompressionEngine):
    """zstandard/lz4 backed engine with typed outputs and record graphs."""

    def __init__(self, config: Optional[EngineConfig] = None):
        super().__init__("reference")
        self._config = config or EngineConfig()
        self._graph_ids = count(GENERIC_GRAPH + 1)
        self._lock = threading.Lock()
        self.initialize()

    @property
    def config(self) -> EngineConfig:
        return self._config

    def detect_capabilities(self) -> Dict[str, Any]:
        return {
            'entropy_codecs': [codec.name for codec in EntropyCodec],
            'zstd_version': zstd.__version__,
            'lz4_version': lz4.library_version_string(),
            'format_versions': sorted(SUPPORTED_FORMAT_VERSIONS),
            'description_language': 'sddl-subset',
        }

    def version(self) -> str:
        return ENGINE_VERSION

    def default_format_version(self) -> FormatVersion:
        return FormatVersion(self._config.format_version)

    # Contexts

    def create_cctx(self) -> Optional[_CompressionContext]:
        return _CompressionContext(self._config)

    def free_cctx(self, ctx: _CompressionContext) -> None:
        ctx.graph = None
        ctx.released = True

    def create_dctx(self) -> Optional[_DecompressionContext]:
        return _DecompressionContext()

    def free_dctx(self, ctx: _DecompressionContext) -> None:
        ctx.released = True

    def set_parameter(self, ctx: _CompressionContext, param: CParam, value: int) -> None:
        _live(ctx, "compression context")
        if param == CParam.COMPRESSION_LEVEL:
            if not MIN_COMPRESSION_LEVEL <= value <= MAX_COMPRESSION_LEVEL:
                raise EngineFault(
                    ErrorCode.PARAMETER_INVALID,
                    f"compression level {value} is outside [{MIN_COMPRESSION_LEVEL}, {MAX_COMPRESSION_LEVEL}]",
                )
        elif param == CParam.FORMAT_VERSION:
            if value not in SUPPORTED_FORMAT_VERSIONS:
                raise EngineFault(ErrorCode.FORMAT_VERSION_UNSUPPORTED, f"format version {value} is not supported")
        elif param == CParam.STICKY_PARAMETERS:
            value = 1 if value else 0
        else:
            raise EngineFault(ErrorCode.PARAMETER_INVALID, f"unknown parameter {param!r}")

        ctx.params[CParam(param)] = value
        if param == CParam.STICKY_PARAMETERS:
            ctx.defaults[CParam.STICKY_PARAMETERS] = value

    # Streams

    def _encode_stream(self, ctx: _CompressionContext, raw: bytes) -> Tuple[EntropyCodec, bytes]:
        codec = self._config.entropy
        if not raw or codec == EntropyCodec.NONE:
            return EntropyCodec.NONE, raw

        if codec == EntropyCodec.ZSTD:
            encoded = ctx.zstd_compressor(self._config).compress(raw)
        else:
            encoded = lz4.frame.compress(
                raw,
                compression_level=min(ctx.params[CParam.COMPRESSION_LEVEL], lz4.frame.COMPRESSIONLEVEL_MAX),
                content_checksum=self._config.checksums,
            )

        if len(encoded) >= len(raw):
            return EntropyCodec.NONE, raw
        return codec, encoded

    @staticmethod
    def _decode_stream(ctx: _DecompressionContext, codec_tag: int, blob: bytes, expected: int) -> bytes:
        try:
            codec = EntropyCodec(codec_tag)
        except ValueError:
            raise EngineFault(ErrorCode.CORRUPTION, f"unknown entropy codec {codec_tag}") from None

        try:
            if codec == EntropyCodec.NONE:
                raw = blob
            elif codec == EntropyCodec.ZSTD:
                raw = ctx.zstd_decompressor.decompress(blob, max_output_size=expected)
            else:
                raw = lz4.frame.decompress(blob)
        except (zstd.ZstdError, RuntimeError) as exc:
            raise EngineFault(ErrorCode.CORRUPTION, f"corrupted {codec.name.lower()} stream: {exc}") from exc

        if len(raw) != expected:
            raise EngineFault(ErrorCode.CORRUPTION, f"stream decoded to {len(raw)} bytes, expected {expected}")
        return raw

    # Outputs

    def _encode_output(
        self,
        ctx: _CompressionContext,
        kind: ColumnType,
        payload: bytes,
        element_width: int,
        num_elements: int,
        lengths: Optional[np.ndarray] = None,
        layout: Optional[RecordLayout] = None,
    ) -> _EncodedOutput:
        transform = Transform.NONE
        body = payload
        aux_raw = b""

        if layout is not None:
            transform = Transform.RECORD_SPLIT
            aux_raw = b"".join(FIELD_WIDTH.pack(width) for width in layout.field_widths)
            body = _transpose(payload, layout.record_width)
        elif self._config.shuffle and element_width > 1 and kind in (ColumnType.NUMERIC, ColumnType.STRUCT):
            transform = Transform.SHUFFLE
            body = _transpose(payload, element_width)

        aux_codec, aux = EntropyCodec.NONE, aux_raw
        if lengths is not None:
            aux_codec, aux = self._encode_stream(ctx, lengths.astype("<u4").tobytes())
        body_codec, body = self._encode_stream(ctx, body)

        entry = _Entry(
            type_tag=int(kind),
            codecs=(int(aux_codec) << 4) | int(body_codec),
            transform=int(transform),
            element_width=element_width,
            num_elements=num_elements,
            decompressed_size=len(payload),
            aux_size=len(aux),
            payload_size=len(body),
        )
        return _EncodedOutput(entry, aux, body)

    def _decode_output(self, ctx: _DecompressionContext, entry: _Entry, aux: bytes, payload: bytes) -> _DecodedOutput:
        kind = ColumnType.from_tag(entry.type_tag)
        if kind == ColumnType.UNKNOWN:
            raise EngineFault(ErrorCode.CORRUPTION, f"unknown output type tag {entry.type_tag}")

        body = self._decode_stream(ctx, entry.codecs & 0x0F, payload, entry.decompressed_size)

        if entry.transform == Transform.SHUFFLE:
            body = _untranspose(body, entry.element_width)
        elif entry.transform == Transform.RECORD_SPLIT:
            if len(aux) % FIELD_WIDTH.size:
                raise EngineFault(ErrorCode.CORRUPTION, "record field table is truncated")
            widths = [width for (width,) in FIELD_WIDTH.iter_unpack(aux)]
            body = _untranspose(body, sum(widths))
        elif entry.transform != Transform.NONE:
            raise EngineFault(ErrorCode.CORRUPTION, f"unknown transform {entry.transform}")

        lengths = None
        if kind == ColumnType.STRING:
            raw = self._decode_stream(ctx, entry.codecs >> 4, aux, LENGTH_ITEM_SIZE * entry.num_elements)
            lengths = np.frombuffer(raw, dtype="<u4").astype(np.uint32)
            if int(lengths.sum(dtype=np.uint64)) != len(body):
                raise EngineFault(ErrorCode.CORRUPTION, "string lengths do not cover the string payload")
        elif kind != ColumnType.SERIAL and entry.element_width * entry.num_elements != len(body):
            raise EngineFault(ErrorCode.CORRUPTION, "output size does not match its element layout")

        return _DecodedOutput(kind, body, entry.element_width, entry.num_elements, lengths)

    def _assemble(self, ctx: _CompressionContext, outputs: List[_EncodedOutput], dst_capacity: int) -> bytes:
        parts = [HEADER.pack(FRAME_MAGIC, ctx.params[CParam.FORMAT_VERSION], 0, len(outputs))]
        parts.extend(ENTRY.pack(*output.entry) for output in outputs)
        for output in outputs:
            parts.append(output.aux)
            parts.append(output.payload)

        frame = b"".join(parts)
        if len(frame) > dst_capacity:
            raise EngineFault(
                ErrorCode.DST_CAPACITY_TOO_SMALL,
                f"frame needs {len(frame)} bytes but destination capacity is {dst_capacity}",
            )
        return frame

    # Serial compression

    def compress_bound(self, src_size: int) -> ByteSize:
        return ByteSize(2 * src_size + 4096)

    def compress(self, ctx: _CompressionContext, dst_capacity: int, src: bytes) -> bytes:
        _live(ctx, "compression context")
        try:
            layout = ctx.graph.layout if ctx.graph is not None else None
            if layout is not None:
                layout.record_count(len(src))
            output = self._encode_output(ctx, ColumnType.SERIAL, bytes(src), 1, len(src), layout=layout)
            return self._assemble(ctx, [output], dst_capacity)
        finally:
            ctx.end_operation()

    def decompressed_size(self, frame: bytes) -> ByteSize:
        _, num_outputs = _read_header(frame)
        if num_outputs != 1:
            raise EngineFault(ErrorCode.OUTPUT_COUNT_MISMATCH, f"frame has {num_outputs} outputs, expected 1")
        return ByteSize(_read_entry(frame, 0).decompressed_size)

    def decompress(self, ctx: _DecompressionContext, dst_capacity: int, frame: bytes) -> bytes:
        _live(ctx, "decompression context")
        entries, streams = _parse_frame(frame)
        if len(entries) != 1:
            raise EngineFault(
                ErrorCode.OUTPUT_COUNT_MISMATCH,
                f"plain decompression needs a single-output frame, got {len(entries)} outputs",
            )
        output = self._decode_output(ctx, entries[0], *streams[0])
        if len(output.data) > dst_capacity:
            raise EngineFault(
                ErrorCode.DST_CAPACITY_TOO_SMALL,
                f"output needs {len(output.data)} bytes but destination capacity is {dst_capacity}",
            )
        return output.data

    # Typed compression

    def make_typed_ref(self, kind: ColumnType, payload: bytes, shape: Any) -> Optional[_TypedRef]:
        payload = bytes(payload)
        if kind in (ColumnType.NUMERIC, ColumnType.STRUCT):
            width, num_elements = shape
            if width <= 0 or width * num_elements != len(payload):
                return None
            return _TypedRef(ColumnType(kind), payload, width, num_elements)

        if kind == ColumnType.STRING:
            width, lengths = shape
            lengths = np.asarray(lengths, dtype=np.uint32)
            if int(lengths.sum(dtype=np.uint64)) != len(payload):
                return None
            return _TypedRef(ColumnType.STRING, payload, width, len(lengths), lengths)

        return None

    def free_typed_ref(self, ref: _TypedRef) -> None:
        ref.payload = b""
        ref.lengths = None
        ref.released = True

    def compress_typed(self, ctx: _CompressionContext, dst_capacity: int, refs: Sequence[_TypedRef]) -> bytes:
        _live(ctx, "compression context")
        try:
            if not refs:
                raise EngineFault(ErrorCode.GENERIC, "no typed inputs given")
            if ctx.graph is not None and ctx.graph.layout is not None:
                raise EngineFault(ErrorCode.INPUT_TYPE_UNSUPPORTED, "record graph accepts serial input only")

            outputs = []
            for ref in refs:
                _live(ref, "typed ref")
                outputs.append(self._encode_output(
                    ctx, ref.kind, ref.payload, ref.element_width, ref.num_elements, lengths=ref.lengths
                ))
            return self._assemble(ctx, outputs, dst_capacity)
        finally:
            ctx.end_operation()

    def create_typed_buffer(self) -> Optional[_TypedBuffer]:
        return _TypedBuffer()

    def free_typed_buffer(self, buffer: _TypedBuffer) -> None:
        buffer._output = None
        buffer.released = True

    def decompress_typed(self, ctx: _DecompressionContext, buffers: Sequence[_TypedBuffer], frame: bytes) -> None:
        _live(ctx, "decompression context")
        entries, streams = _parse_frame(frame)
        if len(entries) != len(buffers):
            raise EngineFault(
                ErrorCode.OUTPUT_COUNT_MISMATCH,
                f"frame has {len(entries)} outputs but {len(buffers)} buffers were provided",
            )

        decoded = [self._decode_output(ctx, entry, *stream) for entry, stream in zip(entries, streams)]
        for buffer, output in zip(buffers, decoded):
            _live(buffer, "typed buffer")
            buffer._output = output

    # Frame introspection

    def frame_output_count(self, frame: bytes) -> int:
        _, num_outputs = _read_header(frame)
        if HEADER.size + num_outputs * ENTRY.size > len(frame):
            raise EngineFault(
                ErrorCode.CORRUPTION,
                f"frame of {len(frame)} bytes cannot hold {num_outputs} output table entries",
            )
        return num_outputs

    def open_frame_info(self, frame: bytes) -> Optional[_FrameInfoView]:
        version, num_outputs = _read_header(frame)
        # Truncated tables still open; counts beyond one per trailing byte do not.
        if num_outputs > len(frame) - HEADER.size:
            raise EngineFault(
                ErrorCode.CORRUPTION,
                f"frame of {len(frame)} bytes cannot declare {num_outputs} outputs",
            )
        return _FrameInfoView(bytes(frame), version, num_outputs)

    def free_frame_info(self, info: _FrameInfoView) -> None:
        info.frame = b""
        info.released = True

    def _entry_at(self, info: _FrameInfoView, index: int) -> _Entry:
        _live(info, "frame info")
        if not 0 <= index < info.num_outputs:
            raise EngineFault(ErrorCode.PARAMETER_INVALID, f"output index {index} out of range")
        return _read_entry(info.frame, index)

    def frame_format_version(self, info: _FrameInfoView) -> FormatVersion:
        _live(info, "frame info")
        return FormatVersion(info.format_version)

    def frame_info_output_count(self, info: _FrameInfoView) -> int:
        _live(info, "frame info")
        return info.num_outputs

    def frame_output_type(self, info: _FrameInfoView, index: int) -> ColumnType:
        return ColumnType.from_tag(self._entry_at(info, index).type_tag)

    def frame_output_size(self, info: _FrameInfoView, index: int) -> ByteSize:
        return ByteSize(self._entry_at(info, index).decompressed_size)

    def frame_output_elements(self, info: _FrameInfoView, index: int) -> int:
        return self._entry_at(info, index).num_elements

    # Graphs

    def compile_description(self, source: str) -> bytes:
        return compile_source(source)

    def create_graph(self) -> Optional[_Graph]:
        return _Graph()

    def free_graph(self, graph: _Graph) -> None:
        graph.layouts.clear()
        graph.starting_graph = None
        graph.released = True

    def create_default_graph(self) -> Optional[_Graph]:
        graph = _Graph(is_default=True)
        graph.layouts[GENERIC_GRAPH] = None
        graph.starting_graph = GENERIC_GRAPH
        return graph

    def build_graph(self, graph: _Graph, description: bytes) -> GraphID:
        _live(graph, "graph")
        layout = RecordLayout.from_bytes(bytes(description))
        with self._lock:
            graph_id = GraphID(next(self._graph_ids))
        graph.layouts[graph_id] = layout
        return graph_id

    def select_starting_graph(self, graph: _Graph, graph_id: GraphID) -> None:
        _live(graph, "graph")
        if graph_id not in graph.layouts:
            raise EngineFault(ErrorCode.GRAPH_INVALID, f"graph {graph_id} is not registered on this compressor")
        graph.starting_graph = graph_id

    def ref_graph(self, ctx: _CompressionContext, graph: _Graph) -> None:
        _live(ctx, "compression context")
        _live(graph, "graph")
        if graph.starting_graph is None:
            raise EngineFault(ErrorCode.GRAPH_INVALID, "compressor has no starting graph selected")
        ctx.graph = graph
