"""
Command-line interface for framezl.

This module provides CLI commands for inspecting frames, compiling
record descriptions and compressing or decompressing files.
"""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from .core.compiler import GraphCompiler
from .core.session import CompressionSession, DecompressionSession
from .codecs.inspector import FrameInspector
from .engine.base import CompressionEngine
from .exceptions import FrameZLError
from .factory import create_dense_engine, create_fast_engine, get_default_engine


def _add_preset_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--preset', choices=['default', 'fast', 'dense'],
                       default='default', help='Engine preset to use')


def _engine_for(preset: str) -> CompressionEngine:
    if preset == 'fast':
        return create_fast_engine()
    elif preset == 'dense':
        return create_dense_engine()
    return get_default_engine()


def _read(path: str) -> bytes:
    with open(path, 'rb') as f:
        return f.read()


def _write(path: str, data: bytes) -> None:
    with open(path, 'wb') as f:
        f.write(data)


def _fail(error: FrameZLError) -> int:
    print(f"error: {error.message}", file=sys.stderr)
    return 1


def info_command(argv: Optional[List[str]] = None) -> int:
    """CLI command for printing frame metadata."""
    parser = argparse.ArgumentParser(description='Show framezl frame metadata')
    parser.add_argument('frame', help='Compressed frame file')
    parser.add_argument('--output', type=str, help='Output file for the metadata')
    _add_preset_argument(parser)

    args = parser.parse_args(argv)

    try:
        info = FrameInspector(_engine_for(args.preset)).frame_info(_read(args.frame))
    except FrameZLError as e:
        return _fail(e)

    results: Dict[str, Any] = info.to_dict()
    if args.output:
        with open(args.output, 'w') as f:
            json.dump(results, f, indent=2)
    else:
        print(json.dumps(results, indent=2))
    return 0


def compile_command(argv: Optional[List[str]] = None) -> int:
    """CLI command for compiling a record description."""
    parser = argparse.ArgumentParser(description='Compile a framezl record description')
    parser.add_argument('source', help='Description source file')
    parser.add_argument('-o', '--output', required=True, help='Compiled description file')
    _add_preset_argument(parser)

    args = parser.parse_args(argv)

    with open(args.source, 'r', encoding='utf-8') as f:
        source = f.read()

    try:
        description = GraphCompiler(_engine_for(args.preset)).compile(source)
    except FrameZLError as e:
        return _fail(e)

    _write(args.output, description)
    print(json.dumps({'source': args.source, 'output': args.output, 'size': len(description)}, indent=2))
    return 0


def compress_command(argv: Optional[List[str]] = None) -> int:
    """CLI command for compressing a file."""
    parser = argparse.ArgumentParser(description='Compress a file into a framezl frame')
    parser.add_argument('input', help='File to compress')
    parser.add_argument('output', help='Frame file to write')
    parser.add_argument('--level', type=int, help='Compression level (1-19)')
    parser.add_argument('--description', type=str,
                       help='Compiled description to compress with')
    _add_preset_argument(parser)

    args = parser.parse_args(argv)
    engine = _engine_for(args.preset)
    data = _read(args.input)

    try:
        with CompressionSession(engine) as session:
            if args.level is not None:
                session.set_level(args.level)
            if args.description:
                compressor = GraphCompiler(engine).build_compressor(_read(args.description))
                session.attach_compressor(compressor)
                compressor.close()
            frame = session.compress(data)
    except FrameZLError as e:
        return _fail(e)

    _write(args.output, frame)
    print(json.dumps({
        'input_size': len(data),
        'output_size': len(frame),
        'ratio': len(data) / len(frame),
    }, indent=2))
    return 0


def decompress_command(argv: Optional[List[str]] = None) -> int:
    """CLI command for decompressing a single-output frame."""
    parser = argparse.ArgumentParser(description='Decompress a framezl frame')
    parser.add_argument('input', help='Frame file to decompress')
    parser.add_argument('output', help='File to write')
    _add_preset_argument(parser)

    args = parser.parse_args(argv)

    try:
        with DecompressionSession(_engine_for(args.preset)) as session:
            data = session.decompress(_read(args.input))
    except FrameZLError as e:
        return _fail(e)

    _write(args.output, data)
    return 0


if __name__ == '__main__':
    commands = {
        'info': info_command,
        'compile': compile_command,
        'compress': compress_command,
        'decompress': decompress_command,
    }
    if len(sys.argv) < 2 or sys.argv[1] not in commands:
        print("Usage: python -m framezl.cli <command>")
        print(f"Commands: {', '.join(commands)}")
        sys.exit(1)

    sys.exit(commands[sys.argv[1]](sys.argv[2:]))
