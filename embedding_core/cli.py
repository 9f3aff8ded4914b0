#!/usr/bin/env python3
"""
Embedding Store CLI - Command line interface for embedding stores.

Usage:
    embedding-store benchmark [--size=N] [--dimension=D] [--seed=S]
    embedding-store info --file=FILE
    embedding-store search --file=FILE --query=JSON [--minimum-score=F] [--maximum-results=N]
    embedding-store config show [--config-dir=DIR]
    embedding-store version
    embedding-store --help

Commands:
    benchmark           Time a brute-force search over random embeddings
    info                Show information about a dumped store
    search              Search a dumped store with a JSON query vector
    config              Show the effective configuration
    version             Show version information

Options:
    -h --help               Show this help message
    --size=N                Number of embeddings [default: 1000000]
    --dimension=D           Embedding dimension [default: 128]
    --seed=S                Random seed
    --file=FILE             Buffer produced by EmbeddingStore.dump()
    --query=JSON            Query embedding, e.g. "[0.1, 0.2]"
    --minimum-score=F       Lowest score to return
    --maximum-results=N     Maximum number of results
    --config-dir=DIR        Configuration directory
"""

import json
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from embedding_core import __version__
from embedding_core.config import ConfigManager, ConfigValidationError
from embedding_core.interfaces import EmbeddingStoreError
from embedding_core.monitoring import LoggingContext, OperationLogger, configure_logging, get_logger
from embedding_core.store import EmbeddingStore

DEFAULT_BENCHMARK_SIZE = 1000 * 1000
DEFAULT_BENCHMARK_DIMENSION = 128


class EmbeddingStoreCLI:
    """Embedding store command line interface."""

    def __init__(self, config_dir: Optional[str] = None):
        self.config_manager = ConfigManager(config_dir)
        logging_config = self.config_manager.config.logging
        configure_logging(
            log_level=logging_config.level.value,
            json_format=logging_config.json_format,
            log_format=logging_config.format,
        )
        self.logger = get_logger(__name__, "cli", json_format=logging_config.json_format)

    def _create_store(self) -> EmbeddingStore:
        return EmbeddingStore(self.config_manager.get_store_config())

    def _load_store(self, file: str) -> EmbeddingStore:
        store = self._create_store()
        with OperationLogger(self.logger, "load") as op:
            store.load(Path(file).read_bytes())
            op.context["size"] = store.size()
        return store

    def benchmark_command(
        self,
        size: int = DEFAULT_BENCHMARK_SIZE,
        dimension: int = DEFAULT_BENCHMARK_DIMENSION,
        seed: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Fill a store with random embeddings and time one search."""
        print(f"Preparing {size} embeddings of dimension {dimension}...")
        rng = np.random.default_rng(seed)
        embeddings = rng.uniform(-1, 1, (size, dimension)).astype(np.float32)
        query = rng.uniform(-1, 1, dimension).astype(np.float32)

        store = self._create_store()
        with OperationLogger(self.logger, "append") as op:
            store.append_matrix(embeddings, range(size))
        append_ms = op.duration_ms

        print("Searching...")
        start = time.perf_counter()
        results = store.search(query)
        search_ms = (time.perf_counter() - start) * 1000

        print(f"Time: {search_ms:.3f}ms")
        return {
            "size": size,
            "dimension": dimension,
            "append_ms": append_ms,
            "search_ms": search_ms,
            "results": len(results),
        }

    def info_command(self, file: str) -> Dict[str, Any]:
        """Show information about a dumped store."""
        store = self._load_store(file)
        info = store.info()
        print(json.dumps(info, indent=2))
        return info

    def search_command(
        self,
        file: str,
        query: str,
        minimum_score: Optional[float] = None,
        maximum_results: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Search a dumped store."""
        store = self._load_store(file)
        query_vector = json.loads(query)

        with OperationLogger(self.logger, "search") as op:
            results = store.search(
                query_vector, minimum_score=minimum_score, maximum_results=maximum_results
            )
            op.context["results"] = len(results)

        output = [result.to_dict() for result in results]
        print(json.dumps(output, indent=2, default=str))
        return output

    def config_command(self, action: str) -> Dict[str, Any]:
        """Show the effective configuration."""
        if action != "show":
            raise ValueError(f"Unknown config action: {action}")
        config = self.config_manager.to_dict()
        print(json.dumps(config, indent=2))
        return config


def parse_args(argv: List[str]) -> Tuple[Optional[str], Dict[str, Any]]:
    """Parse ``command --key=value --flag positional`` style arguments."""
    if not argv or argv[0] in ("-h", "--help"):
        return None, {}

    command = argv[0]
    args: Dict[str, Any] = {}

    i = 1
    while i < len(argv):
        arg = argv[i]

        if arg.startswith("--"):
            if "=" in arg:
                key, value = arg[2:].split("=", 1)
                args[key] = value
            else:
                key = arg[2:]
                if i + 1 < len(argv) and not argv[i + 1].startswith("--"):
                    args[key] = argv[i + 1]
                    i += 1
                else:
                    args[key] = True
        else:
            args.setdefault("positional", []).append(arg)

        i += 1

    return command, args


def _optional(args: Dict[str, Any], key: str, converter):
    value = args.get(key)
    return None if value is None else converter(value)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    command, args = parse_args(sys.argv[1:] if argv is None else argv)

    if command is None:
        print(__doc__)
        return 0

    if command == "version":
        print(f"embedding-store {__version__}")
        return 0

    try:
        cli = EmbeddingStoreCLI(args.get("config-dir"))

        with LoggingContext():
            if command == "benchmark":
                cli.benchmark_command(
                    size=int(args.get("size", DEFAULT_BENCHMARK_SIZE)),
                    dimension=int(args.get("dimension", DEFAULT_BENCHMARK_DIMENSION)),
                    seed=_optional(args, "seed", int),
                )

            elif command == "info":
                if "file" not in args:
                    print("❌ Info requires --file argument")
                    return 1
                cli.info_command(args["file"])

            elif command == "search":
                if "file" not in args or "query" not in args:
                    print("❌ Search requires --file and --query arguments")
                    return 1
                cli.search_command(
                    args["file"],
                    args["query"],
                    minimum_score=_optional(args, "minimum-score", float),
                    maximum_results=_optional(args, "maximum-results", int),
                )

            elif command == "config":
                positional = args.get("positional", [])
                if not positional:
                    print("❌ Config command requires action (show)")
                    return 1
                cli.config_command(positional[0])

            else:
                print(f"❌ Unknown command: {command}")
                print(__doc__)
                return 1

    except (EmbeddingStoreError, ConfigValidationError) as e:
        print(f"❌ {type(e).__name__}: {e}")
        return 1
    except (OSError, ValueError) as e:
        print(f"❌ {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
