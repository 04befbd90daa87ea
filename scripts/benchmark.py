#!/usr/bin/env python
"""
Benchmark tag parsing, prompt assembly and refinement merging.

Runs locally; no backend or credentials needed.

Usage:
    python scripts/benchmark.py [--tags N] [--rounds N]
"""

import argparse
import sys
import time
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voidweaver.core.assembler import assemble_prompt
from voidweaver.core.codec import parse_tags, serialize_tags
from voidweaver.core.merge import merge_refinement
from voidweaver.core.models import ModuleName
from voidweaver.core.store import ModuleStore


def _editor_text(count: int) -> str:
    lines = []
    for i in range(count):
        if i % 3 == 0:
            lines.append(f"{1.0 + (i % 8) * 0.5:.1f}::tag number {i}::")
        else:
            lines.append(f"tag number {i}")
    return "\n".join(lines)


def _timed(label: str, rounds: int, fn) -> None:
    start = time.perf_counter()
    for _ in range(rounds):
        fn()
    elapsed = time.perf_counter() - start
    print(f"✓ {label}: {elapsed * 1000 / rounds:.3f} ms/op ({rounds} rounds)")


def main() -> None:
    """Run the core benchmarks."""
    parser = argparse.ArgumentParser(description="Benchmark the prompt editor core")
    parser.add_argument("--tags", type=int, default=40, help="Tags per module (default: 40)")
    parser.add_argument("--rounds", type=int, default=500, help="Rounds per benchmark")
    args = parser.parse_args()

    print("Prompt Editor Benchmark")
    print("=" * 50)
    print()

    text = _editor_text(args.tags)
    previous = parse_tags(text)
    _timed("parse_tags (line)", args.rounds, lambda: parse_tags(text))
    _timed("parse_tags with id reuse", args.rounds, lambda: parse_tags(text, previous=previous))
    _timed("serialize_tags", args.rounds, lambda: serialize_tags(previous))

    store = ModuleStore()
    for name in ModuleName:
        store.apply_text(name, text)
    store.toggle_lock(ModuleName.STYLE)
    modules = store.modules
    print(f"  Prompt length: {len(assemble_prompt(modules))} chars")
    _timed("assemble_prompt (8 modules)", args.rounds, lambda: assemble_prompt(modules))
    _timed("merge_refinement", args.rounds, lambda: merge_refinement(modules, modules))

    print()
    print("=" * 50)
    print("Benchmark complete")


if __name__ == "__main__":
    main()
