#!/usr/bin/env python3
"""
FlowUI CLI

Offline checks for flow descriptor files, so broken flows are caught
before an app ever loads them.

Commands:

1) validate PATH...
   - Check the flow structure (type, flowId, screens) of each file.
   - Validate every action descriptor found anywhere in the screens,
     including nested onSuccess / onError continuations.
   - Exit code is non-zero if any file fails.

2) inspect PATH
   - Print the flow id, its screens, the action kinds it uses and the
     ${scope.key} placeholders it references.

The diagnostics server is started separately, e.g.:

    uvicorn runtime.api.server:app --reload
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

# Ensure project root is on sys.path when running as a script
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from configs.settings import settings
from core.actions.action_models import parse_action
from core.flows.flow_loader import validate_flow_structure
from core.resolver.variable_resolver import find_placeholders
from exceptions.exceptions import StructureError


def _read_flow(path: str) -> Any:
    """Read and decode a flow file, mapping bad JSON to StructureError."""
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Flow file not found: {path}")
    with file_path.open("r", encoding="utf-8") as f:
        text = f.read()
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise StructureError("<document>", f"invalid JSON: {exc}", path) from exc


def iter_action_descriptors(node: Any, path: str = "") -> Iterator[Tuple[str, dict]]:
    """Yield (location, descriptor) for every object carrying an "action" key.

    Descriptors are not descended into: their continuations are validated
    together with them.
    """
    if isinstance(node, dict):
        if isinstance(node.get("action"), str):
            yield path or "<root>", node
            return
        for key, value in node.items():
            child = f"{path}.{key}" if path else str(key)
            yield from iter_action_descriptors(value, child)
    elif isinstance(node, list):
        for index, item in enumerate(node):
            yield from iter_action_descriptors(item, f"{path}[{index}]")


def _iter_strings(node: Any) -> Iterator[str]:
    if isinstance(node, str):
        yield node
    elif isinstance(node, dict):
        for value in node.values():
            yield from _iter_strings(value)
    elif isinstance(node, list):
        for item in node:
            yield from _iter_strings(item)


def _action_kinds(action: Any) -> List[str]:
    kinds = [action.action]
    for continuation in (action.on_success, action.on_error):
        if continuation is not None:
            kinds.extend(_action_kinds(continuation))
    return kinds


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


def validate_file(path: str) -> List[str]:
    """Return a list of problems found in one flow file (empty when valid)."""
    try:
        data = _read_flow(path)
        validate_flow_structure(data, source=path)
    except (OSError, StructureError) as e:
        return [str(e)]

    problems: List[str] = []
    for location, descriptor in iter_action_descriptors(data["screens"], "screens"):
        try:
            parse_action(descriptor)
        except StructureError as e:
            problems.append(f"{location}: invalid field '{e.field}': {e.details}")
    return problems


def cmd_validate(paths: List[str]) -> int:
    failed = 0
    for path in paths:
        problems = validate_file(path)
        if problems:
            failed += 1
            print(f"[FlowUI] ✗ {path}")
            for problem in problems:
                print(f"[FlowUI]     {problem}")
        else:
            print(f"[FlowUI] ✓ {path}")

    print(f"[FlowUI] {len(paths) - failed}/{len(paths)} flow files valid")
    return 1 if failed else 0


# ---------------------------------------------------------------------------
# inspect
# ---------------------------------------------------------------------------


def cmd_inspect(path: str) -> int:
    try:
        data = _read_flow(path)
        validate_flow_structure(data, source=path)
    except (OSError, StructureError) as e:
        print(f"[FlowUI] ✗ {e}")
        return 1

    kinds: List[str] = []
    invalid = 0
    for _, descriptor in iter_action_descriptors(data["screens"], "screens"):
        try:
            action = parse_action(descriptor)
        except StructureError:
            invalid += 1
            continue
        for kind in _action_kinds(action):
            if kind not in kinds:
                kinds.append(kind)

    placeholders: List[str] = []
    for text in _iter_strings(data["screens"]):
        for token in find_placeholders(text):
            if token.raw not in placeholders:
                placeholders.append(token.raw)

    print(f"[FlowUI] Flow: {data['flowId']}")
    print(f"[FlowUI] Screens ({len(data['screens'])}): {', '.join(data['screens'])}")
    print(f"[FlowUI] Action kinds: {', '.join(kinds) or '-'}")
    if invalid:
        print(f"[FlowUI] Invalid descriptors: {invalid} (run validate for details)")
    print(f"[FlowUI] Placeholders: {', '.join(placeholders) or '-'}")
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="FlowUI CLI")
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (default: FLOWUI_LOG_LEVEL or 'INFO')",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_validate = subparsers.add_parser(
        "validate", help="Check flow files and every action descriptor in them"
    )
    p_validate.add_argument("paths", nargs="+", help="Flow JSON files")

    p_inspect = subparsers.add_parser(
        "inspect", help="Summarize screens, action kinds and placeholders of a flow"
    )
    p_inspect.add_argument("path", help="Flow JSON file")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper())

    if args.command == "validate":
        return cmd_validate(args.paths)
    if args.command == "inspect":
        return cmd_inspect(args.path)
    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
