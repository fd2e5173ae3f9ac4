"""
core.resolver.variable_resolver

Resolve `${scope.key}` placeholders in UI strings.

Two reference families are recognised:

    ${navigationData.<key>}   -> value from the session store
    ${fields.<key>}           -> value from the caller's local field map

where <key> matches [A-Za-z0-9_]+.

Resolution is single-pass: the template is scanned once into a token
stream (literal | placeholder) and substituted values are never scanned
again. A placeholder that cannot be resolved (unknown key, null value)
is left in the output verbatim so that it stays visible while debugging
a screen.

Example:

    ctx = ResolutionContext(navigation_data={"username": "ann"})
    resolve("Hi ${navigationData.username} ${fields.email}", ctx)
    # -> "Hi ann ${fields.email}"
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Union


NAVIGATION_DATA_SCOPE = "navigationData"
FIELDS_SCOPE = "fields"
SUPPORTED_SCOPES = (NAVIGATION_DATA_SCOPE, FIELDS_SCOPE)

_KEY_CHARS = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789_"
)


# ============================================================
# Tokens
# ============================================================

@dataclass(frozen=True)
class LiteralToken:
    """Plain text copied to the output unchanged."""

    text: str


@dataclass(frozen=True)
class PlaceholderToken:
    """A recognised `${scope.key}` reference."""

    scope: str
    key: str
    raw: str


Token = Union[LiteralToken, PlaceholderToken]


@dataclass(frozen=True)
class ResolutionContext:
    """Read-only data a template is resolved against."""

    navigation_data: Mapping[str, Any] = field(default_factory=dict)
    fields: Mapping[str, Any] = field(default_factory=dict)

    def lookup(self, scope: str, key: str) -> Any:
        source = self.navigation_data if scope == NAVIGATION_DATA_SCOPE else self.fields
        if source is None:
            return None
        return source.get(key)


# ============================================================
# Scanner
# ============================================================

def _parse_reference(body: str) -> PlaceholderToken | None:
    """
    Parse the text between `${` and `}`.

    Returns None when the body is not `<supported scope>.<key>`.
    """
    scope, sep, key = body.partition(".")
    if not sep or scope not in SUPPORTED_SCOPES:
        return None
    if not key or any(ch not in _KEY_CHARS for ch in key):
        return None
    return PlaceholderToken(scope=scope, key=key, raw="${" + body + "}")


def tokenize(template: str) -> List[Token]:
    """
    Split a template into literal and placeholder tokens.

    The scanner walks the string once. On `${` it looks for the closing
    `}`; if the enclosed text is a valid reference a PlaceholderToken is
    emitted, otherwise the characters are kept as literal text. Adjacent
    literal text is merged into a single LiteralToken.
    """
    tokens: List[Token] = []
    buf: List[str] = []
    i = 0
    n = len(template)

    while i < n:
        if template.startswith("${", i):
            close = template.find("}", i + 2)
            if close == -1:
                # Unterminated placeholder: the rest is literal.
                buf.append(template[i:])
                break

            ref = _parse_reference(template[i + 2:close])
            if ref is None:
                # Keep "${" literal and continue scanning right after it so
                # that a valid reference nested in junk is still found.
                buf.append("${")
                i += 2
                continue

            if buf:
                tokens.append(LiteralToken("".join(buf)))
                buf = []
            tokens.append(ref)
            i = close + 1
            continue

        buf.append(template[i])
        i += 1

    if buf:
        tokens.append(LiteralToken("".join(buf)))
    return tokens


def find_placeholders(template: str) -> List[PlaceholderToken]:
    """Return only the placeholder tokens of a template."""
    return [tok for tok in tokenize(template) if isinstance(tok, PlaceholderToken)]


# ============================================================
# Resolution
# ============================================================

def format_value(value: Any) -> str:
    """Render a JSON-like value for substitution into a string."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, dict)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def resolve(template: str, context: ResolutionContext) -> str:
    """
    Substitute every resolvable placeholder in `template`.

    Never raises for a string template; unresolved references are kept
    as their literal placeholder text.
    """
    if "${" not in template:
        return template

    out: List[str] = []
    for tok in tokenize(template):
        if isinstance(tok, LiteralToken):
            out.append(tok.text)
            continue
        value = context.lookup(tok.scope, tok.key)
        out.append(tok.raw if value is None else format_value(value))
    return "".join(out)


def resolve_value(value: Any, context: ResolutionContext) -> Any:
    """
    Resolve every string inside a JSON-like structure.

    Returns a new structure; the input is left untouched. Map keys are
    not resolved, only values.
    """
    if isinstance(value, str):
        return resolve(value, context)
    if isinstance(value, dict):
        return {key: resolve_value(item, context) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_value(item, context) for item in value]
    return value
