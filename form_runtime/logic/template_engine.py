"""``{{token}}`` substitution for free text.

Used for helper text, confirmation summaries and thank-you messages. A token
is either a function call (``{{sum(items)}}``) or a variable reference, which
is resolved through a fixed chain of lookups, stopping at the first
non-empty result:

1. nested path (``applicant.fullName`` traverses mappings)
2. exact top-level key
3. lower-cased key
4. camelCase converted to snake_case
5. key with underscores removed
6. key with dots and underscores removed
7. first form-value key that contains, or is contained in, the token
   (case-insensitive)

When every lookup fails the configured placeholder (``-``) is rendered.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
import json
import logging
import math
import re

from form_runtime.config import get_config
from form_runtime.logic.scheduler import Clock, monotonic_ms
from form_runtime.logic.value_canonical import canonical_string
from form_runtime.models.expression import TemplateContext

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\{\{([^}]+)\}\}")
_FUNCTION_CALL = re.compile(r"^(\w+)\((.*)\)$", re.DOTALL)
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")
_CACHE_LIMIT = 256


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


def _lookup_path(path: List[str], context: Mapping[str, Any]) -> Any:
    current: Any = context
    for key in path:
        if isinstance(current, Mapping):
            current = current.get(key)
        elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            return None
        if current is None:
            return None
    return current


def _split_path(token: str) -> List[str]:
    # items[0].name -> ["items", "0", "name"]
    return [part for part in re.split(r"[.\[\]]", token) if part]


def resolve_variable(token: str, context: TemplateContext) -> Any:
    """Resolve a variable token through the fallback chain; None when nothing matches."""
    merged = context.merged()
    lookups: List[Callable[[], Any]] = [
        lambda: _lookup_path(_split_path(token), merged),
        lambda: merged.get(token),
        lambda: merged.get(token.lower()),
        lambda: merged.get(camel_to_snake(token)),
        lambda: merged.get(token.replace("_", "")),
        lambda: merged.get(token.replace(".", "").replace("_", "")),
    ]
    for lookup in lookups:
        value = lookup()
        if _is_present(value):
            return value
    needle = token.lower()
    for key, value in context.form_values.items():
        lowered = key.lower()
        if (lowered in needle or needle in lowered) and _is_present(value):
            logger.debug("template_token_fuzzy token=%s key=%s", token, key)
            return value
    return None


def _arg_number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0


def _fn_length(args: List[Any]) -> int:
    if not args:
        return 0
    value = args[0]
    if isinstance(value, (list, str, dict)):
        return len(value)
    return 0


def _fn_sum(args: List[Any]) -> float:
    total = 0.0
    for arg in args:
        if isinstance(arg, list):
            total += sum(_arg_number(item) for item in arg)
        else:
            total += _arg_number(arg)
    return total


def _fn_sum_line_total(args: List[Any]) -> float:
    if not args or not isinstance(args[0], list):
        return 0.0
    total = 0.0
    for item in args[0]:
        if not isinstance(item, dict):
            continue
        if _is_present(item.get("lineTotal")):
            total += _arg_number(item.get("lineTotal"))
        elif _is_present(item.get("quantity")) and _is_present(item.get("unitPrice")):
            total += _arg_number(item.get("quantity")) * _arg_number(item.get("unitPrice"))
    return total


def _fn_count(args: List[Any]) -> int:
    count = 0
    for arg in args:
        if isinstance(arg, list):
            count += len([item for item in arg if _is_present(item)])
        elif _is_present(arg):
            count += 1
    return count


def _group_thousands(number: float, max_decimals: int, min_decimals: int = 0) -> str:
    text = f"{abs(number):,.{max_decimals}f}"
    if "." in text:
        whole, frac = text.split(".")
        frac = frac.rstrip("0").ljust(min_decimals, "0")
        text = f"{whole}.{frac}" if frac else whole
    return ("-" if number < 0 else "") + text


def _fn_format(args: List[Any]) -> str:
    if len(args) < 2:
        return ""
    value, style = args[0], args[1]
    if not isinstance(style, str):
        return canonical_string(value)
    number = _arg_number(value)
    style = style.lower()
    if style == "currency":
        text = _group_thousands(number, 2, 2)
        return f"-${text[1:]}" if text.startswith("-") else f"${text}"
    if style == "number":
        return _group_thousands(number, 3)
    if style == "percent":
        return _group_thousands(number, 2) + "%"
    return canonical_string(value)


TEMPLATE_FUNCTIONS: Dict[str, Callable[[List[Any]], Any]] = {
    "length": _fn_length,
    "sum": _fn_sum,
    "sumLineTotal": _fn_sum_line_total,
    "count": _fn_count,
    "format": _fn_format,
}


def _parse_argument(raw: str, merged: Mapping[str, Any]) -> Any:
    text = raw.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    try:
        return float(text)
    except ValueError:
        return _lookup_path(_split_path(text), merged)


def call_function(token: str, context: TemplateContext) -> Any:
    match = _FUNCTION_CALL.match(token)
    if not match:
        return None
    name, raw_args = match.group(1), match.group(2)
    func = TEMPLATE_FUNCTIONS.get(name)
    if func is None:
        logger.info("template_function_unknown name=%s", name)
        return None
    merged = context.merged()
    args = [_parse_argument(a, merged) for a in raw_args.split(",")] if raw_args.strip() else []
    return func(args)


class TemplateEngine:
    def __init__(
        self,
        placeholder: Optional[str] = None,
        cache_timeout_ms: Optional[float] = None,
        clock: Clock = monotonic_ms,
    ):
        settings = get_config().templates
        self.placeholder = placeholder if placeholder is not None else settings.empty_placeholder
        self.cache_timeout_ms = cache_timeout_ms if cache_timeout_ms is not None else settings.cache_timeout_ms
        self.clock = clock
        self._cache: "OrderedDict[str, Tuple[float, str]]" = OrderedDict()

    def display(self, value: Any) -> str:
        """Render a resolved value as text."""
        if value is None or value == "":
            return self.placeholder
        if isinstance(value, bool):
            return "Yes" if value else "No"
        if isinstance(value, list):
            return str(len(value))
        if isinstance(value, dict):
            if not value:
                return "Empty"
            return f"{len(value)} propert{'y' if len(value) == 1 else 'ies'}"
        if isinstance(value, float):
            if not math.isfinite(value):
                return self.placeholder
            if value.is_integer():
                return str(int(value))
        return str(value)

    def resolve_token(self, token: str, context: TemplateContext) -> str:
        token = token.strip()
        if "(" in token:
            return self.display(call_function(token, context))
        return self.display(resolve_variable(token, context))

    def render(self, template: Optional[str], context: Optional[TemplateContext] = None) -> str:
        if not template:
            return template or ""
        if not TOKEN_PATTERN.search(template):
            return template
        context = context or TemplateContext()
        key = template + "|" + json.dumps(context.model_dump(), sort_keys=True, default=str)
        now = self.clock()
        cached = self._cache.get(key)
        if cached is not None and now - cached[0] < self.cache_timeout_ms:
            return cached[1]
        rendered = TOKEN_PATTERN.sub(lambda m: self.resolve_token(m.group(1), context), template)
        self._cache[key] = (now, rendered)
        self._cache.move_to_end(key)
        while len(self._cache) > _CACHE_LIMIT:
            self._cache.popitem(last=False)
        return rendered

    def extract_tokens(self, template: Optional[str]) -> List[str]:
        return [m.group(1).strip() for m in TOKEN_PATTERN.finditer(template or "")]

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> Dict[str, Any]:
        return {"size": len(self._cache), "timeoutMs": self.cache_timeout_ms}


_ENGINE: Optional[TemplateEngine] = None


def get_template_engine() -> TemplateEngine:
    global _ENGINE
    if _ENGINE is None:
        _ENGINE = TemplateEngine()
    return _ENGINE


def render_template(
    template: Optional[str],
    form_values: Optional[Mapping[str, Any]] = None,
    calculated_values: Optional[Mapping[str, Any]] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> str:
    context = TemplateContext(
        form_values=dict(form_values or {}),
        calculated_values=dict(calculated_values or {}),
        metadata=dict(metadata or {}),
    )
    return get_template_engine().render(template, context)


__all__ = [
    "TOKEN_PATTERN",
    "TEMPLATE_FUNCTIONS",
    "camel_to_snake",
    "resolve_variable",
    "call_function",
    "TemplateEngine",
    "get_template_engine",
    "render_template",
]
