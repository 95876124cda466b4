"""Query canonicalization and PromQL template placeholders.

Templates carry ``{{name}}`` placeholders. A stored template is resolved
against the caller's context before it is returned, which lets one cache
entry serve the same question asked about different services.
"""

import re
import unicodedata

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*\}\}")
_WHITESPACE = re.compile(r"\s+")


def canonicalize(query: str) -> str:
    """Normalize case and whitespace so equivalent phrasings share a cache entry.

    Examples:
        >>> canonicalize("  Show me CPU   usage\\tfor checkout-service? ")
        'show me cpu usage for checkout-service'
    """
    text = unicodedata.normalize("NFKC", query)
    text = _WHITESPACE.sub(" ", text).strip().lower()
    return text.rstrip("?.!").rstrip()


def placeholders(template: str) -> set[str]:
    """Names of all placeholders in a template."""
    return set(PLACEHOLDER_PATTERN.findall(template))


def escape_label_value(value: str) -> str:
    """Escape a value for use inside a double-quoted PromQL string."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def resolve(template: str, values: dict[str, str]) -> str | None:
    """Substitute placeholders, or return None if any placeholder has no value.

    Values are escaped, so a quote in a label value cannot end the string it
    is substituted into.
    """
    missing = placeholders(template) - values.keys()
    if missing:
        return None
    return PLACEHOLDER_PATTERN.sub(lambda m: escape_label_value(values[m.group(1)]), template)


def templatize(promql: str, labels: dict[str, str], time_range: str | None = None) -> str:
    """Turn concrete PromQL back into a reusable template.

    Quoted label values that came from the request context become
    ``"{{key}}"``; a range selector equal to the request time range becomes
    ``[{{time_range}}]``. Metric names are never touched.
    """
    template = promql
    # Longest values first so "checkout" does not clobber "checkout-service".
    for key, value in sorted(labels.items(), key=lambda kv: len(kv[1]), reverse=True):
        if not value:
            continue
        template = re.sub(
            r'(=~?|!=|!~)"' + re.escape(value) + '"',
            lambda m, key=key: f'{m.group(1)}"{{{{{key}}}}}"',
            template,
        )
    if time_range:
        template = template.replace(f"[{time_range}]", "[{{time_range}}]")
        template = template.replace(f"[{time_range}:", "[{{time_range}}:")
    return template
