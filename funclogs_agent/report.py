from typing import Any, Iterable, List, Tuple


def _value(obj: Any, attr: str) -> str:
    value = getattr(obj, attr, None)
    if value is None or value == "" or value == []:
        return "-"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def _render(title: str, rows: Iterable[Tuple[str, str]]) -> str:
    lines: List[str] = [title]
    for label, value in rows:
        lines.append(f"\t{label}: {value}")
    return "\n".join(lines)


def format_site(site: Any) -> str:
    """Return a readable dump of a web/function app."""
    return _render(
        f"Web app: {_value(site, 'id')}",
        [
            ("Name", _value(site, "name")),
            ("Kind", _value(site, "kind")),
            ("State", _value(site, "state")),
            ("Region", _value(site, "location")),
            ("Default host", _value(site, "default_host_name")),
            ("Host names", _value(site, "enabled_host_names")),
            ("App service plan", _value(site, "server_farm_id")),
            ("Outbound IPs", _value(site, "outbound_ip_addresses")),
        ],
    )


def format_function(function: Any) -> str:
    """Return a readable dump of a function envelope."""
    return _render(
        f"Function: {_value(function, 'id')}",
        [
            ("Name", _value(function, "name")),
            ("Language", _value(function, "language")),
            ("Invoke URL", _value(function, "invoke_url_template")),
            ("Href", _value(function, "href")),
            ("Disabled", _value(function, "is_disabled")),
        ],
    )
