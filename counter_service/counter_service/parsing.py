"""Parsers for the free-text columns of the remote orders and inventory sheets.

Every function here is total: malformed input degrades to a best-effort guess,
never to an exception.

Item lists follow this grammar. The whole field is split once, on the first
separator present; each segment then tries the alternatives in order::

    items    := segment (SEP segment)*       SEP: first of " / ", "/", newline, ","
    segment  := name "x" qty                 e.g. "Carne x 2"
              | qty "x" name                 e.g. "2x Carne"
              | (qty? flavor qty?)+          known flavors found anywhere
              | text                         one item, qty 1
"""

import re
import unicodedata
from collections.abc import Iterable

from .schemas import ItemSpec, Order, OrderItem, RemoteOrderRecord, new_id

SEPARATORS = (" / ", "/", "\n", ",")

# Recurring typos and variants typed into the sheet, keyed by folded spelling
FLAVOR_ALIASES = {
    "quejio": "Queijo",
    "queijio": "Queijo",
    "qeijo": "Queijo",
    "queijo coalho": "Queijo",
    "frago": "Frango",
    "frangp": "Frango",
    "carme": "Carne",
    "carne bovina": "Carne",
    "calabreza": "Calabresa",
    "calabresa acebolada": "Calabresa",
    "coracao": "Coração",
    "coracao de frango": "Coração",
    "medalhao": "Medalhão",
}

BEVERAGE_KEYWORDS = (
    "coca",
    "guarana",
    "agua",
    "suco",
    "refri",
    "fanta",
    "sprite",
    "soda",
    "cerveja",
    "lata",
    "bebida",
)

# Checked in this order; the first group with a keyword in the text wins
STATUS_KEYWORDS = (
    ("todo", ("a fazer", "fazer", "pendente", "novo", "aguardando", "na fila", "todo")),
    ("done", ("entregue", "pronto", "finalizado", "concluido", "done", "delivered")),
    ("canceled", ("cancel",)),
    ("in_progress", ("preparo", "preparando", "andamento", "progress")),
)
DEFAULT_STATUS = "in_progress"

REMOTE_STATUS_LABELS = {
    "todo": "A fazer",
    "in_progress": "Em preparo",
    "done": "Entregue",
    "canceled": "Cancelado",
}

NAME_X_QTY = re.compile(r"^(?P<name>.*?\S)\s*[xX×]\s*(?P<qty>\d+)\s*$")
QTY_X_NAME = re.compile(r"^(?P<qty>\d+)\s*[xX×]\s*(?P<name>\S.*)$")
NUMBER_AFTER = re.compile(r"\s*[x×]?\s*(\d+)")
NUMBER_BEFORE = re.compile(r"(\d+)\s*[x×]?\s*$")
LEADING_NUMBER = re.compile(r"\s*\d")


def fold(text: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", str(text))
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return " ".join(stripped.casefold().split())


def _fold_chars(text: str) -> str:
    # Same as fold() minus whitespace collapsing: one output char per input char
    out = []
    for char in text:
        base = unicodedata.normalize("NFKD", char)[:1] or char
        out.append(base.casefold()[:1] or base)
    return "".join(out)


def normalize_flavor_name(name: str) -> str:
    """Trim a flavor name and fix known typos ("quejio" -> "Queijo")."""
    cleaned = " ".join(str(name or "").split())
    return FLAVOR_ALIASES.get(fold(cleaned), cleaned)


def is_beverage(name: str) -> bool:
    folded = fold(name)
    return any(keyword in folded for keyword in BEVERAGE_KEYWORDS)


def match_flavor(name: str, known_flavors: Iterable[str]) -> str:
    """Resolve a typed name to a catalog flavor.

    Tries an exact match (ignoring case and accents), then substring containment
    in either direction, in catalog order. Falls back to the
    normalized name itself, an ad hoc flavor.
    """
    normalized = normalize_flavor_name(name)
    key = fold(normalized)
    if not key:
        return normalized

    known = [flavor for flavor in known_flavors if fold(flavor)]
    for flavor in known:
        if fold(flavor) == key:
            return flavor
    for flavor in known:
        candidate = fold(flavor)
        if candidate in key or key in candidate:
            return flavor
    return normalized


def split_segments(text: str) -> list[str]:
    """Split an items field on the first separator present, in precedence order.

    Only that separator splits; a lower-precedence one stays inside its segment.
    """
    text = str(text or "").replace("\r\n", "\n").replace("\r", "\n")
    separator = next((sep for sep in SEPARATORS if sep in text), None)
    parts = text.split(separator) if separator else [text]
    return [part.strip() for part in parts if part.strip()]


def _make_item(name: str, qty: int, known_flavors: Iterable[str]) -> ItemSpec:
    qty = max(1, qty)
    if is_beverage(name):
        return ItemSpec(type="beverage", beverage=" ".join(name.split()), qty=qty)
    return ItemSpec(type="skewer", flavor=match_flavor(name, known_flavors), qty=qty)


def scan_flavors(segment: str, known_flavors: Iterable[str]) -> list[ItemSpec]:
    """Find every known flavor mentioned in ``segment``, in text order.

    Flavors are located first, longest names first with each hit blanked out,
    so "Carne de Sol" is not also counted as "Carne". Each flavor then takes
    the number next to it (optionally joined by an ``x``): the one before it
    when the segment starts with a number ("2 Carne 3 Frango"), otherwise the
    one after it ("Carne 2 Frango 3"), else the other side, else 1. A number is
    never given to two flavors.
    """
    text = _fold_chars(segment)
    spans: list[tuple[int, int, str]] = []
    flavors = dict.fromkeys(flavor for flavor in known_flavors if fold(flavor))
    for flavor in sorted(flavors, key=len, reverse=True):
        needle = _fold_chars(flavor)
        start = text.find(needle)
        while start != -1:
            end = start + len(needle)
            spans.append((start, end, flavor))
            text = text[:start] + "\0" * len(needle) + text[end:]
            start = text.find(needle, end)
    spans.sort()

    prefer_before = bool(LEADING_NUMBER.match(text))
    claimed: set[int] = set()
    items: list[ItemSpec] = []
    for index, (start, end, flavor) in enumerate(spans):
        lower = spans[index - 1][1] if index else 0
        upper = spans[index + 1][0] if index + 1 < len(spans) else len(text)
        before = NUMBER_BEFORE.search(text, lower, start)
        after = NUMBER_AFTER.match(text, end, upper)
        candidates = (before, after) if prefer_before else (after, before)
        qty = 1
        for found in candidates:
            if found and found.start(1) not in claimed:
                claimed.add(found.start(1))
                qty = int(found.group(1))
                break
        items.append(ItemSpec(type="skewer", flavor=flavor, qty=max(1, qty)))
    return items


def parse_segment(segment: str, known_flavors: Iterable[str]) -> list[ItemSpec]:
    """Parse one segment of an items field into zero or more items."""
    segment = " ".join(str(segment or "").split())
    if not any(char.isalnum() for char in segment):
        return []
    known_flavors = list(known_flavors)

    match = NAME_X_QTY.match(segment) or QTY_X_NAME.match(segment)
    if match:
        return [_make_item(match.group("name"), int(match.group("qty")), known_flavors)]

    if not is_beverage(segment):
        found = scan_flavors(segment, known_flavors)
        if found:
            return found

    return [_make_item(segment, 1, known_flavors)]


def parse_items_text(text: str, known_flavors: Iterable[str]) -> list[ItemSpec]:
    """Parse a whole free-text items field, e.g. ``"Carne x 2 / Coca-Cola x 1"``."""
    known_flavors = list(known_flavors)
    items: list[ItemSpec] = []
    for segment in split_segments(text):
        items.extend(parse_segment(segment, known_flavors))
    return items


def classify_status(text: str) -> str:
    """Map free-text status ("Em preparo", "Entregue", ...) to a kanban state."""
    folded = fold(text)
    if not folded:
        return DEFAULT_STATUS
    for status, keywords in STATUS_KEYWORDS:
        if any(keyword in folded for keyword in keywords):
            return status
    return DEFAULT_STATUS


def format_items_text(items: Iterable[ItemSpec]) -> str:
    """Render items in the form the sheet uses: ``"Carne x 2 / Coca-Cola x 1"``."""
    return " / ".join(f"{item.name} x {item.qty}" for item in items)


def remote_status_label(status: str) -> str:
    return REMOTE_STATUS_LABELS.get(status, REMOTE_STATUS_LABELS[DEFAULT_STATUS])


def parse_remote_order(record: RemoteOrderRecord, known_flavors: Iterable[str]) -> Order | None:
    """Build an order from a remote sheet row.

    Returns:
        Order | None: ``None`` when the items field yields no item at all.
    """
    specs = parse_items_text(record.items_text, known_flavors)
    if not specs:
        return None

    status = classify_status(record.status_text)
    items = [
        OrderItem(**spec.fields(), delivered_qty=spec.qty if status == "done" else 0)
        for spec in specs
    ]
    order_id = f"ext-{record.row_number}" if record.row_number is not None else new_id()
    return Order(
        id=order_id,
        customer_name=" ".join(record.customer_name.split()) or "Unknown",
        items=items,
        status=status,
        source="external",
        remote_row=record.row_number,
    )
