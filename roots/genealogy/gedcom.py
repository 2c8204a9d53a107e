"""Minimal GEDCOM reader: extracts one display name per individual record."""
import re

_LINE_BREAKS = re.compile(r"\r\n|\n|\r")
_INDI_START = re.compile(r"^0\s+(@[^@]+@\s+)?INDI\b", re.IGNORECASE)


def normalize_gedcom_name(raw: str | None) -> str | None:
    """``John /Smith/`` -> ``John Smith``; blank results become None."""
    cleaned = " ".join(str(raw or "").replace("/", " ").split())
    return cleaned or None


def _display_name(current: dict) -> str | None:
    if current["name"]:
        return current["name"]
    parts = [normalize_gedcom_name(current["given"]), normalize_gedcom_name(current["surname"])]
    return " ".join(p for p in parts if p) or None


def parse_gedcom_people(text: str | None) -> list[dict]:
    """Return ``[{"name": ...}, ...]`` in file order.

    Individuals without any usable name are dropped.
    """
    people = []
    current = None

    def flush():
        if current is None:
            return
        name = _display_name(current)
        if name:
            people.append({"name": name})

    for raw_line in _LINE_BREAKS.split(text or ""):
        line = raw_line.strip()
        if not line:
            continue

        parts = line.split()
        if parts[0] == "0":
            flush()
            if _INDI_START.match(line):
                current = {"name": None, "given": "", "surname": ""}
            else:
                current = None
            continue

        if current is None or len(parts) < 2:
            continue
        tag = parts[1].upper()
        value = " ".join(parts[2:])
        if tag == "NAME":
            current["name"] = normalize_gedcom_name(value)
        elif tag == "GIVN":
            current["given"] = value
        elif tag == "SURN":
            current["surname"] = value

    flush()
    return people
