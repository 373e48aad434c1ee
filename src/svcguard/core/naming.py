from typing import Iterable, List


def service_key(name: str) -> str:
    """Return the comparison key for a service name (trimmed, case-folded)."""
    return name.strip().casefold()


def same_service(left: str, right: str) -> bool:
    return service_key(left) == service_key(right)


def unique_services(names: Iterable[str]) -> List[str]:
    """Trim names, drop blanks and case-insensitive duplicates, keep first-seen order."""
    seen: set[str] = set()
    result: List[str] = []
    for raw in names:
        name = raw.strip()
        if not name:
            continue
        key = name.casefold()
        if key in seen:
            continue
        seen.add(key)
        result.append(name)
    return result


def missing_services(candidates: Iterable[str], existing: Iterable[str]) -> List[str]:
    """Return `candidates - existing` by case-insensitive difference, preserving candidate order."""
    existing_keys = {service_key(name) for name in existing}
    return [name for name in unique_services(candidates) if service_key(name) not in existing_keys]
