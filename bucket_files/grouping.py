from typing import Dict, Iterable, List, Mapping


def group_by_folder(entries: Iterable[Mapping]) -> Dict[str, List[Mapping]]:
    """Group storage entries by the first segment of their `/`-separated name.

    Only one level is grouped. An entry without a separator becomes a key with
    no children; it is never listed under its own key.
    """
    folder_map: Dict[str, List[Mapping]] = {}
    for entry in entries:
        folder_name, *rest = str(entry["name"]).split("/")
        children = folder_map.setdefault(folder_name, [])
        if rest:
            children.append(entry)
    return folder_map


def display_name(entry: Mapping) -> str:
    return str(entry["name"]).split("/")[-1]


def format_bytes(num_bytes: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(max(0, num_bytes))
    unit_idx = 0
    while value >= 1024 and unit_idx < len(units) - 1:
        value /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(value)} {units[unit_idx]}"
    return f"{value:.2f} {units[unit_idx]}"
