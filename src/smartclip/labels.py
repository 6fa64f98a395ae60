"""Sound-event label sets for the selection policy.

Labels follow the AudioSet ontology used by YAMNet-style classifiers.
A mode names the set of target labels whose presence means the chunk is
wanted; the blacklist holds labels whose strong presence overrides a keep.

Modes:
- default: mouth sounds
- licking: mouth and liquid sounds
- talking: speech
- sleep: ambient noise for sleep recordings
"""

from pathlib import Path

import orjson

from .errors import InvalidPolicyConfiguration

MODES: dict[str, tuple[str, ...]] = {
    "default": (
        "Kiss",
        "Lip smack",
        "Chewing, mastication",
        "Drinking",
        "Breathing",
    ),
    "licking": (
        "Kiss",
        "Lip smack",
        "Chewing, mastication",
        "Drinking",
        "Water",
        "Liquid",
        "Gurgling",
        "Stomach rumble",
        "Drip",
        "Trickle, dribble",
        "Slurp",
        "Fizzy drink",
    ),
    "talking": ("Speech", "Whispering", "Conversation", "Narration"),
    "sleep": ("Rain", "Water", "Wind", "Silence", "White noise"),
}

# Only obvious noise; the matching threshold is kept high to avoid false rejection
BLACKLIST_LABELS: tuple[str, ...] = (
    "Speech",
    "Conversation",
    "Narration",
    "Vehicle",
    "Car",
    "Motor vehicle (road)",
    "Train",
    "Truck",
)


def resolve_mode(mode: str, custom_modes: dict[str, list[str]] | None = None) -> frozenset[str]:
    """Look up the target label set for a mode.

    Custom modes take precedence over built-in ones of the same name.

    Args:
        mode: Mode name (e.g. "licking")
        custom_modes: Optional extra modes loaded from JSON

    Returns:
        Frozen set of target labels

    Raises:
        InvalidPolicyConfiguration: If the mode is unknown or has no labels
    """
    available = available_modes(custom_modes)
    if mode not in available:
        known = ", ".join(sorted(available))
        raise InvalidPolicyConfiguration(f"Unknown mode '{mode}' (known: {known})", field="mode")

    labels = frozenset(label.strip() for label in available[mode] if label.strip())
    if not labels:
        raise InvalidPolicyConfiguration(f"Mode '{mode}' has no target labels", field="mode")
    return labels


def available_modes(custom_modes: dict[str, list[str]] | None = None) -> dict[str, tuple[str, ...]]:
    """Built-in modes merged with custom ones."""
    merged = dict(MODES)
    for name, labels in (custom_modes or {}).items():
        merged[name] = tuple(labels)
    return merged


def mark_label(label: str, target_labels: frozenset[str], blacklist_labels: frozenset[str]) -> str | None:
    """Classify a label as "target", "blacklist", "both" or neither (None).

    A label in both sets is a blacklist hit at or above the blacklist
    threshold and a target hit below it, so it is marked "both".
    """
    is_target = label in target_labels
    is_blacklisted = label in blacklist_labels
    if is_target and is_blacklisted:
        return "both"
    if is_target:
        return "target"
    if is_blacklisted:
        return "blacklist"
    return None


def _read_modes_file(json_path: Path) -> dict | None:
    """Read a modes file, returning None if it does not exist."""
    if not json_path.exists():
        return None

    with open(json_path, "rb") as f:
        data = orjson.loads(f.read())

    if not isinstance(data, dict):
        raise InvalidPolicyConfiguration(f"Invalid modes file: {json_path}", field="modes_file")
    return data


def load_custom_modes(json_path: Path) -> dict[str, list[str]]:
    """Load custom mode definitions from JSON.

    Args:
        json_path: Path to JSON file with format:
            {"mode": ["Label", ...], ...}

    Returns:
        Dict mapping mode names to label lists
    """
    data = _read_modes_file(json_path)
    if data is None:
        return {}

    # Handle both formats:
    # 1. Direct mapping: {"mode": [...]}
    # 2. Nested, as written by export_modes: {"modes": {"mode": [...]}, "blacklist": [...]}
    if "modes" in data:
        data = data["modes"]

    if not isinstance(data, dict):
        raise InvalidPolicyConfiguration(f"Invalid modes file: {json_path}", field="modes_file")

    modes = {}
    for name, labels in data.items():
        if not isinstance(labels, list):
            raise InvalidPolicyConfiguration(
                f"Mode '{name}' in {json_path} must be a list of labels", field="modes_file"
            )
        modes[str(name)] = [str(label) for label in labels]
    return modes


def load_custom_blacklist(json_path: Path) -> list[str] | None:
    """Load the blacklist of a nested modes file.

    Only the nested format carries a blacklist; in the flat format every
    key is a mode.

    Args:
        json_path: Path to JSON file as written by export_modes

    Returns:
        Blacklist labels, or None if the file has no "blacklist" entry
    """
    data = _read_modes_file(json_path)
    if data is None or "modes" not in data or "blacklist" not in data:
        return None

    blacklist = data["blacklist"]
    if not isinstance(blacklist, list):
        raise InvalidPolicyConfiguration(
            f"Blacklist in {json_path} must be a list of labels", field="modes_file"
        )
    return [str(label) for label in blacklist]


def export_modes(
    output_path: Path,
    custom_modes: dict[str, list[str]] | None = None,
    blacklist: list[str] | None = None,
) -> dict:
    """Write the mode table and blacklist to JSON for review/editing.

    The output can be edited and passed back via --modes-file; its
    blacklist then replaces the configured one.

    Args:
        output_path: Path for output JSON
        custom_modes: Optional custom modes to merge in
        blacklist: Blacklist to write (defaults to BLACKLIST_LABELS)

    Returns:
        Dict that was written
    """
    modes = available_modes(custom_modes)
    result = {
        "modes": {name: list(labels) for name, labels in sorted(modes.items())},
        "blacklist": list(BLACKLIST_LABELS if blacklist is None else blacklist),
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "wb") as f:
        f.write(orjson.dumps(result, option=orjson.OPT_INDENT_2))

    return result
