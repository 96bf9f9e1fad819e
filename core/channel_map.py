"""Map inconsistent PSG signal labels onto the canonical display names."""
from __future__ import annotations

import re
from typing import Optional

__all__ = ["canonicalize", "KNOWN_TOKENS", "AUDIO_LABEL_RE"]

# Ordered (pattern, canonical name) rules; the first match wins.
_DIRECT_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"EOGL"), "E1-M2"),
    (re.compile(r"EOGR"), "E2-M1"),
    (re.compile(r"CHIN"), "Chin EMG"),
    (re.compile(r"LLEG|LEFT ?LEG"), "Left Leg"),
    (re.compile(r"RLEG|RIGHT ?LEG"), "Right Leg"),
    (re.compile(r"ECG"), "ECG"),
    (re.compile(r"SNOR"), "Snore"),
    (re.compile(r"PTAF|NASAL|PTP|NPAF"), "Flow"),
    (re.compile(r"THERM"), "Thermistor"),
    (re.compile(r"THOR"), "Thorax"),
    (re.compile(r"ABD"), "Abdomen"),
    # OxStatus and friends carry no SPO2 token and must stay unmapped here.
    (re.compile(r"\bSPO2\b|SATUR"), "Saturation"),
    (re.compile(r"AUDIO|PTAFVOL|VOLUME"), "Snore"),
    (re.compile(r"[XYZ] ?AXIS|ACCEL"), "Position"),
)

_EEG_PAIRS: tuple[tuple[str, str, str], ...] = (
    ("C3", "M2", "C3-M2"),
    ("C4", "M1", "C4-M1"),
    ("O1", "M2", "O1-M2"),
    ("O2", "M1", "O2-M1"),
)

KNOWN_TOKENS: dict[str, str] = {
    "XAXIS": "Position",
    "YAXIS": "Position",
    "ZAXIS": "Position",
    "C3-M2": "C3-M2",
    "C4-M1": "C4-M1",
    "O1-M2": "O1-M2",
    "O2-M1": "O2-M1",
    "E1-M2": "E1-M2",
    "E2-M1": "E2-M1",
    "CHINEMG": "Chin EMG",
    "ECG": "ECG",
    "FLOW": "Flow",
    "THERMISTOR": "Thermistor",
    "THORAX": "Thorax",
    "ABDOMEN": "Abdomen",
    "SNORE": "Snore",
    "AUDIOVOLUME": "Snore",
    "LEFTLEG": "Left Leg",
    "RIGHTLEG": "Right Leg",
    "SATURATION": "Saturation",
}

AUDIO_LABEL_RE = re.compile(r"AUDIO|PTAFVOL|VOLUME")

_CLEAN_RE = re.compile(r"[^A-Z0-9-]")


def _match_known_token(cleaned: str) -> Optional[str]:
    # Tokens are compared without hyphens against the label with hyphens kept.
    for token, display in KNOWN_TOKENS.items():
        if token.replace("-", "") in cleaned:
            return display
    return None


def canonicalize(raw_label: Optional[str]) -> str:
    """Return the canonical channel name for ``raw_label``.

    Total and deterministic: unknown labels come back trimmed, empty or
    ``None`` input yields ``""``.
    """
    if not raw_label:
        return ""
    label = str(raw_label)
    upper = label.upper()

    for pattern, name in _DIRECT_RULES:
        if pattern.search(upper):
            return name

    for first, second, name in _EEG_PAIRS:
        if first in upper and second in upper:
            return name

    matched = _match_known_token(_CLEAN_RE.sub("", upper))
    if matched is not None:
        return matched

    return label.strip()
