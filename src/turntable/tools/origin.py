"""Origin-detector collaborator: run stl2origin and parse its offsets."""

from __future__ import annotations

from dataclasses import dataclass
import math
from pathlib import Path
import re

from turntable.errors import StageFailure
from turntable.pipeline.stage import Stage

OFFSET_KEYS = ("XTRANS", "YTRANS", "ZTRANS", "XMID", "YMID", "ZMID")

_LINE_PATTERN = re.compile(
    r"^(?:export\s+)?(?P<key>[A-Za-z_][A-Za-z0-9_]*)=(?P<value>.*)$"
)


@dataclass(frozen=True, slots=True)
class OffsetVector:
    """Translation and bounding-box midpoint reported for one model."""

    xtrans: float
    ytrans: float
    ztrans: float
    xmid: float
    ymid: float
    zmid: float

    @property
    def translation(self) -> tuple[float, float, float]:
        """Per-axis shift that moves the bounding-box centre to the origin."""

        return (
            self.xtrans - self.xmid,
            self.ytrans - self.ymid,
            self.ztrans - self.zmid,
        )


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1].strip()
    return value


def parse_offset_script(text: str) -> OffsetVector:
    """Parse the detector's ``KEY=value`` script without executing it.

    Exactly the six offset keys must appear, once each, with finite numeric
    values. Blank lines, ``#`` comments and an ``export`` prefix are allowed.
    """

    values: dict[str, float] = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        match = _LINE_PATTERN.match(line)
        if match is None:
            raise StageFailure(Stage.DETECT_ORIGIN, f"unparseable offset line {lineno}: {line!r}")
        key = match.group("key")
        if key not in OFFSET_KEYS:
            raise StageFailure(Stage.DETECT_ORIGIN, f"unknown offset field {key!r} on line {lineno}")
        if key in values:
            raise StageFailure(Stage.DETECT_ORIGIN, f"duplicate offset field {key!r} on line {lineno}")
        raw_value = _unquote(match.group("value"))
        try:
            number = float(raw_value)
        except ValueError as exc:
            raise StageFailure(
                Stage.DETECT_ORIGIN, f"malformed number for {key}: {raw_value!r}"
            ) from exc
        if not math.isfinite(number):
            raise StageFailure(Stage.DETECT_ORIGIN, f"non-finite value for {key}: {raw_value!r}")
        values[key] = number

    missing = [key for key in OFFSET_KEYS if key not in values]
    if missing:
        raise StageFailure(Stage.DETECT_ORIGIN, f"missing offset field(s): {', '.join(missing)}")

    return OffsetVector(
        xtrans=values["XTRANS"],
        ytrans=values["YTRANS"],
        ztrans=values["ZTRANS"],
        xmid=values["XMID"],
        ymid=values["YMID"],
        zmid=values["ZMID"],
    )


def read_offset_script(path: Path) -> OffsetVector:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StageFailure(Stage.DETECT_ORIGIN, f"cannot read offsets from {path}: {exc}") from exc
    return parse_offset_script(text)
