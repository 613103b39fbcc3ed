from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, List, Tuple, Union

SHOTS_PER_CARD = 12
BULLSEYE_POINTS = 5
MAX_RING_VALUE = 10

BULLSEYE_TOKENS = ("V", "v")


class InvalidShotError(ValueError):
    """Raised when a shot token or a shot card cannot be classified."""


@dataclass(frozen=True)
class Numeric:
    """A scored hit in one of the numbered rings (0-10)."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise InvalidShotError(f"shot value must be an integer, got {self.value!r}")
        if not 0 <= self.value <= MAX_RING_VALUE:
            raise InvalidShotError(f"shot value {self.value} is outside 0-{MAX_RING_VALUE}")

    @property
    def points(self) -> int:
        return self.value

    def to_raw(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Bullseye:
    """A hit in the V-ring, recorded with the ``V`` marker."""

    @property
    def points(self) -> int:
        return BULLSEYE_POINTS

    def to_raw(self) -> str:
        return "V"


@dataclass(frozen=True)
class Unfired:
    """An empty slot on the card (not fired or not recorded)."""

    @property
    def points(self) -> int:
        return 0

    def to_raw(self) -> str:
        return ""


ShotValue = Union[Numeric, Bullseye, Unfired]

BULLSEYE = Bullseye()
UNFIRED = Unfired()


def parse_shot(raw: Any) -> ShotValue:
    """Classify a raw shot token as stored in the ``shots`` text array."""

    if isinstance(raw, (Numeric, Bullseye, Unfired)):
        return raw
    if raw is None:
        return UNFIRED
    if isinstance(raw, bool):
        raise InvalidShotError(f"invalid shot value {raw!r}")
    if isinstance(raw, int):
        return Numeric(raw)
    if isinstance(raw, float):
        if not raw.is_integer():
            raise InvalidShotError(f"shot value {raw!r} is not a whole ring value")
        return Numeric(int(raw))
    if isinstance(raw, str):
        token = raw.strip()
        if not token:
            return UNFIRED
        if token in BULLSEYE_TOKENS:
            return BULLSEYE
        if token.isascii() and token.isdigit():
            return Numeric(int(token))
    raise InvalidShotError(f"invalid shot value {raw!r}")


class ShotSequence:
    """The twelve shots of a score card, in card order.

    Instances are immutable and always hold exactly ``SHOTS_PER_CARD``
    classified values; use :meth:`from_raw` to build one from stored tokens.
    """

    __slots__ = ("_shots",)

    def __init__(self, shots: Iterable[ShotValue]) -> None:
        values = tuple(shots)
        if len(values) != SHOTS_PER_CARD:
            raise InvalidShotError(
                f"a score card holds exactly {SHOTS_PER_CARD} shots, got {len(values)}"
            )
        for value in values:
            if not isinstance(value, (Numeric, Bullseye, Unfired)):
                raise InvalidShotError(f"invalid shot value {value!r}")
        self._shots: Tuple[ShotValue, ...] = values

    @classmethod
    def from_raw(cls, raw: Iterable[Any]) -> "ShotSequence":
        if isinstance(raw, ShotSequence):
            return raw
        if isinstance(raw, (str, bytes)):
            raise InvalidShotError("shots must be a sequence of tokens, not a string")
        return cls(parse_shot(token) for token in raw)

    @classmethod
    def empty(cls) -> "ShotSequence":
        return cls([UNFIRED] * SHOTS_PER_CARD)

    def to_raw(self) -> List[str]:
        return [shot.to_raw() for shot in self._shots]

    def __iter__(self) -> Iterator[ShotValue]:
        return iter(self._shots)

    def __len__(self) -> int:
        return len(self._shots)

    def __getitem__(self, index: int) -> ShotValue:
        return self._shots[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ShotSequence):
            return self._shots == other._shots
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._shots)

    def __repr__(self) -> str:
        return f"ShotSequence({self.to_raw()!r})"
