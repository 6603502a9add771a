"""Semantic versions with semver and PEP 440 prerelease spellings.

`1.2.3-alpha.0` and `1.2.3a0` are both understood. A version keeps the
spelling it was parsed with; new prereleases on a release version use the
configured style.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from functools import total_ordering
from typing import Literal

from pylerna.errors import InvalidBumpError, VersionError

VersionStyle = Literal["pep440", "semver"]

SEMVER_PATTERN = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

PEP440_PATTERN = re.compile(
    r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    r"(?:[-_.]?(?P<label>alpha|beta|preview|pre|rc|a|b|c)[-_.]?(?P<num>\d+)?)?"
    r"(?:\+(?P<build>[0-9A-Za-z.]+))?$",
    re.IGNORECASE,
)

PEP440_LABELS = {
    "a": "a",
    "alpha": "a",
    "b": "b",
    "beta": "b",
    "c": "rc",
    "rc": "rc",
    "pre": "rc",
    "preview": "rc",
}


class BumpType(str, Enum):
    """Kinds of version increment.

    NONE < PATCH < MINOR < MAJOR order the release bumps; the prerelease
    kinds and GRADUATE are not ordered against them.
    """

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"
    PREPATCH = "prepatch"
    PREMINOR = "preminor"
    PREMAJOR = "premajor"
    PRERELEASE = "prerelease"
    GRADUATE = "graduate"

    @property
    def rank(self) -> int:
        return _RANK.get(self, 0)

    @property
    def is_prerelease(self) -> bool:
        return self in (
            BumpType.PREPATCH,
            BumpType.PREMINOR,
            BumpType.PREMAJOR,
            BumpType.PRERELEASE,
        )

    def as_prerelease(self) -> BumpType:
        """PATCH -> PREPATCH, MINOR -> PREMINOR, MAJOR -> PREMAJOR."""
        return {
            BumpType.PATCH: BumpType.PREPATCH,
            BumpType.MINOR: BumpType.PREMINOR,
            BumpType.MAJOR: BumpType.PREMAJOR,
        }.get(self, self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, BumpType):
            return NotImplemented
        return self.rank < other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, BumpType):
            return NotImplemented
        return self.rank > other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, BumpType):
            return NotImplemented
        return self.rank <= other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, BumpType):
            return NotImplemented
        return self.rank >= other.rank


_RANK = {
    BumpType.NONE: 0,
    BumpType.PATCH: 1,
    BumpType.PREPATCH: 1,
    BumpType.MINOR: 2,
    BumpType.PREMINOR: 2,
    BumpType.MAJOR: 3,
    BumpType.PREMAJOR: 3,
}


def normalize_preid(preid: str, style: VersionStyle) -> str:
    """Validate a prerelease identifier for a style.

    Raises:
        InvalidBumpError: If a PEP 440 preid is not an alpha/beta/rc spelling.
    """
    if style == "semver":
        if not re.fullmatch(r"[0-9A-Za-z-]+", preid):
            raise InvalidBumpError(f"Invalid prerelease identifier '{preid}'")
        return preid
    label = PEP440_LABELS.get(preid.lower())
    if label is None:
        raise InvalidBumpError(
            f"Prerelease identifier '{preid}' is not valid for PEP 440 "
            "(use a, b or rc, or set version_style: semver)"
        )
    return label


def _cmp_identifiers(a: tuple[str | int, ...], b: tuple[str | int, ...]) -> int:
    for x, y in zip(a, b):
        if x == y:
            continue
        if isinstance(x, int) and isinstance(y, int):
            return -1 if x < y else 1
        if isinstance(x, int):
            return -1
        if isinstance(y, int):
            return 1
        return -1 if str(x) < str(y) else 1
    if len(a) == len(b):
        return 0
    return -1 if len(a) < len(b) else 1


@total_ordering
@dataclass(frozen=True)
class Version:
    """A version triple with optional prerelease and build metadata.

    Attributes:
        major: Major component.
        minor: Minor component.
        patch: Patch component.
        pre: Prerelease identifiers, e.g. ("alpha", 0) or ("a", 0).
        build: Build metadata (ignored for ordering).
        style: Spelling of the prerelease, meaningful only when `pre` is set.
    """

    major: int
    minor: int = 0
    patch: int = 0
    pre: tuple[str | int, ...] = ()
    build: str | None = None
    style: VersionStyle = "pep440"

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a semver or PEP 440 version string.

        Raises:
            VersionError: If the string is neither.
        """
        text = text.strip()
        match = SEMVER_PATTERN.match(text)
        if match:
            pre: tuple[str | int, ...] = ()
            if match.group("pre"):
                pre = tuple(
                    int(part) if part.isdigit() else part
                    for part in match.group("pre").split(".")
                )
            return cls(
                int(match.group("major")),
                int(match.group("minor")),
                int(match.group("patch")),
                pre,
                match.group("build"),
                "semver" if pre else "pep440",
            )

        match = PEP440_PATTERN.match(text)
        if match:
            pre = ()
            if match.group("label"):
                label = PEP440_LABELS[match.group("label").lower()]
                pre = (label, int(match.group("num") or 0))
            return cls(
                int(match.group("major")),
                int(match.group("minor") or 0),
                int(match.group("patch") or 0),
                pre,
                match.group("build"),
                "pep440",
            )

        raise VersionError(f"Invalid version: '{text}'")

    @property
    def is_prerelease(self) -> bool:
        return bool(self.pre)

    @property
    def release(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    @property
    def preid(self) -> str | None:
        if self.pre and isinstance(self.pre[0], str):
            return self.pre[0]
        return None

    def __str__(self) -> str:
        out = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            if self.style == "semver":
                out += "-" + ".".join(str(p) for p in self.pre)
            else:
                out += "".join(str(p) for p in self.pre)
        if self.build:
            out += f"+{self.build}"
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.release == other.release and self.pre == other.pre

    def __hash__(self) -> int:
        return hash((self.release, self.pre))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        if self.release != other.release:
            return self.release < other.release
        if not self.pre or not other.pre:
            # A prerelease sorts before its release.
            return bool(self.pre) and not other.pre
        return _cmp_identifiers(self.pre, other.pre) < 0

    def _seed(self, preid: str | None, style: VersionStyle, start: int) -> tuple[str | int, ...]:
        if style == "pep440":
            return (normalize_preid(preid or "a", style), start)
        if preid:
            return (normalize_preid(preid, style), start)
        return (start,)

    def bump(
        self,
        bump: BumpType,
        preid: str | None = None,
        *,
        style: VersionStyle | None = None,
        prerelease_start: int = 0,
    ) -> Version:
        """Return the next version.

        Increment rules follow npm's semver `inc`: a prerelease of the target
        release is finalised rather than skipped, `pre*` bumps seed a counter
        at `prerelease_start`, and `prerelease` increments the trailing
        counter (switching identifier when `preid` differs).

        Args:
            bump: Kind of increment.
            preid: Prerelease identifier for `pre*` bumps.
            style: Spelling for a new prerelease. Defaults to the current
                spelling when this version is a prerelease, else PEP 440.
            prerelease_start: Initial prerelease counter.

        Raises:
            InvalidBumpError: If the bump cannot apply (e.g. graduating a release).
        """
        if self.pre:
            style = self.style
        elif style is None:
            style = "pep440"
        base = replace(self, build=None, style=style)

        if bump == BumpType.NONE:
            return self
        if bump == BumpType.MAJOR:
            if self.pre and self.minor == 0 and self.patch == 0:
                return replace(base, pre=())
            return Version(self.major + 1, 0, 0, style=style)
        if bump == BumpType.MINOR:
            if self.pre and self.patch == 0:
                return replace(base, pre=())
            return Version(self.major, self.minor + 1, 0, style=style)
        if bump == BumpType.PATCH:
            if self.pre:
                return replace(base, pre=())
            return Version(self.major, self.minor, self.patch + 1, style=style)
        if bump == BumpType.PREMAJOR:
            return Version(
                self.major + 1, 0, 0, self._seed(preid, style, prerelease_start), style=style
            )
        if bump == BumpType.PREMINOR:
            return Version(
                self.major,
                self.minor + 1,
                0,
                self._seed(preid, style, prerelease_start),
                style=style,
            )
        if bump == BumpType.PREPATCH:
            return Version(
                self.major,
                self.minor,
                self.patch + 1,
                self._seed(preid, style, prerelease_start),
                style=style,
            )
        if bump == BumpType.PRERELEASE:
            if not self.pre:
                return self.bump(
                    BumpType.PREPATCH, preid, style=style, prerelease_start=prerelease_start
                )
            return replace(base, pre=self._next_pre(preid, prerelease_start))
        if bump == BumpType.GRADUATE:
            if not self.pre:
                raise InvalidBumpError(f"{self} is not a prerelease and cannot graduate")
            return replace(base, pre=())
        raise InvalidBumpError(f"Unknown bump type: {bump}")

    def _next_pre(self, preid: str | None, start: int) -> tuple[str | int, ...]:
        if preid is not None:
            preid = normalize_preid(preid, self.style)
            if self.preid != preid:
                return (preid, start)
        pre = list(self.pre)
        for i in range(len(pre) - 1, -1, -1):
            value = pre[i]
            if isinstance(value, int):
                pre[i] = value + 1
                return tuple(pre)
        return (*pre, start)
