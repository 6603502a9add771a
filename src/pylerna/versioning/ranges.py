"""Declared dependency ranges.

Supports Poetry-style caret (`^1.2.0`), tilde (`~1.2.0`), bare exact
(`1.2.0`), wildcard (`*`, `1.*`, `1.2.x`) and PEP 440 specifier sets
(`>=1.2,<2`, `~=1.2`, `==1.2.0`).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from packaging.specifiers import InvalidSpecifier, Specifier, SpecifierSet
from packaging.version import InvalidVersion

from pylerna.errors import VersionError
from pylerna.versioning.semver import Version


class RangeStyle(str, Enum):
    ANY = "any"
    CARET = "caret"
    TILDE = "tilde"
    EXACT = "exact"
    WILDCARD = "wildcard"
    SPECIFIER = "specifier"


_WILDCARD = re.compile(r"^(\d+)(?:\.(\d+))?\.(?:\*|x|X)$|^(\d+)\.(?:\*|x|X)$")


def _release_len(text: str) -> int:
    match = re.match(r"^\d+(?:\.\d+)*", text)
    return len(match.group(0).split(".")) if match else 3


def _trim(version: Version, width: int) -> str:
    parts = [version.major, version.minor, version.patch][: max(1, min(width, 3))]
    return ".".join(str(p) for p in parts)


def _split_specifiers(text: str) -> list[Specifier]:
    """Specifiers in declared order."""
    return [Specifier(part.strip()) for part in text.split(",") if part.strip()]


def _contains(spec: Specifier | SpecifierSet, version: Version) -> bool:
    try:
        return spec.contains(str(version), prereleases=True)
    except InvalidVersion:
        return False


@dataclass(frozen=True)
class VersionRange:
    """A parsed dependency range.

    Attributes:
        text: The range exactly as declared.
        style: Operator family, preserved by `retarget`.
    """

    text: str
    style: RangeStyle

    @classmethod
    def parse(cls, text: str) -> VersionRange:
        """Parse declared range text.

        Raises:
            VersionError: If the text is not a recognised range.
        """
        stripped = text.strip()
        if stripped in ("", "*"):
            return cls(stripped, RangeStyle.ANY)
        if stripped.startswith("^"):
            Version.parse(stripped[1:])
            return cls(stripped, RangeStyle.CARET)
        if stripped.startswith("~") and not stripped.startswith("~="):
            Version.parse(stripped[1:])
            return cls(stripped, RangeStyle.TILDE)
        if _WILDCARD.match(stripped):
            return cls(stripped, RangeStyle.WILDCARD)
        if stripped[0].isdigit():
            Version.parse(stripped)
            return cls(stripped, RangeStyle.EXACT)
        try:
            SpecifierSet(stripped)
        except InvalidSpecifier as e:
            raise VersionError(f"Invalid dependency range: '{text}'") from e
        return cls(stripped, RangeStyle.SPECIFIER)

    def satisfies(self, version: Version) -> bool:
        """True if `version` is inside this range.

        Caret and tilde upper bounds exclude prereleases of the bound itself.
        """
        if self.style == RangeStyle.ANY:
            return True
        if self.style == RangeStyle.EXACT:
            return Version.parse(self.text) == version
        if self.style == RangeStyle.WILDCARD:
            prefix = [int(p) for p in re.findall(r"\d+", self.text)]
            return list(version.release[: len(prefix)]) == prefix
        if self.style in (RangeStyle.CARET, RangeStyle.TILDE):
            low = Version.parse(self.text[1:])
            return low <= version and version.release < self._upper(low)
        return _contains(SpecifierSet(self.text), version)

    def _upper(self, low: Version) -> tuple[int, int, int]:
        width = _release_len(self.text[1:])
        if self.style == RangeStyle.TILDE:
            if width == 1:
                return (low.major + 1, 0, 0)
            return (low.major, low.minor + 1, 0)
        if low.major > 0 or width == 1:
            return (low.major + 1, 0, 0)
        if low.minor > 0 or width == 2:
            return (0, low.minor + 1, 0)
        return (0, 0, low.patch + 1)

    def retarget(self, version: Version, exact: bool = False) -> str:
        """Range text of the same style whose lower bound is `version`.

        Args:
            version: New version of the dependency.
            exact: Pin to exactly `version`.
        """
        if exact:
            if self.style in (RangeStyle.CARET, RangeStyle.TILDE, RangeStyle.EXACT):
                return str(version)
            return f"=={version}"
        if self.style == RangeStyle.ANY:
            return self.text
        if self.style == RangeStyle.CARET:
            return f"^{version}"
        if self.style == RangeStyle.TILDE:
            return f"~{version}"
        if self.style == RangeStyle.EXACT:
            return str(version)
        if self.style == RangeStyle.WILDCARD:
            depth = len(re.findall(r"\d+", self.text))
            wildcard = self.text[-1]
            return f"{_trim(version, depth)}.{wildcard}"
        return self._retarget_specifiers(version)

    def _retarget_specifiers(self, version: Version) -> str:
        out: list[str] = []
        for spec in _split_specifiers(self.text):
            op, value = spec.operator, spec.version
            inside = _contains(spec, version)
            if op in (">=", "==", "===") and not value.endswith(".*"):
                out.append(f"{op}{version}")
            elif op == "==":
                out.append(f"=={_trim(version, _release_len(value))}.*")
            elif op == "~=":
                out.append(f"~={_trim(version, _release_len(value))}")
            elif op == ">":
                out.append(str(spec) if inside else f">={version}")
            elif op == "<=":
                out.append(str(spec) if inside else f"<={version}")
            elif op == "<":
                bumped = Version(version.major + 1, 0, 0)
                out.append(str(spec) if inside else f"<{_trim(bumped, _release_len(value))}")
            elif op == "!=" and not inside:
                continue
            else:
                out.append(str(spec))
        return ",".join(out)

    def __str__(self) -> str:
        return self.text
