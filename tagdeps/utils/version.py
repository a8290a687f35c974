"""Semantic versioning utilities."""

import re
from dataclasses import dataclass
from functools import total_ordering


@total_ordering
@dataclass
class SemVer:
    """Semantic version representation."""

    major: int
    minor: int
    patch: int
    prerelease: str | None = None
    build: str | None = None

    _SEMVER_PATTERN = re.compile(
        r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
        r"(?:-(?P<prerelease>(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
        r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
        r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$",
        re.ASCII,
    )

    @classmethod
    def parse(cls, version_str: str) -> "SemVer":
        """Parse a semver string.

        Args:
            version_str: Version string (e.g., "1.2.3", "2.0.0-beta.1+build.123")

        Returns:
            SemVer instance

        Raises:
            ValueError: If the string is not valid semver
        """
        match = cls._SEMVER_PATTERN.match(version_str)
        if not match:
            raise ValueError(f"Invalid semver: {version_str}")

        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor")),
            patch=int(match.group("patch")),
            prerelease=match.group("prerelease"),
            build=match.group("build"),
        )

    @property
    def release(self) -> tuple[int, int, int]:
        """The (major, minor, patch) triple."""
        return (self.major, self.minor, self.patch)

    def __str__(self) -> str:
        version = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            version += f"-{self.prerelease}"
        if self.build:
            version += f"+{self.build}"
        return version

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self.release == other.release and self.prerelease == other.prerelease

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented

        if self.release != other.release:
            return self.release < other.release

        # Prerelease versions have lower precedence
        if self.prerelease and not other.prerelease:
            return True
        if not self.prerelease and other.prerelease:
            return False
        if self.prerelease and other.prerelease:
            return _compare_prerelease(self.prerelease, other.prerelease) < 0

        return False

    def __hash__(self) -> int:
        return hash((self.major, self.minor, self.patch, self.prerelease))


def _compare_prerelease(a: str, b: str) -> int:
    """Compare two prerelease strings per semver precedence rules."""
    parts_a = a.split(".")
    parts_b = b.split(".")

    for pa, pb in zip(parts_a, parts_b, strict=False):
        a_numeric = pa.isdigit()
        b_numeric = pb.isdigit()
        if a_numeric and b_numeric:
            if int(pa) != int(pb):
                return int(pa) - int(pb)
        elif a_numeric:
            # Numeric identifiers sort before alphanumeric ones
            return -1
        elif b_numeric:
            return 1
        elif pa != pb:
            return -1 if pa < pb else 1

    # Longer prerelease has higher precedence
    return len(parts_a) - len(parts_b)


def parse_tag(tag: str) -> SemVer | None:
    """Parse a repository tag name as a semantic version.

    Leading non-digit characters are stripped first, so ``v1.2.3`` and
    ``release-1.2.3`` both parse as ``1.2.3``.

    Args:
        tag: Tag name

    Returns:
        SemVer, or None if the remainder is not valid semver
    """
    index = 0
    while index < len(tag) and tag[index] not in "0123456789":
        index += 1
    stripped = tag[index:]
    try:
        return SemVer.parse(stripped)
    except ValueError:
        return None


_PARTIAL_PATTERN = re.compile(
    r"^(?P<major>\d+|[xX*])"
    r"(?:\.(?P<minor>\d+|[xX*]))?"
    r"(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?:-(?P<prerelease>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?"
    r"(?:\+[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*)?$",
    re.ASCII,
)

_OPERATORS = (">=", "<=", ">", "<", "=", "^", "~")


@dataclass
class _Partial:
    major: int | None
    minor: int | None
    patch: int | None
    prerelease: str | None

    def floor(self) -> SemVer:
        return SemVer(self.major or 0, self.minor or 0, self.patch or 0, self.prerelease)


def _parse_partial(text: str) -> _Partial:
    match = _PARTIAL_PATTERN.match(text)
    if not match:
        raise ValueError(f"Invalid version in requirement: {text!r}")

    def component(group: str) -> int | None:
        value = match.group(group)
        if value is None or value in ("x", "X", "*"):
            return None
        return int(value)

    major = component("major")
    minor = component("minor") if major is not None else None
    patch = component("patch") if minor is not None else None
    prerelease = match.group("prerelease") if patch is not None else None
    return _Partial(major, minor, patch, prerelease)


class VersionRange:
    """A version range specification.

    Comparators are separated by commas and/or whitespace and must all match.
    Supported forms: ``^1.2.3``, ``~1.2``, ``>=1.0.0``, ``<2``, ``=1.2.3``,
    bare ``1.2`` (treated as caret), and wildcards ``*``, ``1.*``, ``1.2.x``.
    """

    def __init__(self, spec: str):
        """Initialize a version range.

        Args:
            spec: Version specifier (e.g., "^1.2.3", "~2.0.0", ">=1.0.0, <2.0.0")

        Raises:
            ValueError: If the specifier cannot be parsed
        """
        self.spec = spec
        self._constraints: list[tuple[str, SemVer]] = []
        # Releases for which a prerelease version is allowed to match
        self._prerelease_releases: set[tuple[int, int, int]] = set()
        self._parse_spec(spec)

    def _parse_spec(self, spec: str) -> None:
        """Parse a version specifier into constraints."""
        tokens = self._tokenize(spec)
        if not tokens:
            raise ValueError(f"Empty version requirement: {spec!r}")

        for op, text in tokens:
            partial = _parse_partial(text)
            if partial.prerelease is not None:
                self._prerelease_releases.add(partial.floor().release)
            self._constraints.extend(self._expand(op, partial))

    @staticmethod
    def _tokenize(spec: str) -> list[tuple[str, str]]:
        """Split a specifier into (operator, version) pairs."""
        words = [w for w in re.split(r"[\s,]+", spec.strip()) if w]
        tokens: list[tuple[str, str]] = []
        pending_op: str | None = None

        for word in words:
            op = next((o for o in _OPERATORS if word.startswith(o)), None)
            if op is not None and pending_op is not None:
                raise ValueError(f"Operator {pending_op!r} has no version in {spec!r}")
            if op is not None:
                rest = word[len(op) :]
                if rest:
                    tokens.append((op, rest))
                else:
                    # ">= 1.0.0" style: the version is the next word
                    pending_op = op
            elif pending_op is not None:
                tokens.append((pending_op, word))
                pending_op = None
            else:
                # Bare wildcards mean "any in this position", bare versions mean caret
                tokens.append(("=" if any(c in word for c in "xX*") else "^", word))

        if pending_op is not None:
            raise ValueError(f"Operator {pending_op!r} has no version in {spec!r}")
        return tokens

    @staticmethod
    def _expand(op: str, partial: _Partial) -> list[tuple[str, SemVer]]:
        """Expand one comparator into primitive (op, version) constraints."""
        base = partial.floor()
        major, minor, patch = partial.major, partial.minor, partial.patch

        if major is None:
            # Wildcard: anything goes unless it is an upper bound on nothing
            if op in ("<", "<="):
                raise ValueError("Wildcard cannot be used as an upper bound")
            return []

        if op == "^":
            if major > 0 or minor is None:
                upper = SemVer(major + 1, 0, 0)
            elif minor > 0 or patch is None:
                upper = SemVer(0, minor + 1, 0)
            else:
                upper = SemVer(0, 0, patch + 1)
            return [(">=", base), ("<", _lowest(upper))]

        if op == "~":
            upper = SemVer(major + 1, 0, 0) if minor is None else SemVer(major, minor + 1, 0)
            return [(">=", base), ("<", _lowest(upper))]

        if op == "=":
            if patch is not None:
                return [("=", base)]
            upper = SemVer(major + 1, 0, 0) if minor is None else SemVer(major, minor + 1, 0)
            return [(">=", base), ("<", _lowest(upper))]

        if op == ">":
            if patch is not None:
                return [(">", base)]
            upper = SemVer(major + 1, 0, 0) if minor is None else SemVer(major, minor + 1, 0)
            return [(">=", _lowest(upper))]

        if op == "<=":
            if patch is not None:
                return [("<=", base)]
            upper = SemVer(major + 1, 0, 0) if minor is None else SemVer(major, minor + 1, 0)
            return [("<", _lowest(upper))]

        if op == ">=":
            return [(">=", base)]

        # op == "<"
        return [("<", base if patch is not None else _lowest(base))]

    def matches(self, version: SemVer | str) -> bool:
        """Check if a version matches this range.

        Args:
            version: Version to check

        Returns:
            True if the version satisfies the range
        """
        if isinstance(version, str):
            version = SemVer.parse(version)

        if version.prerelease and version.release not in self._prerelease_releases:
            return False

        for op, constraint in self._constraints:
            if op == ">=" and version < constraint:
                return False
            if op == "<=" and version > constraint:
                return False
            if op == ">" and version <= constraint:
                return False
            if op == "<" and version >= constraint:
                return False
            if op == "=" and version != constraint:
                return False

        return True

    def __str__(self) -> str:
        return self.spec

    def __repr__(self) -> str:
        return f"VersionRange({self.spec!r})"


def _lowest(version: SemVer) -> SemVer:
    # "0" is the lowest prerelease identifier, so <X.Y.Z-0 excludes
    # prereleases of the upper bound release itself.
    return SemVer(version.major, version.minor, version.patch, "0")


def is_compatible(spec: str, version: str) -> bool:
    """Check if a version is compatible with a specifier.

    Args:
        spec: Version specifier (e.g., "^1.2.3", "~2.0.0")
        version: Version string to check

    Returns:
        True if compatible
    """
    try:
        return VersionRange(spec).matches(version)
    except ValueError:
        return False
