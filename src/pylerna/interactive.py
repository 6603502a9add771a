"""Interactive terminal prompts."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import questionary
from questionary import Choice, Style

from pylerna.versioning.semver import BumpType, Version, VersionStyle

RELEASE_BUMPS = (BumpType.PATCH, BumpType.MINOR, BumpType.MAJOR)
PRERELEASE_BUMPS = (
    BumpType.PREPATCH,
    BumpType.PREMINOR,
    BumpType.PREMAJOR,
    BumpType.PRERELEASE,
)


def get_style() -> Style:
    """Style used by every prompt."""
    return Style(
        [
            ("qmark", "fg:#673ab7 bold"),
            ("question", "bold"),
            ("answer", "fg:#f44336 bold"),
            ("pointer", "fg:#673ab7 bold"),
            ("highlighted", "fg:#673ab7 bold"),
            ("selected", "fg:#cc5454"),
            ("separator", "fg:#cc5454"),
            ("instruction", "fg:#888888"),
        ]
    )


def _safe_ask(fn: Callable[..., Any], *args: Any, default: Any = None, **kwargs: Any) -> Any:
    """Run a questionary prompt, returning `default` when it is cancelled.

    Args:
        fn: Questionary prompt factory, e.g. `questionary.select`.
        *args: Positional arguments for `fn`.
        default: Value returned on Ctrl-C or an empty answer.
        **kwargs: Keyword arguments for `fn`.
    """
    try:
        answer = fn(*args, **kwargs).unsafe_ask()
    except KeyboardInterrupt:
        return default
    return default if answer is None else answer


def bump_choices(
    current: Version,
    *,
    preid: str | None = None,
    prerelease_start: int = 0,
    style: VersionStyle | None = None,
) -> list[Choice]:
    """Choices for a bump prompt, labelled with the version each one produces."""
    bumps: list[BumpType] = [*RELEASE_BUMPS, *PRERELEASE_BUMPS]
    if current.is_prerelease:
        bumps.insert(0, BumpType.GRADUATE)
    choices = []
    for bump in bumps:
        nxt = current.bump(bump, preid, style=style, prerelease_start=prerelease_start)
        choices.append(Choice(title=f"{bump.value:<10} {nxt}", value=bump))
    return choices


def select_bump(
    name: str,
    current: Version,
    *,
    preid: str | None = None,
    prerelease_start: int = 0,
    style: VersionStyle | None = None,
) -> BumpType | None:
    """Ask for the bump of one package (or of the fixed version).

    Returns:
        The chosen bump, or None if the prompt was cancelled.
    """
    return _safe_ask(
        questionary.select,
        f"Select a new version for {name} (currently {current})",
        choices=bump_choices(
            current, preid=preid, prerelease_start=prerelease_start, style=style
        ),
        style=get_style(),
    )


def prompt_bumps(
    packages: list[tuple[str, Version]],
    *,
    preid: str | None = None,
    prerelease_start: int = 0,
    style: VersionStyle | None = None,
) -> dict[str, BumpType] | None:
    """Ask for a bump per package, in the order given.

    Returns:
        Bumps by package name, or None if any prompt was cancelled.
    """
    bumps: dict[str, BumpType] = {}
    for name, current in packages:
        bump = select_bump(
            name, current, preid=preid, prerelease_start=prerelease_start, style=style
        )
        if bump is None:
            return None
        bumps[name] = bump
    return bumps


def confirm(message: str, default: bool = False) -> bool:
    prompt = questionary.confirm(message, default=default, style=get_style())
    return bool(_safe_ask(lambda: prompt, default=False))
