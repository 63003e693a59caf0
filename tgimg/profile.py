"""Built-in image processing profiles and target-width selection."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

DEFAULT_PROFILE = "telegram-webview"


@dataclass
class Profile:
    """Image processing parameters for a target platform."""

    name: str
    widths: list[int] = field(default_factory=list)
    formats: list[str] = field(default_factory=list)
    quality: int = 82
    retina: bool = False

    def effective_widths(self, original_width: int) -> list[int]:
        """Return target widths, with retina doublings, never upscaling.

        If no configured width fits, the original width alone is returned
        (provided it is positive).
        """
        result: list[int] = []
        seen: set[int] = set()

        def add(width: int) -> None:
            if width not in seen:
                seen.add(width)
                result.append(width)

        for width in self.widths:
            if width > original_width:
                continue
            add(width)
            if self.retina and width * 2 <= original_width:
                add(width * 2)

        if not result and original_width > 0:
            result.append(original_width)
        return result


_PROFILES: dict[str, Profile] = {
    "telegram-webview": Profile(
        name="telegram-webview",
        widths=[320, 640, 960, 1280],
        formats=["webp", "jpeg"],
        quality=82,
        retina=True,
    ),
    "telegram-webview-hq": Profile(
        name="telegram-webview-hq",
        widths=[320, 640, 960, 1280, 1920],
        formats=["avif", "webp", "jpeg"],
        quality=85,
        retina=True,
    ),
    "minimal": Profile(
        name="minimal",
        widths=[320, 640],
        formats=["webp", "jpeg"],
        quality=78,
        retina=False,
    ),
}


def _copy(profile: Profile, name: str) -> Profile:
    return replace(
        profile,
        name=name,
        widths=list(profile.widths),
        formats=list(profile.formats),
    )


def get_profile(name: str) -> Profile:
    """Return a fresh copy of the named profile.

    Unknown names fall back to the telegram-webview settings while keeping
    the requested name.
    """
    known = _PROFILES.get(name)
    if known is not None:
        return _copy(known, known.name)
    return _copy(_PROFILES[DEFAULT_PROFILE], name)