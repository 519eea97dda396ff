"""Announcement message rendering.

Templates support a fixed set of placeholders:

- ``{mention}``: the member's mention markup
- ``{name}``: the member's display name
- ``{new_age}``: the age being turned (with-age template only)

Anything else in braces is left untouched.
"""

from __future__ import annotations

from cakeday.models.birthday import GuildSettings, MemberBirthday

PLACEHOLDER_MENTION = "{mention}"
PLACEHOLDER_NAME = "{name}"
PLACEHOLDER_AGE = "{new_age}"


def mention_for(user_id: int) -> str:
    return f"<@{user_id}>"


def render(template: str, *, mention: str, name: str, age: int | None = None) -> str:
    result = template.replace(PLACEHOLDER_MENTION, mention).replace(PLACEHOLDER_NAME, name)
    if age is not None:
        result = result.replace(PLACEHOLDER_AGE, str(age))
    return result


def age_on(record: MemberBirthday, local_year: int) -> int | None:
    """Age turned this year, or ``None`` without a usable birth year."""
    if record.year is None or record.year <= 0:
        return None
    return local_year - record.year


def render_announcement(
    settings: GuildSettings, record: MemberBirthday, name: str, local_year: int
) -> str:
    """Pick the with-age or without-age template for *record* and render it."""
    age = age_on(record, local_year)
    template = settings.message_with_year if age is not None else settings.message_without_year
    return render(template, mention=mention_for(record.user_id), name=name, age=age)
