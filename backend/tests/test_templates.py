from cakeday.scheduler.templates import age_on, mention_for, render, render_announcement
from conftest import USER_ID


def test_render_substitutes_known_placeholders():
    text = render("{mention} aka {name} is {new_age}!", mention="<@1>", name="Kit", age=30)
    assert text == "<@1> aka Kit is 30!"


def test_render_leaves_unknown_placeholders():
    assert render("Hi {name} {unknown}", mention="<@1>", name="Kit") == "Hi Kit {unknown}"


def test_render_without_age_keeps_age_placeholder():
    assert render("{new_age}", mention="", name="") == "{new_age}"


def test_mention_markup():
    assert mention_for(1234) == "<@1234>"


def test_age_on(birthday_with):
    assert age_on(birthday_with(year=1990), 2025) == 35
    assert age_on(birthday_with(year=None), 2025) is None
    assert age_on(birthday_with(year=0), 2025) is None


def test_announcement_with_year_uses_age_template(settings_with, birthday_with):
    text = render_announcement(settings_with(), birthday_with(year=1990), "Ayaka", 2025)
    assert text == f"<@{USER_ID}> has turned 35, happy birthday!"


def test_announcement_without_year(settings_with, birthday_with):
    text = render_announcement(settings_with(), birthday_with(), "Ayaka", 2025)
    assert text == f"Happy birthday <@{USER_ID}>!"


def test_announcement_custom_template(settings_with, birthday_with):
    settings = settings_with(message_without_year="Cake for {name}!")
    assert render_announcement(settings, birthday_with(), "Ayaka", 2025) == "Cake for Ayaka!"
