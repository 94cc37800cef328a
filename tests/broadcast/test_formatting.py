"""Tests for notification formatting."""

from dataclasses import replace

from reel.broadcast.formatting import MAX_CALLBACK_BYTES, format_notification, mute_button
from reel.core.types import UNKNOWN_SERIES


def test_movie_english(movie, catalog):
    text = format_notification(movie, catalog, "en")

    assert text == (
        "🎬 New movie added!\n"
        "\n"
        "Name: Interstellar\n"
        "Year: 2014\n"
        "\n"
        "Description: A team travels through a wormhole.\n"
        "\n"
        "Rating: 8.6"
    )


def test_movie_without_year_or_rating(movie, catalog):
    text = format_notification(replace(movie, year=0, rating=0.0), catalog, "en")

    assert "Year:" not in text
    assert "Rating:" not in text


def test_episode_english(episode, catalog):
    text = format_notification(episode, catalog, "en")

    assert text.startswith("📺 New episode added!\n\n")
    assert "Series: Breaking Bad" in text
    assert "Season 1, Episode 1" in text
    assert "Episode: Pilot" in text
    assert "Description: Walter White gets a diagnosis." in text


def test_episode_persian(episode, catalog):
    text = format_notification(episode, catalog, "fa")

    assert "سریال: Breaking Bad" in text
    assert "فصل 1، قسمت 1" in text


def test_unknown_language_uses_default(movie, catalog):
    assert format_notification(movie, catalog, "de") == format_notification(movie, catalog, "en")


def test_mute_button_for_episode(episode, catalog):
    button = mute_button(episode, catalog, "en")

    assert button is not None
    assert button.text == "🔕 Mute this series"
    assert button.callback_data == "mute:Breaking Bad"
    assert button.to_markup() == {
        "inline_keyboard": [[{"text": "🔕 Mute this series", "callback_data": "mute:Breaking Bad"}]]
    }


def test_no_mute_button_for_movie(movie, catalog):
    assert mute_button(movie, catalog, "en") is None


def test_no_mute_button_for_placeholder_series(episode, catalog):
    assert mute_button(replace(episode, series_name=UNKNOWN_SERIES), catalog, "en") is None


def test_no_mute_button_when_callback_too_long(episode, catalog):
    long_name = "x" * MAX_CALLBACK_BYTES
    assert mute_button(replace(episode, series_name=long_name), catalog, "en") is None
