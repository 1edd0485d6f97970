import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from engine import (
    AppState, PLAYERS, SCHEDULE_OFFSETS_DAYS, StoreWriteError, ValidationError,
    add_photo, build_game_schedule, days_counter_text, days_since, encode_data_uri,
    parse_start_date, record_mood, records_to_models, save_start_date,
)


# ── Mood ────────────────────────────────────────────────────

def test_mood_history_newest_first(store, state, live):
    live("moods")
    asyncio.run(record_mood(state, store, "Feliz"))
    asyncio.run(record_mood(state, store, "Triste"))
    assert [m.mood for m in state.moods] == ["Triste", "Feliz"]
    assert state.current_mood == "Triste"


def test_unknown_mood_rejected(store, state, live):
    live("moods")
    with pytest.raises(ValidationError) as exc:
        asyncio.run(record_mood(state, store, "Sonolento"))
    assert exc.value.key == "mood.unknown"
    assert state.moods == []
    assert state.current_mood == ""


def test_failed_mood_keeps_previous_indicator(store, state):
    asyncio.run(record_mood(state, store, "Animado"))
    store.fail_writes = "offline"
    with pytest.raises(StoreWriteError):
        asyncio.run(record_mood(state, store, "Bravo"))
    assert state.current_mood == "Animado"


def test_pending_timestamps_sort_as_newest():
    docs = [
        {"id": "a", "mood": "Feliz", "timestamp": datetime(2024, 1, 1, tzinfo=timezone.utc)},
        {"id": "b", "mood": "Bravo", "timestamp": None},
        {"id": "c", "mood": "Neutro", "timestamp": datetime(2024, 1, 2, tzinfo=timezone.utc)},
    ]
    assert [m.id for m in records_to_models("moods", docs)] == ["b", "c", "a"]
    letters = [{"id": "x", "content": "1", "createdAt": None},
               {"id": "y", "content": "2", "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc)}]
    assert [l.id for l in records_to_models("letters", letters)] == ["y", "x"]


# ── Day counter ─────────────────────────────────────────────

def test_ten_days_ago_reads_ten_dias():
    today = date(2025, 3, 20)
    assert days_counter_text(today - timedelta(days=10), "pt", now=today) == "10 dias"


def test_unset_is_not_zero():
    assert days_since(None) is None
    assert days_counter_text(None, "pt") == "Data ainda não definida."


def test_partial_day_rounds_up():
    start = date(2025, 3, 10)
    assert days_since(start, datetime(2025, 3, 20, 0, 0)) == 10
    assert days_since(start, datetime(2025, 3, 20, 0, 1)) == 11


def test_future_start_counts_absolute_days():
    assert days_since(date(2025, 3, 25), date(2025, 3, 20)) == 5


@pytest.mark.parametrize("value,expected", [
    ("2024-05-01", date(2024, 5, 1)),
    ("2024-05-01T10:00:00", date(2024, 5, 1)),
    (datetime(2024, 5, 1, 9), date(2024, 5, 1)),
    ("", None),
    ("first of may", None),
    (None, None),
])
def test_parse_start_date(value, expected):
    assert parse_start_date(value) == expected


def test_save_start_date_round_trip(store, state, live):
    live("daysCounter", key="data")
    assert state.start_date is None
    state.set_start_date_input("2020-01-15")
    assert asyncio.run(save_start_date(state, store)) == "days.saved"
    assert state.start_date == date(2020, 1, 15)
    assert store.records("daysCounter") == [{"startDate": "2020-01-15", "id": "data"}]


def test_save_without_date_rejected(store, state):
    with pytest.raises(ValidationError) as exc:
        asyncio.run(save_start_date(state, store))
    assert exc.value.key == "days.no_date"
    assert store.records("daysCounter") == []


def test_stored_date_seeds_empty_input(store, state, live):
    asyncio.run(store.set_singleton("daysCounter", "data", {"startDate": "2019-07-07"}))
    live("daysCounter", key="data")
    assert state.start_date_input == date(2019, 7, 7)


def test_unparseable_stored_date_is_unset(store, state, live):
    asyncio.run(store.set_singleton("daysCounter", "data", {"startDate": "ontem"}))
    live("daysCounter", key="data")
    assert state.start_date is None


# ── Schedule & players ──────────────────────────────────────

def test_schedule_relative_to_today():
    today = date(2025, 12, 30)
    games = build_game_schedule(today)
    assert [g.date - today for g in games] == [timedelta(days=d) for d in SCHEDULE_OFFSETS_DAYS]
    assert [g.opponent for g in games] == ["Cruzeiro", "Flamengo", "Grêmio"]
    assert games[1].venue == "Maracanã"
    assert games[1].competition == "Copa do Brasil"


def test_eleven_players():
    assert len(PLAYERS) == 11
    assert all(p.name and p.message and p.image.startswith("https://") for p in PLAYERS)


# ── Gallery ─────────────────────────────────────────────────

def test_photo_encoded_as_data_uri(store, state, live):
    live("photos")
    assert asyncio.run(add_photo(state, store, b"\x89PNG...", "image/png", "galo.png")) == "gallery.saved"
    assert state.photos[0].data_url.startswith("data:image/png;base64,")


@pytest.mark.parametrize("mime,name,expected", [
    (None, "foto.png", "image/png"),
    ("", "foto.gif", "image/gif"),
    (None, "", "image/jpeg"),
    ("image/webp", "foto.png", "image/webp"),
])
def test_data_uri_mime_resolution(mime, name, expected):
    assert encode_data_uri(b"x", mime, name).startswith(f"data:{expected};base64,")


def test_empty_photo_rejected(store, state):
    with pytest.raises(ValidationError) as exc:
        asyncio.run(add_photo(state, store, b"", "image/png", "vazio.png"))
    assert exc.value.key == "gallery.empty_file"


def test_photos_keep_insertion_order(store, state, live):
    live("photos")
    for payload in (b"1", b"2", b"3"):
        asyncio.run(add_photo(state, store, payload, "image/jpeg"))
    assert [p.data_url for p in state.photos] == [encode_data_uri(p, "image/jpeg") for p in (b"1", b"2", b"3")]


# ── App state ───────────────────────────────────────────────

def test_set_page_rejects_unknown():
    st = AppState()
    st.set_page("gallery")
    assert st.current_page == "gallery"
    with pytest.raises(ValueError):
        st.set_page("admin")


def test_apply_records_rejects_unknown_resource():
    with pytest.raises(ValueError):
        AppState().apply_records("secrets", [])
