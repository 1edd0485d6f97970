import asyncio

import pytest

from engine import (
    AppState, CARD_TEMPLATES, DEFAULT_CARD_COLOR, LETTER_MAX_CHARS,
    StoreWriteError, ValidationError,
    save_card, save_drawing, save_letter, validate_card,
)


# ── Letters ─────────────────────────────────────────────────

def test_letter_saved_verbatim_and_input_cleared(store, state, live):
    live("letters")
    state.set_letter_content("  Parabéns, doutor!\nCom carinho.  ")
    key = asyncio.run(save_letter(state, store))
    assert key == "studio.letter_saved"
    assert [l.content for l in state.letters] == ["  Parabéns, doutor!\nCom carinho.  "]
    assert state.letter_content == ""


@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
def test_empty_letter_rejected(store, state, live, text):
    live("letters")
    state.set_letter_content(text)
    with pytest.raises(ValidationError) as exc:
        asyncio.run(save_letter(state, store))
    assert exc.value.key == "studio.letter_empty"
    assert state.letters == []


def test_letter_at_limit_accepted(store, state, live):
    live("letters")
    state.letter_content = "a" * LETTER_MAX_CHARS
    asyncio.run(save_letter(state, store))
    assert len(state.letters[0].content) == LETTER_MAX_CHARS


def test_oversize_letter_rejected_entirely(store, state, live):
    live("letters")
    # Bypass the input cap to hit the write boundary
    state.letter_content = "a" * (LETTER_MAX_CHARS + 1)
    with pytest.raises(ValidationError) as exc:
        asyncio.run(save_letter(state, store))
    assert exc.value.key == "studio.letter_too_long"
    assert store.records("letters") == []
    assert len(state.letter_content) == LETTER_MAX_CHARS + 1


def test_input_caps_letter_length(state):
    state.set_letter_content("b" * 1500)
    assert len(state.letter_content) == LETTER_MAX_CHARS


def test_failed_write_keeps_input(store, state):
    store.fail_writes = "offline"
    state.set_letter_content("fica aqui")
    with pytest.raises(StoreWriteError) as exc:
        asyncio.run(save_letter(state, store))
    assert exc.value.key == "studio.letter_error"
    assert state.letter_content == "fica aqui"


def test_save_before_ready_asks_to_wait(store):
    fresh = AppState()
    fresh.set_letter_content("oi")
    with pytest.raises(ValidationError) as exc:
        asyncio.run(save_letter(fresh, store))
    assert exc.value.key == "msg.wait_init"
    assert store.records("letters") == []


def test_each_save_adds_exactly_one_record(store, state, live):
    live("letters")
    for i in range(3):
        state.set_letter_content(f"carta {i}")
        asyncio.run(save_letter(state, store))
        assert len(state.letters) == i + 1


# ── Cards ───────────────────────────────────────────────────

def test_card_saved_then_reset(store, state, live):
    live("cards")
    state.set_card_text("Galo!")
    state.set_card_bg_color("#fcd34d")
    assert asyncio.run(save_card(state, store)) == "studio.card_saved"
    assert [(c.text, c.bg_color) for c in state.cards] == [("Galo!", "#fcd34d")]
    assert state.card_text == ""
    assert state.card_bg_color == DEFAULT_CARD_COLOR


def test_empty_card_rejected(store, state, live):
    live("cards")
    state.set_card_text("   ")
    with pytest.raises(ValidationError) as exc:
        asyncio.run(save_card(state, store))
    assert exc.value.key == "studio.card_empty"
    assert state.cards == []


@pytest.mark.parametrize("color", ["red", "#12", "#12345g", "fcd34d", ""])
def test_bad_card_color_rejected(color):
    with pytest.raises(ValidationError):
        validate_card("oi", color)


@pytest.mark.parametrize("color", ["#fff", "#FCD34D", "#000000"])
def test_hex_card_colors_accepted(color):
    assert validate_card("oi", color) == ("oi", color)


def test_template_fully_replaces_text_and_color(state):
    state.apply_card_template("galo_doido")
    state.set_card_text("editado à mão")
    state.set_card_bg_color("#123456")
    state.apply_card_template("campo")
    campo = next(t for t in CARD_TEMPLATES if t.code == "campo")
    assert state.card_text == campo.text
    assert state.card_bg_color == campo.bg_color


def test_default_template_clears_card(state):
    state.apply_card_template("manto_sagrado")
    state.apply_card_template("default")
    assert state.card_text == ""
    assert state.card_bg_color == "#ffffff"


def test_unknown_template(state):
    with pytest.raises(KeyError):
        state.apply_card_template("nope")


# ── Drawings ────────────────────────────────────────────────

def test_drawing_saved_as_png_and_surface_cleared(store, state, live):
    live("drawings")
    state.surface.pointer_down(10, 10)
    state.surface.pointer_move(100, 100)
    state.surface.pointer_up()
    assert asyncio.run(save_drawing(state, store)) == "studio.drawing_saved"
    assert state.drawings[0].data_url.startswith("data:image/png;base64,")
    assert state.surface.is_blank


def test_blank_drawing_can_be_saved(store, state, live):
    live("drawings")
    asyncio.run(save_drawing(state, store))
    assert len(state.drawings) == 1


def test_failed_drawing_save_keeps_strokes(store, state):
    store.fail_writes = "offline"
    state.surface.pointer_down(5, 5)
    with pytest.raises(StoreWriteError) as exc:
        asyncio.run(save_drawing(state, store))
    assert exc.value.key == "studio.drawing_error"
    assert not state.surface.is_blank


def test_drawing_save_without_surface_is_validation_error(store):
    bare = AppState()
    bare.mark_ready(object())
    with pytest.raises(ValidationError) as exc:
        asyncio.run(save_drawing(bare, store))
    assert exc.value.key == "studio.no_surface"
    assert store.records("drawings") == []
