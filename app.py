#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wonderland - Celebration Single-Page App - NiceGUI Frontend
"""

import os
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Optional

from nicegui import app, ui, Client

# ---------------------------------------------------------------------------
# Engine, store & drawing imports
# ---------------------------------------------------------------------------
from engine import (
    log, setup_file_logging, load_global_config,
    WonderlandError, ConfigurationError,
    resolve_backend_config,
    AppState, MOODS, PLAYERS, CARD_TEMPLATES, LETTER_MAX_CHARS, CARD_TEXT_COLOR,
    DAYS_COUNTER_KEY, build_game_schedule, days_since, days_counter_text,
    format_timestamp, format_saved_at, is_valid_color,
    save_letter, save_card, save_drawing, record_mood, save_start_date, add_photo,
    export_keepsake_pdf,
)
from i18n import (
    t, E, UI_LANGUAGES, DEFAULT_LANG,
    get_page_labels, get_template_labels, get_date_format, mood_label, resolve_ui_lang,
)
from store import (
    SubscriptionGroup, MemoryStore, bootstrap_identity, open_store,
)
from drawing import (
    DrawingSurface, SURFACE_WIDTH, SURFACE_HEIGHT,
    MIN_STROKE_WIDTH, MAX_STROKE_WIDTH,
    blank_background_data_url, segment_svg,
)


# ---------------------------------------------------------------------------
# Server-side config: config.json → ENV override → defaults
# ---------------------------------------------------------------------------

def _load_server_config() -> dict:
    """Load server configuration with cascade: defaults → config.json → ENV."""
    # 1. Defaults
    cfg = {
        "storage_secret": "",
        "host": "0.0.0.0",
        "port": 8080,
        "default_ui_lang": "",
    }
    # 2. config.json overrides defaults
    file_cfg = load_global_config()
    for key in cfg:
        if key in file_cfg:
            cfg[key] = file_cfg[key]
    # 3. ENV overrides config.json (Docker, systemd, ...)
    env_map = {
        "STORAGE_SECRET": "storage_secret",
        "HOST": "host",
        "PORT": "port",
        "DEFAULT_UI_LANG": "default_ui_lang",
    }
    for env_key, cfg_key in env_map.items():
        env_val = os.environ.get(env_key, "").strip()
        if env_val:
            if cfg_key == "port":
                try:
                    cfg[cfg_key] = int(env_val)
                except ValueError:
                    log(f"[Config] Ignoring non-numeric PORT={env_val!r}", level="warning")
            else:
                cfg[cfg_key] = env_val
    return cfg

_server_cfg = _load_server_config()
SERVER_HOST: str = _server_cfg["host"]
SERVER_PORT: int = _server_cfg["port"]
# Validate default_ui_lang: must be a known code ('pt', 'en') or empty (→ DEFAULT_LANG)
_raw_ui_lang = str(_server_cfg.get("default_ui_lang", "")).strip().lower()
DEFAULT_UI_LANG: str = _raw_ui_lang if _raw_ui_lang in UI_LANGUAGES.values() else ""

log(f"[Config] host={SERVER_HOST}, port={SERVER_PORT}, "
    f"default_ui_lang={DEFAULT_UI_LANG or DEFAULT_LANG}")

# --- Tuning constants ---
CONNECT_TIMEOUT_SEC = 20               # Spinner stays if the WebSocket never connects
RECONNECT_TIMEOUT_SEC = 180            # WebSocket reconnect timeout (mobile-friendly)
POINTER_MOVE_THROTTLE_SEC = 0.02       # Pointer-move events forwarded at most every 20 ms
EXPORT_FILENAME = "wonderland_lembrancas.pdf"

_CSS_FILE = Path(__file__).resolve().parent / "custom_head.html"
CUSTOM_CSS = _CSS_FILE.read_text(encoding="utf-8") if _CSS_FILE.exists() else ""

# Pointer events → surface coordinates (the image may be scaled by CSS)
_POINTER_JS = f'''(e) => {{
    const img = e.currentTarget.querySelector('img') || e.currentTarget;
    const r = img.getBoundingClientRect();
    if (!r.width || !r.height) return;
    emit({{type: e.type,
          x: (e.clientX - r.left) * {SURFACE_WIDTH} / r.width,
          y: (e.clientY - r.top) * {SURFACE_HEIGHT} / r.height}});
}}'''


# ---------------------------------------------------------------------------
# Session helpers (per-browser via app.storage.user)
# ---------------------------------------------------------------------------

def S() -> dict:
    """Shortcut to per-browser storage (UI language, Firebase session)."""
    return app.storage.user


def L() -> str:
    """Current UI language code. Falls back to the server default outside a page context."""
    _fallback = DEFAULT_UI_LANG or DEFAULT_LANG
    try:
        return S().get("ui_lang", _fallback)
    except RuntimeError:
        return _fallback


# ===============================================================
# OVERLAYS
# ===============================================================

def show_message(text: str) -> None:
    """Blocking message dialog: stays until the user closes it."""
    with ui.dialog().props("persistent") as dlg, ui.card().classes("wl-panel items-center p-6"):
        ui.label(text).classes("text-lg text-center mb-4")
        ui.button(t("dialog.close", L()), on_click=dlg.close, color="black").classes("px-8")
    dlg.on("hide", lambda: dlg.delete())
    dlg.open()


async def run_action(action: Callable, *args, on_success: Optional[Callable] = None, **msg_kwargs) -> bool:
    """Await a widget action and report its outcome once in the blocking dialog."""
    lang = L()
    try:
        key = await action(*args)
    except WonderlandError as e:
        show_message(e.message(lang))
        return False
    except Exception as e:
        log(f"[UI] Unexpected error in {action.__name__}: {type(e).__name__}: {e}", level="error")
        show_message(t("msg.unexpected", lang))
        return False
    if on_success:
        on_success()
    show_message(t(key, lang, **msg_kwargs))
    return True


# ===============================================================
# TAB CONTEXT
# ===============================================================

class TabContext:
    """Per-tab wiring: view state, store handle and the mounted page's subscriptions."""

    def __init__(self):
        self.state = AppState(surface=DrawingSurface(), games=build_game_schedule())
        self.store = None
        self.config = None
        self.subs = SubscriptionGroup()

    def bind(self, resource: str, container, fill: Callable, key: Optional[str] = None) -> None:
        """Subscribe a resource and refill `container` on every push."""
        if self.store is None:
            return

        def on_change(records):
            self.state.apply_records(resource, records)
            if container.is_deleted:
                return
            container.clear()
            with container:
                fill()

        def on_error(err):
            # The container keeps whatever it showed last ("none yet" before any push)
            log(f"[UI] '{resource}' view not refreshed: {err}", level="warning")

        if key is None:
            self.subs.add(self.store.subscribe(resource, on_change, on_error))
        else:
            self.subs.add(self.store.subscribe_singleton(resource, key, on_change, on_error))


def _panel(title: str):
    col = ui.column().classes("wl-panel w-full p-6 mb-8 gap-3")
    with col:
        ui.label(title).classes("text-2xl font-bold text-center w-full")
    return col


# ===============================================================
# HOME - PLAYER MESSAGES
# ===============================================================

def render_home(ctx: TabContext) -> None:
    lang = L()
    with ui.column().classes("w-full items-center p-6 text-center"):
        ui.label(t("home.title", lang)).classes("text-4xl font-extrabold mb-4")
        ui.label(t("home.welcome", lang)).classes("text-lg max-w-2xl mb-8").style("color: var(--text-secondary)")
        with ui.grid().classes("grid-cols-2 sm:grid-cols-3 md:grid-cols-4 lg:grid-cols-5 gap-6 w-full max-w-5xl"):
            for player in PLAYERS:
                with ui.card().classes("wl-panel wl-player items-center p-4") \
                        .on("click", lambda p=player: show_message(p.message)):
                    ui.image(player.image).classes("w-24 h-24 rounded-full border-4 border-black")
                    ui.label(player.name).classes("text-lg font-semibold")
                    ui.label(t("home.click_hint", lang)).classes("text-sm text-gray-500")


# ===============================================================
# CREATIVE STUDIO
# ===============================================================

def _render_drawing(ctx: TabContext, lang: str) -> None:
    state = ctx.state
    surface = state.surface

    def _pick_color(e):
        # Half-typed values arrive on every keystroke; only complete colors count
        if is_valid_color(e.value or ""):
            surface.set_color(e.value)
            _mark_eraser()

    def _toggle_eraser():
        surface.toggle_eraser()
        _mark_eraser()

    def _mark_eraser():
        # Filled while erasing, outlined while the pen is active
        if surface.eraser:
            eraser_btn.props(remove="outline")
        else:
            eraser_btn.props("outline")

    with _panel(f"{E['palette']} {t('studio.drawing_title', lang)}"):
        with ui.row().classes("items-center justify-center gap-4 w-full"):
            ui.label(t("studio.color", lang))
            ui.color_input(value=surface.color, on_change=_pick_color).classes("w-36")
            ui.label(t("studio.size", lang))
            ui.slider(min=MIN_STROKE_WIDTH, max=MAX_STROKE_WIDTH, value=surface.stroke_width,
                      on_change=lambda e: surface.set_stroke_width(e.value)) \
                .props("label").classes("w-40")
            eraser_btn = ui.button(f"{E['eraser']} {t('studio.eraser', lang)}", on_click=_toggle_eraser,
                                   color="grey-7").props("rounded")
        _mark_eraser()

        canvas = ui.interactive_image(blank_background_data_url(), content=surface.to_svg(),
                                      cross=False) \
            .classes("wl-canvas self-center").style(f"width: 100%; max-width: {SURFACE_WIDTH}px")

        def on_pointer(e):
            args = e.args or {}
            if isinstance(args, list):
                args = args[0] if args else {}
            seg = surface.handle(args.get("type", ""), args.get("x"), args.get("y"))
            if seg is not None:
                canvas.content += segment_svg(seg)

        for evt in ("pointerdown", "pointerup", "pointerleave", "pointercancel"):
            canvas.on(evt, on_pointer, js_handler=_POINTER_JS)
        canvas.on("pointermove", on_pointer, js_handler=_POINTER_JS,
                  throttle=POINTER_MOVE_THROTTLE_SEC)

        def _clear():
            surface.clear()
            canvas.content = ""

        with ui.row().classes("justify-center gap-4 w-full"):
            ui.button(f"{E['floppy']} {t('studio.save_drawing', lang)}",
                      on_click=lambda: run_action(save_drawing, state, ctx.store,
                                                  on_success=lambda: canvas.set_content("")),
                      color="green-7").props("rounded")
            ui.button(f"{E['trash']} {t('studio.clear', lang)}", on_click=_clear,
                      color="red-7").props("rounded")

        ui.label(t("studio.saved_drawings", lang)).classes("text-xl font-semibold mt-4")
        drawings_box = ui.row().classes("w-full gap-4 justify-center")

        def fill_drawings():
            if not state.drawings:
                ui.label(t("studio.no_drawings", lang)).classes("text-gray-500")
                return
            for d in state.drawings:
                ui.image(d.data_url).classes("w-48 border border-gray-300 rounded-lg bg-white")

        with drawings_box:
            fill_drawings()
        ctx.bind("drawings", drawings_box, fill_drawings)


def _render_letters(ctx: TabContext, lang: str) -> None:
    state = ctx.state
    with _panel(f"{E['pen']} {t('studio.letter_title', lang)}"):
        counter = ui.label(t("studio.letter_counter", lang, count=len(state.letter_content),
                             limit=LETTER_MAX_CHARS)).classes("text-sm text-gray-500 self-end")

        def on_letter(e):
            state.set_letter_content(e.value)
            counter.text = t("studio.letter_counter", lang, count=len(state.letter_content),
                             limit=LETTER_MAX_CHARS)

        letter_inp = ui.textarea(placeholder=t("studio.letter_placeholder", lang),
                                 value=state.letter_content, on_change=on_letter) \
            .props(f"outlined maxlength={LETTER_MAX_CHARS}").classes("w-full")
        ui.button(f"{E['floppy']} {t('studio.save_letter', lang)}",
                  on_click=lambda: run_action(save_letter, state, ctx.store,
                                              on_success=lambda: letter_inp.set_value("")),
                  color="black").props("rounded").classes("self-center")

        ui.label(t("studio.saved_letters", lang)).classes("text-xl font-semibold mt-4")
        letters_box = ui.column().classes("w-full gap-3")

        def fill_letters():
            if not state.letters:
                ui.label(t("studio.no_letters", lang)).classes("text-gray-500")
                return
            for letter in state.letters:
                with ui.column().classes("w-full bg-gray-100 p-4 rounded-lg border border-gray-200 gap-1"):
                    ui.label(letter.content).classes("whitespace-pre-wrap")
                    saved = format_saved_at(letter.created_at, lang)
                    if saved:
                        ui.label(saved).classes("text-xs text-gray-500")

        with letters_box:
            fill_letters()
        ctx.bind("letters", letters_box, fill_letters)


def _render_cards(ctx: TabContext, lang: str) -> None:
    state = ctx.state
    with _panel(f"{E['card']} {t('studio.card_title', lang)}"):
        preview = ui.label(state.card_text).classes("wl-card-preview w-full p-4 text-center text-lg font-bold")

        def _sync_preview():
            preview.text = state.card_text
            preview.style(f"background-color: {state.card_bg_color}; color: {CARD_TEXT_COLOR}")

        def on_text(e):
            state.set_card_text(e.value)
            _sync_preview()

        def on_color(e):
            state.set_card_bg_color(e.value)
            _sync_preview()

        ui.label(t("studio.card_message", lang)).classes("font-semibold")
        text_inp = ui.textarea(placeholder=t("studio.card_placeholder", lang),
                               value=state.card_text, on_change=on_text) \
            .props("outlined").classes("w-full")
        with ui.row().classes("items-center gap-4"):
            ui.label(t("studio.card_bg", lang)).classes("font-semibold")
            color_inp = ui.color_input(value=state.card_bg_color, on_change=on_color).classes("w-36")

        def _load_inputs():
            # Writes back after a template or a save; on_change handlers keep state in sync
            text_inp.set_value(state.card_text)
            color_inp.set_value(state.card_bg_color)
            _sync_preview()

        def _pick_template(code: str):
            state.apply_card_template(code)
            _load_inputs()

        ui.label(t("studio.templates", lang)).classes("font-semibold")
        labels = get_template_labels(lang)
        with ui.row().classes("gap-3 flex-wrap justify-center w-full"):
            for tpl in CARD_TEMPLATES:
                ui.button(labels.get(tpl.code, tpl.code), on_click=lambda c=tpl.code: _pick_template(c)) \
                    .props("rounded outline").style(f"background-color: {tpl.bg_color} !important; "
                                                    f"color: {CARD_TEXT_COLOR} !important")
        _sync_preview()

        ui.button(f"{E['floppy']} {t('studio.save_card', lang)}",
                  on_click=lambda: run_action(save_card, state, ctx.store, on_success=_load_inputs),
                  color="black").props("rounded").classes("self-center")

        ui.label(t("studio.saved_cards", lang)).classes("text-xl font-semibold mt-4")
        cards_box = ui.grid().classes("grid-cols-1 sm:grid-cols-2 gap-4 w-full")

        def fill_cards():
            if not state.cards:
                ui.label(t("studio.no_cards", lang)).classes("text-gray-500")
                return
            for card in state.cards:
                with ui.column().classes("wl-card-preview p-4 gap-1 items-center") \
                        .style(f"background-color: {card.bg_color}"):
                    ui.label(card.text).classes("text-lg font-bold text-center") \
                        .style(f"color: {CARD_TEXT_COLOR}")
                    saved = format_saved_at(card.created_at, lang)
                    if saved:
                        ui.label(saved).classes("text-xs").style(f"color: {CARD_TEXT_COLOR}")

        with cards_box:
            fill_cards()
        ctx.bind("cards", cards_box, fill_cards)


def render_studio(ctx: TabContext) -> None:
    lang = L()
    ui.label(t("studio.title", lang)).classes("text-3xl font-bold text-center w-full mb-6")
    _render_drawing(ctx, lang)
    _render_letters(ctx, lang)
    _render_cards(ctx, lang)

    def do_export():
        try:
            pdf_bytes = export_keepsake_pdf(ctx.state.letters, ctx.state.cards, lang=lang)
        except WonderlandError as e:
            show_message(e.message(lang))
            return
        ui.download(pdf_bytes, EXPORT_FILENAME)

    ui.button(f"{E['download']} {t('studio.export', lang)}", on_click=do_export, color="white") \
        .props("rounded outline").classes("self-center")


# ===============================================================
# MOOD
# ===============================================================

def render_mood(ctx: TabContext) -> None:
    lang = L()
    state = ctx.state
    ui.label(t("mood.title", lang)).classes("text-3xl font-bold text-center w-full mb-2")
    ui.label(t("mood.question", lang)).classes("text-lg text-center w-full mb-6")

    current = ui.label("").classes("text-xl text-center w-full mb-6")

    def _sync_current():
        if state.current_mood:
            emoji = MOODS[state.current_mood][0]
            current.text = t("mood.current", lang, mood=f"{mood_label(state.current_mood, lang)} {emoji}")
        current.set_visibility(bool(state.current_mood))

    with ui.row().classes("justify-center gap-4 mb-8 w-full flex-wrap"):
        for mood, (emoji, color_cls) in MOODS.items():
            ui.button(f"{emoji} {mood_label(mood, lang)}",
                      on_click=lambda m=mood: run_action(record_mood, state, ctx.store, m,
                                                         on_success=_sync_current,
                                                         mood=mood_label(m, lang))) \
                .classes(f"wl-mood-button {color_cls} px-6 py-3").props("unelevated")
    _sync_current()

    with _panel(t("mood.history", lang)).classes("max-w-xl mx-auto"):
        history_box = ui.column().classes("w-full gap-2")

        def fill_history():
            if not state.moods:
                ui.label(t("mood.none", lang)).classes("text-gray-500 text-center w-full")
                return
            for entry in state.moods:
                emoji = MOODS.get(entry.mood, ("", ""))[0]
                with ui.row().classes("w-full justify-between items-center bg-gray-100 p-3 rounded-lg"):
                    ui.label(f"{emoji} {mood_label(entry.mood, lang)}").classes("text-lg")
                    ui.label(format_timestamp(entry.created_at, lang)).classes("text-sm text-gray-500")

        with history_box:
            fill_history()
        ctx.bind("moods", history_box, fill_history)


# ===============================================================
# DAY COUNTER
# ===============================================================

def render_days(ctx: TabContext) -> None:
    lang = L()
    state = ctx.state
    ui.label(t("days.title", lang)).classes("text-3xl font-bold text-center w-full mb-6")
    with _panel(t("days.question", lang)).classes("max-w-md mx-auto items-center"):
        date_inp = ui.input(t("days.label", lang),
                            value=state.start_date_input.isoformat() if state.start_date_input else "",
                            on_change=lambda e: state.set_start_date_input(e.value)) \
            .props("type=date outlined stack-label").classes("w-full")
        ui.button(f"{E['floppy']} {t('days.save', lang)}",
                  on_click=lambda: run_action(save_start_date, state, ctx.store),
                  color="black").props("rounded")
        result_box = ui.column().classes("w-full items-center mt-4")

        def fill_result():
            if state.start_date_input and not date_inp.value:
                date_inp.set_value(state.start_date_input.isoformat())
            start = state.start_date
            if start is None:
                ui.label(t("days.unset", lang)).classes("text-gray-500")
                return
            today = date.today()
            ui.label(f"{start.strftime(get_date_format(lang))} {E['dot']} "
                     f"{days_counter_text(start, lang, now=today)}").classes("text-sm text-gray-500")
            if start == today:
                ui.label(t("days.pick_past", lang)).classes("text-gray-500")
                return
            ui.label(t("days.elapsed", lang, days=days_since(start, today), party=E["party"])) \
                .classes("text-2xl font-bold text-center")

        with result_box:
            fill_result()
        ctx.bind("daysCounter", result_box, fill_result, key=DAYS_COUNTER_KEY)


# ===============================================================
# GAME SCHEDULE
# ===============================================================

def render_schedule(ctx: TabContext) -> None:
    lang = L()
    ui.label(t("schedule.title", lang)).classes("text-3xl font-bold text-center w-full mb-2")
    ui.label(t("schedule.subtitle", lang)).classes("text-lg text-center w-full mb-6")
    with ui.column().classes("wl-panel w-full max-w-2xl mx-auto p-6 gap-3"):
        if not ctx.state.games:
            ui.label(t("schedule.none", lang)).classes("text-gray-500 text-center w-full")
            return
        fmt = get_date_format(lang)
        for game in ctx.state.games:
            when = f"{game.date.strftime(fmt)} {E['dot']} {game.time}"
            with ui.row().classes("w-full items-center justify-between bg-gray-100 p-4 rounded-lg"):
                with ui.column().classes("gap-0"):
                    ui.label(t("schedule.versus", lang, opponent=game.opponent)).classes("text-lg font-bold")
                    ui.label(when).classes("text-sm")
                    ui.label(f"{game.venue} {E['dot']} {game.competition}").classes("text-sm text-gray-500")
                # Placeholder reminder: a local toast only
                ui.button(f"{E['bell']} {t('schedule.notify', lang)}",
                          on_click=lambda g=game, w=when: ui.notify(
                              t("schedule.reminder", lang, opponent=g.opponent, date=w),
                              type="info", position="top")) \
                    .props("rounded dense").classes("px-4")


# ===============================================================
# PHOTO GALLERY
# ===============================================================

def render_gallery(ctx: TabContext) -> None:
    lang = L()
    state = ctx.state
    ui.label(t("gallery.title", lang)).classes("text-3xl font-bold text-center w-full mb-2")
    ui.label(t("gallery.subtitle", lang)).classes("text-lg text-center w-full mb-6")

    async def on_upload(e):
        payload = e.content.read()
        await run_action(add_photo, state, ctx.store, payload, e.type, e.name)
        upload.reset()

    with _panel(f"{E['camera']} {t('gallery.add', lang)}").classes("max-w-2xl mx-auto items-center"):
        upload = ui.upload(on_upload=on_upload, auto_upload=True, max_files=1) \
            .props('accept="image/*" flat bordered').classes("w-full")

    photos_box = ui.grid().classes("grid-cols-1 sm:grid-cols-2 md:grid-cols-3 gap-6 w-full")

    def fill_photos():
        if not state.photos:
            ui.label(t("gallery.none", lang)).classes("text-gray-400 text-center w-full")
            return
        for photo in state.photos:
            with ui.card().classes("wl-panel p-0 overflow-hidden"):
                ui.image(photo.data_url).classes("w-full h-48").props("fit=cover")
                saved = format_saved_at(photo.created_at, lang)
                if saved:
                    ui.label(saved).classes("text-xs text-gray-500 p-2")

    with photos_box:
        fill_photos()
    ctx.bind("photos", photos_box, fill_photos)


_PAGE_RENDERERS = {
    "home": render_home,
    "studio": render_studio,
    "mood": render_mood,
    "days": render_days,
    "schedule": render_schedule,
    "gallery": render_gallery,
}


# ===============================================================
# MAIN PAGE
# ===============================================================

@ui.page("/", response_timeout=30)
async def main_page(client: Client):
    ui.colors(primary="#000000", secondary="#374151", accent="#FACC15")
    ui.add_head_html(CUSTOM_CSS)

    # ── Spinner until the WebSocket is up ──
    loading = ui.column().classes("w-full items-center mt-20 gap-4")
    with loading:
        ui.spinner("dots", size="lg", color="white")
        ui.label(t("conn.loading", DEFAULT_UI_LANG or DEFAULT_LANG)).classes("text-gray-400")
    try:
        await client.connected(timeout=CONNECT_TIMEOUT_SEC)
    except TimeoutError:
        return
    loading.delete()
    setup_file_logging()
    s = S()
    s.setdefault("ui_lang", DEFAULT_UI_LANG or DEFAULT_LANG)

    ctx = TabContext()
    state = ctx.state
    client.on_disconnect(ctx.subs.cancel_all)

    # ==================================================================
    # PAGE SKELETON
    # ==================================================================

    with ui.header().classes("wl-header items-center justify-between p-4 flex-wrap gap-3") as header:
        header_content = ui.row().classes("w-full items-center justify-between flex-wrap gap-3")

    content_area = ui.column().classes("wl-main w-full max-w-6xl mx-auto my-4 p-4 py-8")

    with ui.footer().classes("justify-center p-4").style("background: var(--bg-primary)"):
        footer_label = ui.label("").classes("text-sm text-center")

    nav_buttons: dict = {}

    def _build_header():
        lang = L()
        header_content.clear()
        nav_buttons.clear()
        with header_content:
            with ui.column().classes("gap-0"):
                ui.label(f"{E['soccer']} {t('app.title', lang)}").classes("text-3xl font-extrabold")
                if state.ready:
                    ui.label(t("app.user_id", lang, uid=state.identity.uid)).classes("text-xs text-gray-400")
                    if state.degraded:
                        ui.label(f"{E['warn']} {t('app.local_mode', lang)}").classes("text-xs text-yellow-400")
                else:
                    ui.label(t("app.connecting", lang)).classes("text-xs text-gray-400")
            with ui.row().classes("gap-3 flex-wrap justify-center items-center"):
                for code, label in get_page_labels(lang).items():
                    nav_buttons[code] = ui.button(label, on_click=lambda c=code: show_page(c)) \
                        .props("flat rounded").classes("wl-nav-button text-white px-4")
                labels = {code: name for name, code in UI_LANGUAGES.items()}
                ui.select(labels, value=lang, label=t("app.language", lang),
                          on_change=lambda e: _switch_lang(e.value)) \
                    .props("dense dark outlined").classes("w-32")
        _mark_nav()
        footer_label.text = t("app.footer", lang, year=datetime.now().year)

    def _mark_nav():
        for code, btn in nav_buttons.items():
            if code == state.current_page:
                btn.classes(add="wl-nav-active")
            else:
                btn.classes(remove="wl-nav-active")

    def show_page(page: str):
        state.set_page(page)
        ctx.subs.cancel_all()
        content_area.clear()
        with content_area:
            _PAGE_RENDERERS[page](ctx)
        _mark_nav()

    def _switch_lang(code: str):
        if not code:
            return
        code = resolve_ui_lang(code)
        if code == L():
            return
        s["ui_lang"] = code
        _build_header()
        show_page(state.current_page)

    _build_header()
    show_page(state.current_page)

    # ==================================================================
    # BOOTSTRAP: config → identity → store
    # ==================================================================

    try:
        ctx.config = resolve_backend_config()
    except ConfigurationError as e:
        show_message(e.message(L()))

    identity = await bootstrap_identity(ctx.config, s.get("firebase_session"))
    if identity.persistent:
        s["firebase_session"] = identity.to_session()
    elif ctx.config is not None:
        s.pop("firebase_session", None)
        show_message(t("msg.auth_failed", L()))

    try:
        ctx.store = open_store(ctx.config, identity)
    except Exception as e:
        log(f"[Store] Could not open Firestore ({type(e).__name__}: {e}), using memory", level="error")
        ctx.store = MemoryStore(ctx.config.app_id, identity.uid)
    state.mark_ready(identity, degraded=not ctx.store.persistent)
    log(f"[Session] Ready: uid={identity.uid}, degraded={state.degraded}")

    if client.has_socket_connection:
        _build_header()
        show_page(state.current_page)


# ===============================================================
# STARTUP
# ===============================================================

def _get_storage_secret() -> str:
    """Get storage secret: from ENV / config.json, or generate and persist one."""
    if _server_cfg.get("storage_secret"):
        return _server_cfg["storage_secret"]
    secret_file = Path(__file__).resolve().parent / ".storage_secret"
    if secret_file.exists():
        try:
            return secret_file.read_text(encoding="utf-8").strip()
        except OSError as e:
            log(f"[Security] Could not read {secret_file.name}: {e}", level="warning")
    import secrets
    new_secret = secrets.token_urlsafe(32)
    try:
        secret_file.write_text(new_secret, encoding="utf-8")
        try:
            import stat
            secret_file.chmod(stat.S_IRUSR | stat.S_IWUSR)
        except OSError:
            pass  # Not supported on every filesystem
        log(f"[Security] Generated new storage secret → {secret_file}")
    except OSError:
        log("[Security] Could not persist storage secret, sessions will not survive a restart",
            level="warning")
    return new_secret


if __name__ in {"__main__", "__mp_main__"}:
    ui.run(
        title="Dr. Emanuel's Wonderland",
        host=SERVER_HOST,
        port=SERVER_PORT,
        storage_secret=_get_storage_secret(),
        favicon="⚽",
        reload=False,
        show=False,
        reconnect_timeout=RECONNECT_TIMEOUT_SEC,
    )
