#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wonderland - Celebration Site
========================================
Core Module (Framework-Independent)
"""

import io
import json
import math
import base64
import logging
import mimetypes
import os
import re
import sys
from pathlib import Path
from datetime import date, datetime, time, timedelta, timezone
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, TYPE_CHECKING

# PDF export
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.platypus import (
    Paragraph, Spacer, PageBreak, HRFlowable, Table, TableStyle,
    BaseDocTemplate, PageTemplate, Frame,
)

from i18n import t as _t, E, DEFAULT_LANG, get_datetime_format

if TYPE_CHECKING:
    from drawing import DrawingSurface

# ===============================================================
# CONFIGURATION
# ===============================================================

_SCRIPT_DIR = Path(__file__).resolve().parent
GLOBAL_CONFIG_FILE = _SCRIPT_DIR / "config.json"
LOG_DIR = _SCRIPT_DIR / "logs"
LOG_DIR.mkdir(exist_ok=True)

# --- Tuning constants ---
LETTER_MAX_CHARS = 1000            # Hard limit, enforced at input and at the write boundary
DEFAULT_APP_ID = "default-app-id"  # Namespace when neither host nor env name one
DEFAULT_CARD_COLOR = "#ffffff"
CARD_TEXT_COLOR = "#000000"        # Card messages always render black
DAYS_COUNTER_KEY = "data"          # Fixed document id of the singleton setting
SCHEDULE_OFFSETS_DAYS = (2, 5, 10)

PAGES = ("home", "studio", "mood", "days", "schedule", "gallery")


# ===============================================================
# FILE LOGGING
# ===============================================================

def setup_file_logging():
    """Set up file logging to logs/ directory. One log file per day.
    Safe to call multiple times -- skips if handlers already exist.
    """
    logger = logging.getLogger("wonderland")

    # Prevent duplicate handlers on repeated calls
    if logger.handlers:
        return

    logger.setLevel(logging.DEBUG)

    today = datetime.now().strftime("%Y-%m-%d")
    log_path = LOG_DIR / f"wonderland_{today}.log"

    fh = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-7s | %(message)s",
                                       datefmt="%Y-%m-%d %H:%M:%S"))

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.INFO)
    ch.setFormatter(logging.Formatter("%(message)s"))

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.info(f"=== Wonderland session === Log: {log_path.name}")


def log(msg: str, level: str = "info"):
    """Log a message to both console and log file."""
    logger = logging.getLogger("wonderland")
    if not logger.handlers:
        setup_file_logging()
    getattr(logger, level, logger.info)(msg)


# ===============================================================
# ERRORS
# ===============================================================

class WonderlandError(Exception):
    """Base error. Carries an i18n key so the UI can show a localized message."""

    key = "msg.unexpected"

    def __init__(self, key: Optional[str] = None, **kwargs):
        self.key = key or self.key
        self.kwargs = kwargs
        detail = kwargs.get("detail")
        super().__init__(f"{self.key}: {detail}" if detail else self.key)

    def message(self, lang: str = DEFAULT_LANG) -> str:
        return _t(self.key, lang, **self.kwargs)


class ConfigurationError(WonderlandError):
    """Backend credentials missing or incomplete. Fatal to persistence, not to rendering."""
    key = "msg.config_missing"


class AuthError(WonderlandError):
    """Identity resolution failed. The session degrades to a local identity."""
    key = "msg.auth_failed"


class StoreReadError(WonderlandError):
    """A subscription could not deliver its records."""
    key = "msg.unexpected"


class StoreWriteError(WonderlandError):
    """A create/overwrite was not acknowledged by the store."""
    key = "msg.unexpected"


class ValidationError(WonderlandError):
    """User input rejected before any write is attempted."""
    key = "msg.unexpected"


# ===============================================================
# BACKEND CONFIGURATION (host → env → config.json)
# ===============================================================

# Environment variables → Firebase web config keys
_ENV_KEYS = {
    "FIREBASE_API_KEY": "apiKey",
    "FIREBASE_AUTH_DOMAIN": "authDomain",
    "FIREBASE_PROJECT_ID": "projectId",
    "FIREBASE_STORAGE_BUCKET": "storageBucket",
    "FIREBASE_MESSAGING_SENDER_ID": "messagingSenderId",
    "FIREBASE_APP_ID": "appId",
}

HOST_CONFIG_ENV = "WONDERLAND_FIREBASE_CONFIG"
HOST_APP_ID_ENV = "WONDERLAND_APP_ID"
HOST_AUTH_TOKEN_ENV = "WONDERLAND_AUTH_TOKEN"

CONFIG_SOURCES = ("host", "env", "file")


@dataclass
class BackendConfig:
    """Resolved Firebase connection parameters plus the data namespace."""
    firebase: dict = field(default_factory=dict)
    app_id: str = DEFAULT_APP_ID
    initial_auth_token: Optional[str] = None
    source: str = ""

    @property
    def api_key(self) -> str:
        return self.firebase.get("apiKey") or ""

    @property
    def auth_domain(self) -> str:
        return self.firebase.get("authDomain") or ""

    @property
    def project_id(self) -> str:
        """projectId, or the project part of '<project>.firebaseapp.com'."""
        if self.firebase.get("projectId"):
            return self.firebase["projectId"]
        domain = self.auth_domain
        return domain.split(".", 1)[0] if domain else ""

    def is_complete(self) -> bool:
        return bool(self.api_key and self.auth_domain)


def load_global_config(path: Optional[Path] = None) -> dict:
    """Load config.json (server settings and optional 'firebase' section)."""
    path = path or GLOBAL_CONFIG_FILE
    if path.exists():
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log(f"[Config] Could not read {path.name}: {e}", level="warning")
    return {}


def _config_from_host(environ: Mapping[str, str], host_config: Optional[dict]) -> Optional[BackendConfig]:
    raw = host_config
    if raw is None:
        text = (environ.get(HOST_CONFIG_ENV) or "").strip()
        if not text:
            return None
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError("msg.config_incomplete", source="host", detail=str(e)) from e
    if not isinstance(raw, dict):
        raise ConfigurationError("msg.config_incomplete", source="host", detail="not an object")
    return BackendConfig(
        firebase=dict(raw),
        app_id=(environ.get(HOST_APP_ID_ENV) or "").strip() or DEFAULT_APP_ID,
        initial_auth_token=(environ.get(HOST_AUTH_TOKEN_ENV) or "").strip() or None,
        source="host",
    )


def _config_from_env(environ: Mapping[str, str]) -> Optional[BackendConfig]:
    firebase = {}
    for env_key, cfg_key in _ENV_KEYS.items():
        val = (environ.get(env_key) or "").strip()
        if val:
            firebase[cfg_key] = val
    if not firebase:
        return None
    return BackendConfig(firebase=firebase,
                         app_id=firebase.get("appId") or DEFAULT_APP_ID,
                         source="env")


def _config_from_file(config_file: Optional[Path]) -> Optional[BackendConfig]:
    data = load_global_config(config_file)
    firebase = data.get("firebase")
    if not firebase or not isinstance(firebase, dict):
        return None
    return BackendConfig(
        firebase=dict(firebase),
        app_id=data.get("app_id") or firebase.get("appId") or DEFAULT_APP_ID,
        initial_auth_token=data.get("initial_auth_token") or None,
        source="file",
    )


def resolve_backend_config(environ: Optional[Mapping[str, str]] = None,
                           config_file: Optional[Path] = None,
                           host_config: Optional[dict] = None) -> BackendConfig:
    """Try CONFIG_SOURCES in order; the first source that yields a config wins.

    Raises ConfigurationError when no source has a config, or when the winning
    config lacks apiKey/authDomain.
    """
    environ = os.environ if environ is None else environ
    loaders = {
        "host": lambda: _config_from_host(environ, host_config),
        "env": lambda: _config_from_env(environ),
        "file": lambda: _config_from_file(config_file),
    }
    cfg = None
    for name in CONFIG_SOURCES:
        cfg = loaders[name]()
        if cfg is not None:
            break
    if cfg is None:
        log("[Config] Firebase config missing (host, env and config.json are all empty)", level="error")
        raise ConfigurationError("msg.config_missing")
    if not cfg.is_complete():
        log(f"[Config] Firebase config from '{cfg.source}' is incomplete (apiKey/authDomain)", level="error")
        raise ConfigurationError("msg.config_incomplete", source=cfg.source)
    log(f"[Config] Firebase config from '{cfg.source}': project={cfg.project_id}, "
        f"app_id={cfg.app_id}, token={'set' if cfg.initial_auth_token else 'none'}")
    return cfg


# ===============================================================
# DATA MODELS
# ===============================================================

def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Store timestamps → aware datetime. Pending server timestamps arrive as None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            return _parse_timestamp(datetime.fromisoformat(value))
        except ValueError:
            return None
    return None


def parse_start_date(value: Any) -> Optional[date]:
    """Accept date, datetime or 'YYYY-MM-DD'. Anything else counts as unset."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            log(f"[Days] Ignoring unparseable start date: {value!r}", level="warning")
    return None


@dataclass
class Drawing:
    id: str
    data_url: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc_id: str, data: dict) -> "Drawing":
        return cls(id=doc_id, data_url=data.get("dataUrl", ""),
                   created_at=_parse_timestamp(data.get("createdAt")))


@dataclass
class Letter:
    id: str
    content: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc_id: str, data: dict) -> "Letter":
        return cls(id=doc_id, content=data.get("content", ""),
                   created_at=_parse_timestamp(data.get("createdAt")))


@dataclass
class Card:
    id: str
    text: str
    bg_color: str = DEFAULT_CARD_COLOR
    created_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc_id: str, data: dict) -> "Card":
        return cls(id=doc_id, text=data.get("text", ""),
                   bg_color=data.get("bgColor") or DEFAULT_CARD_COLOR,
                   created_at=_parse_timestamp(data.get("createdAt")))


@dataclass
class MoodEntry:
    id: str
    mood: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc_id: str, data: dict) -> "MoodEntry":
        return cls(id=doc_id, mood=data.get("mood", ""),
                   created_at=_parse_timestamp(data.get("timestamp")))


@dataclass
class Photo:
    id: str
    data_url: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc_id: str, data: dict) -> "Photo":
        return cls(id=doc_id, data_url=data.get("dataUrl", ""),
                   created_at=_parse_timestamp(data.get("createdAt")))


@dataclass
class DaysCounterSetting:
    start_date: Optional[date] = None

    @classmethod
    def from_doc(cls, doc_id: str, data: Optional[dict]) -> "DaysCounterSetting":
        return cls(start_date=parse_start_date((data or {}).get("startDate")))


@dataclass
class Game:
    id: int
    date: date
    time: str
    opponent: str
    venue: str
    competition: str


@dataclass
class Player:
    name: str
    image: str
    message: str


@dataclass
class CardTemplate:
    code: str
    text: str
    bg_color: str


@dataclass(frozen=True)
class ResourceSpec:
    """How one logical resource is stored and displayed."""
    name: str
    model: type
    timestamp_field: Optional[str] = "createdAt"
    newest_first: bool = False
    singleton: bool = False


RESOURCES = {
    "drawings": ResourceSpec("drawings", Drawing),
    "letters": ResourceSpec("letters", Letter),
    "cards": ResourceSpec("cards", Card),
    "moods": ResourceSpec("moods", MoodEntry, timestamp_field="timestamp", newest_first=True),
    "photos": ResourceSpec("photos", Photo),
    "daysCounter": ResourceSpec("daysCounter", DaysCounterSetting, timestamp_field=None, singleton=True),
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def records_to_models(resource: str, docs: list[dict]) -> list:
    """Convert raw store records ({'id': ..., **fields}) into sorted models.

    Collections display oldest-first (insertion order); moods newest-first.
    Records whose server timestamp is still pending count as the newest.
    """
    spec = RESOURCES[resource]
    models = []
    for doc in docs:
        data = {k: v for k, v in doc.items() if k != "id"}
        models.append(spec.model.from_doc(doc.get("id", ""), data))
    models.sort(key=lambda m: (m.created_at is None, m.created_at or _EPOCH),
                reverse=spec.newest_first)
    return models


# ===============================================================
# STATIC CONTENT
# ===============================================================

def _placeholder(name: str, bg: str = "000000", fg: str = "FFFFFF") -> str:
    return f"https://placehold.co/100x100/{bg}/{fg}?text={name.replace(' ', '+')}"


PLAYERS = [
    Player("Hulk", _placeholder("Hulk"),
           "Parabéns, Dr. Emanuel! Que sua força e paixão sejam tão grandes quanto as minhas em campo. "
           "Não há limites para quem acredita e batalha pelos seus sonhos. Siga em frente com determinação!"),
    Player("Rubens", _placeholder("Rubens"),
           "Feliz aniversário, Dr. Emanuel! Que a sua juventude e energia te impulsionem a conquistar "
           "cada vez mais. O futuro é seu, acredite e vá em frente!"),
    Player("Everson", _placeholder("Everson"),
           "Parabéns, Dr. Emanuel! Que a sua segurança e a sua capacidade de defender seus ideais sejam "
           "sempre inabaláveis, assim como minhas defesas. Mantenha o foco!"),
    Player("Rony", _placeholder("Rony"),
           "Feliz aniversário, Dr. Emanuel! Que a sua velocidade e agilidade para superar desafios te "
           "levem a grandes vitórias. Corra atrás dos seus sonhos!"),
    Player("Lyanco", _placeholder("Lyanco"),
           "Parabéns, Dr. Emanuel! Que a sua solidez e determinação sejam a base para todas as suas "
           "conquistas. Construa um futuro brilhante!"),
    Player("Júlia Ayla", _placeholder("Júlia Ayla", bg="FFC0CB", fg="000000"),
           "Eu te amo muito, meu amor!"),
    Player("Scarpa", _placeholder("Scarpa"),
           "Feliz aniversário, Dr. Emanuel! Que a sua criatividade e o seu talento para inovar te abram "
           "muitos caminhos. Ouse sonhar grande!"),
    Player("Saraiva", _placeholder("Saraiva"),
           "Parabéns, Dr. Emanuel! Que a sua visão de jogo e a sua capacidade de criar oportunidades te "
           "guiem para o sucesso. Enxergue além!"),
    Player("Paulinho", _placeholder("Paulinho"),
           "Feliz aniversário, Dr. Emanuel! Que a sua estrela brilhe cada vez mais, e que você continue "
           "marcando gols na vida. Siga seu caminho com luz!"),
    Player("Zaracho", _placeholder("Zaracho"),
           "Parabéns, Dr. Emanuel! Que a sua versatilidade e a sua paixão pelo que faz te levem a "
           "alcançar todos os seus objetivos. Seja completo!"),
    Player("Deyverson", _placeholder("Deyverson"),
           "Feliz aniversário, Dr. Emanuel! Que a sua alegria e o seu espírito guerreiro te inspirem a "
           "celebrar cada momento e a lutar por cada vitória. Viva intensamente!"),
]

CARD_TEMPLATES = [
    CardTemplate("default", "", "#ffffff"),
    CardTemplate("galo_doido", "Parabéns! Que a paixão pelo Galo te inspire sempre!", "#fcd34d"),
    CardTemplate("manto_sagrado", "Feliz Aniversário! Que a glória alvinegra esteja sempre com você!", "#000000"),
    CardTemplate("campo", "Que sua vida seja um campo de vitórias! Feliz Aniversário!", "#34d399"),
]

# Stored label → (emoji, button color class)
MOODS = {
    "Feliz": (E["happy"], "bg-yellow-300"),
    "Neutro": (E["neutral"], "bg-gray-300"),
    "Triste": (E["sad"], "bg-blue-300"),
    "Animado": (E["excited"], "bg-green-300"),
    "Bravo": (E["angry"], "bg-red-300"),
}

# Placeholder fixtures: (opponent, kickoff, venue, competition), one per SCHEDULE_OFFSETS_DAYS entry.
# A real deployment would fetch these from a fixtures feed.
_FIXTURES = [
    ("Cruzeiro", "19:00", "Mineirão", "Campeonato Brasileiro"),
    ("Flamengo", "21:30", "Maracanã", "Copa do Brasil"),
    ("Grêmio", "16:00", "Arena MRV", "Campeonato Brasileiro"),
]


def build_game_schedule(today: Optional[date] = None) -> list[Game]:
    """Synthesize the three upcoming fixtures relative to today. Never persisted."""
    today = today or date.today()
    games = []
    for i, (offset, fixture) in enumerate(zip(SCHEDULE_OFFSETS_DAYS, _FIXTURES), start=1):
        opponent, kickoff, venue, competition = fixture
        games.append(Game(id=i, date=today + timedelta(days=offset), time=kickoff,
                          opponent=opponent, venue=venue, competition=competition))
    return games


def find_card_template(code: str) -> CardTemplate:
    for tpl in CARD_TEMPLATES:
        if tpl.code == code:
            return tpl
    raise KeyError(code)


# ===============================================================
# DAY COUNTER
# ===============================================================

def days_since(start: Optional[date], now: Optional[date] = None) -> Optional[int]:
    """Whole days between start and now, partial days rounded up. None when unset.

    With a plain date for `now` the difference is exact; with a datetime it is
    measured from the start date's midnight, so any partial day counts as one.
    """
    if start is None:
        return None
    if now is None:
        now = date.today()
    if isinstance(now, datetime):
        start_dt = datetime.combine(start, time.min, tzinfo=now.tzinfo)
        seconds = abs((now - start_dt).total_seconds())
        return math.ceil(seconds / 86400)
    return abs((now - start).days)


def days_counter_text(start: Optional[date], lang: str = DEFAULT_LANG,
                      now: Optional[date] = None) -> str:
    days = days_since(start, now)
    if days is None:
        return _t("days.unset", lang)
    return _t("days.count", lang, days=days)


# ===============================================================
# VALIDATION
# ===============================================================

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def is_valid_color(value: str) -> bool:
    return bool(value) and bool(_HEX_COLOR.match(value))


def validate_letter(content: str) -> str:
    """Letters are saved verbatim; empty or oversize letters are rejected."""
    if not content or not content.strip():
        raise ValidationError("studio.letter_empty")
    if len(content) > LETTER_MAX_CHARS:
        raise ValidationError("studio.letter_too_long", limit=LETTER_MAX_CHARS)
    return content


def validate_card(text: str, bg_color: str) -> tuple[str, str]:
    if not text or not text.strip():
        raise ValidationError("studio.card_empty")
    if not is_valid_color(bg_color):
        raise ValidationError("studio.card_bad_color", color=bg_color)
    return text, bg_color


def validate_mood(mood: str) -> str:
    if mood not in MOODS:
        raise ValidationError("mood.unknown", mood=mood)
    return mood


def encode_data_uri(payload: bytes, mime_type: Optional[str] = None, filename: str = "") -> str:
    """Raw bytes → 'data:<mime>;base64,...'. MIME falls back to a guess from the name."""
    if not mime_type:
        mime_type, _ = mimetypes.guess_type(filename) if filename else (None, None)
    if not mime_type:
        mime_type = "image/jpeg"
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


# ===============================================================
# APPLICATION STATE
# ===============================================================

@dataclass
class AppState:
    """Per-tab view state. The UI layer owns one instance and mutates it through the setters."""
    current_page: str = "home"
    identity: Any = None               # store.Identity once bootstrapped
    ready: bool = False
    degraded: bool = False
    # Creative Studio inputs
    surface: Optional["DrawingSurface"] = None
    letter_content: str = ""
    card_text: str = ""
    card_bg_color: str = DEFAULT_CARD_COLOR
    # Mood / Day counter inputs
    current_mood: str = ""
    start_date_input: Optional[date] = None
    # Latest subscribed data
    start_date: Optional[date] = None
    drawings: list = field(default_factory=list)
    letters: list = field(default_factory=list)
    cards: list = field(default_factory=list)
    moods: list = field(default_factory=list)
    photos: list = field(default_factory=list)
    games: list = field(default_factory=list)

    def set_page(self, page: str) -> None:
        if page not in PAGES:
            raise ValueError(f"Unknown page: {page}")
        self.current_page = page

    def mark_ready(self, identity: Any, degraded: bool = False) -> None:
        self.identity = identity
        self.degraded = degraded
        self.ready = True

    def set_letter_content(self, text: str) -> None:
        # Input-time cap; validate_letter guards the write boundary independently
        self.letter_content = (text or "")[:LETTER_MAX_CHARS]

    def set_card_text(self, text: str) -> None:
        self.card_text = text or ""

    def set_card_bg_color(self, color: str) -> None:
        self.card_bg_color = color or DEFAULT_CARD_COLOR

    def apply_card_template(self, template) -> None:
        """Overwrite card text and color with the template's (no merge)."""
        if isinstance(template, str):
            template = find_card_template(template)
        self.card_text = template.text
        self.card_bg_color = template.bg_color

    def reset_card(self) -> None:
        self.card_text = ""
        self.card_bg_color = DEFAULT_CARD_COLOR

    def set_start_date_input(self, value: Any) -> None:
        self.start_date_input = parse_start_date(value)

    def apply_records(self, resource: str, records: Any) -> None:
        """Store a subscription push on the matching attribute."""
        if resource == "daysCounter":
            self.start_date = records.start_date if records is not None else None
            if self.start_date_input is None:
                self.start_date_input = self.start_date
            return
        if resource not in RESOURCES:
            raise ValueError(f"Unknown resource: {resource}")
        setattr(self, resource, list(records))


# ===============================================================
# WIDGET ACTIONS
# ===============================================================
# Each action validates, awaits the write and returns the i18n key of the
# success message. ValidationError / StoreWriteError propagate to the UI,
# which shows them once in the blocking dialog. Inputs are only cleared
# after an acknowledged write.

def _require_ready(state: AppState, store, wait_key: str) -> None:
    if not state.ready or store is None:
        raise ValidationError(wait_key)


async def save_letter(state: AppState, store) -> str:
    _require_ready(state, store, "msg.wait_init")
    content = validate_letter(state.letter_content)
    try:
        await store.create("letters", {"content": content})
    except StoreWriteError as e:
        log(f"[Studio] Letter save failed: {e}", level="error")
        raise StoreWriteError("studio.letter_error") from e
    log(f"[Studio] Letter saved ({len(content)} chars)")
    state.letter_content = ""
    return "studio.letter_saved"


async def save_card(state: AppState, store) -> str:
    _require_ready(state, store, "msg.wait_init")
    text, bg_color = validate_card(state.card_text, state.card_bg_color)
    try:
        await store.create("cards", {"text": text, "bgColor": bg_color})
    except StoreWriteError as e:
        log(f"[Studio] Card save failed: {e}", level="error")
        raise StoreWriteError("studio.card_error") from e
    log(f"[Studio] Card saved (bg={bg_color})")
    state.reset_card()
    return "studio.card_saved"


async def save_drawing(state: AppState, store) -> str:
    _require_ready(state, store, "msg.wait_init")
    surface = state.surface
    if surface is None:
        raise ValidationError("studio.no_surface")
    data_url = surface.to_data_url()
    try:
        await store.create("drawings", {"dataUrl": data_url})
    except StoreWriteError as e:
        log(f"[Studio] Drawing save failed: {e}", level="error")
        raise StoreWriteError("studio.drawing_error") from e
    log(f"[Studio] Drawing saved ({len(surface.segments)} segments, {len(data_url)} bytes)")
    surface.clear()
    return "studio.drawing_saved"


async def record_mood(state: AppState, store, mood: str) -> str:
    _require_ready(state, store, "mood.wait_init")
    validate_mood(mood)
    try:
        await store.create("moods", {"mood": mood})
    except StoreWriteError as e:
        log(f"[Mood] Record failed: {e}", level="error")
        raise StoreWriteError("mood.error") from e
    state.current_mood = mood
    log(f"[Mood] Recorded: {mood}")
    return "mood.recorded"


async def save_start_date(state: AppState, store) -> str:
    _require_ready(state, store, "days.wait_init")
    if state.start_date_input is None:
        raise ValidationError("days.no_date")
    iso = state.start_date_input.isoformat()
    try:
        await store.set_singleton("daysCounter", DAYS_COUNTER_KEY, {"startDate": iso})
    except StoreWriteError as e:
        log(f"[Days] Save failed: {e}", level="error")
        raise StoreWriteError("days.error") from e
    log(f"[Days] Start date saved: {iso}")
    return "days.saved"


async def add_photo(state: AppState, store, payload: bytes,
                    mime_type: Optional[str] = None, filename: str = "") -> str:
    _require_ready(state, store, "gallery.wait_init")
    if not payload:
        raise ValidationError("gallery.empty_file")
    data_url = encode_data_uri(payload, mime_type, filename)
    try:
        await store.create("photos", {"dataUrl": data_url})
    except StoreWriteError as e:
        log(f"[Gallery] Upload failed ({filename}): {e}", level="error")
        raise StoreWriteError("gallery.error") from e
    log(f"[Gallery] Photo added: {filename or '?'} ({len(payload)} bytes)")
    return "gallery.saved"


# ===============================================================
# KEEPSAKE EXPORT (PDF)
# ===============================================================

# --- PDF styling constants ---
_PDF_COLOR_DARK = HexColor("#111111")
_PDF_COLOR_MUTED = HexColor("#666666")
_PDF_COLOR_RULE = HexColor("#cccccc")


def _pdf_styles():
    """Build paragraph styles for the keepsake PDF."""
    base = getSampleStyleSheet()
    _add = base.add
    _add(ParagraphStyle("KeepsakeTitle", fontName="Helvetica-Bold", fontSize=24,
                        leading=30, alignment=TA_CENTER,
                        textColor=_PDF_COLOR_DARK, spaceAfter=6))
    _add(ParagraphStyle("KeepsakeSubtitle", fontName="Helvetica-Oblique", fontSize=13,
                        leading=18, alignment=TA_CENTER,
                        textColor=_PDF_COLOR_MUTED, spaceAfter=4))
    _add(ParagraphStyle("KeepsakeMeta", fontName="Helvetica", fontSize=9,
                        leading=12, alignment=TA_LEFT,
                        textColor=_PDF_COLOR_MUTED, spaceAfter=10))
    _add(ParagraphStyle("SectionHeading", fontName="Helvetica-Bold", fontSize=15,
                        leading=20, textColor=_PDF_COLOR_DARK,
                        spaceBefore=12, spaceAfter=8))
    _add(ParagraphStyle("KeepsakeBody", fontName="Helvetica", fontSize=11,
                        leading=16, textColor=_PDF_COLOR_DARK, spaceAfter=4))
    _add(ParagraphStyle("CardBody", fontName="Helvetica-Bold", fontSize=12,
                        leading=17, alignment=TA_CENTER,
                        textColor=HexColor(CARD_TEXT_COLOR)))
    return base


def _pdf_escape(text: str) -> str:
    """Escape text for ReportLab XML paragraphs; keep line breaks."""
    text = text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    return text.replace("\n", "<br/>")


def _pdf_footer_factory(label: str):
    def _footer(canvas, doc):
        canvas.saveState()
        w = A4[0]
        canvas.setStrokeColor(_PDF_COLOR_RULE)
        canvas.setLineWidth(0.5)
        canvas.line(20 * mm, 15 * mm, w - 20 * mm, 15 * mm)
        canvas.setFont("Helvetica-Oblique", 8)
        canvas.setFillColor(_PDF_COLOR_MUTED)
        canvas.drawString(20 * mm, 11 * mm, label)
        canvas.drawRightString(w - 20 * mm, 11 * mm, f"{doc.page}")
        canvas.restoreState()
    return _footer


def format_timestamp(ts: Optional[datetime], lang: str = DEFAULT_LANG) -> str:
    """Local-time display string; empty while the server timestamp is pending."""
    if ts is None:
        return ""
    return ts.astimezone().strftime(get_datetime_format(lang))


def format_saved_at(ts: Optional[datetime], lang: str = DEFAULT_LANG) -> str:
    when = format_timestamp(ts, lang)
    return _t("studio.saved_at", lang, when=when) if when else ""


def export_keepsake_pdf(letters: list, cards: list, lang: str = DEFAULT_LANG) -> bytes:
    """Build a PDF with every saved letter and card. Returns PDF bytes.

    Content: title page, then a letters section and a cards section. Cards
    are drawn on their background color with black text.
    """
    if not letters and not cards:
        raise ValidationError("studio.export_empty")
    esc = _pdf_escape
    styles = _pdf_styles()
    buf = io.BytesIO()

    doc = BaseDocTemplate(buf, pagesize=A4,
                          leftMargin=20 * mm, rightMargin=20 * mm,
                          topMargin=20 * mm, bottomMargin=22 * mm)
    frame = Frame(doc.leftMargin, doc.bottomMargin, doc.width, doc.height, id="normal")
    doc.addPageTemplates([PageTemplate(id="keepsake", frames=frame,
                                       onPage=_pdf_footer_factory(_t("export.footer", lang)))])

    elements: list = []
    timestamp = datetime.now().strftime("%d/%m/%Y %H:%M")

    # ── Title page ──────────────────────────────────────────
    elements.append(Spacer(1, 40 * mm))
    elements.append(Paragraph(esc(_t("export.title", lang)), styles["KeepsakeTitle"]))
    elements.append(Paragraph(esc(_t("export.subtitle", lang)), styles["KeepsakeSubtitle"]))
    elements.append(Spacer(1, 8 * mm))
    elements.append(Paragraph(esc(_t("export.exported_at", lang, timestamp=timestamp)),
                              styles["KeepsakeSubtitle"]))

    # ── Letters ─────────────────────────────────────────────
    if letters:
        elements.append(PageBreak())
        elements.append(Paragraph(esc(_t("export.letters", lang)), styles["SectionHeading"]))
        elements.append(HRFlowable(width="100%", thickness=0.5, color=_PDF_COLOR_RULE,
                                   spaceBefore=2, spaceAfter=10))
        for letter in letters:
            elements.append(Paragraph(esc(letter.content), styles["KeepsakeBody"]))
            saved = format_saved_at(letter.created_at, lang)
            if saved:
                elements.append(Paragraph(esc(saved), styles["KeepsakeMeta"]))
            elements.append(HRFlowable(width="40%", thickness=0.3, color=_PDF_COLOR_RULE,
                                       spaceBefore=2, spaceAfter=8))

    # ── Cards ───────────────────────────────────────────────
    if cards:
        elements.append(PageBreak())
        elements.append(Paragraph(esc(_t("export.cards", lang)), styles["SectionHeading"]))
        elements.append(HRFlowable(width="100%", thickness=0.5, color=_PDF_COLOR_RULE,
                                   spaceBefore=2, spaceAfter=10))
        for card in cards:
            bg = card.bg_color if is_valid_color(card.bg_color) else DEFAULT_CARD_COLOR
            if len(bg) == 4:
                bg = "#" + "".join(c * 2 for c in bg[1:])
            cell = [Paragraph(esc(card.text), styles["CardBody"])]
            tbl = Table([[cell]], colWidths=[doc.width])
            tbl.setStyle(TableStyle([
                ("BACKGROUND", (0, 0), (-1, -1), HexColor(bg)),
                ("BOX", (0, 0), (-1, -1), 0.5, _PDF_COLOR_RULE),
                ("TOPPADDING", (0, 0), (-1, -1), 12),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 12),
                ("LEFTPADDING", (0, 0), (-1, -1), 10),
            ]))
            elements.append(tbl)
            meta = _t("export.card_color", lang, color=card.bg_color)
            saved = format_saved_at(card.created_at, lang)
            if saved:
                meta = f"{meta} · {saved}"
            elements.append(Paragraph(esc(meta), styles["KeepsakeMeta"]))

    doc.build(elements)
    log(f"[Export] Keepsake PDF built: {len(letters)} letters, {len(cards)} cards")
    return buf.getvalue()
