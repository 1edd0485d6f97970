#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wonderland - Celebration Site
===================================================
Central module for all UI-facing text, labels, and display strings.
Supports Portuguese (default/fallback) and English.

Usage:
    from i18n import t, E, UI_LANGUAGES, DEFAULT_LANG, get_page_labels, ...
    lang = "pt"                           # or "en"
    label = t("nav.home", lang)           # → "Início"
    moods = get_mood_labels(lang)         # → {"Feliz": "Feliz", ...}
"""

# ===============================================================
# EMOJI / UNICODE CONSTANTS (shared across all modules)
# ===============================================================

E = {
    "happy": "\U0001F60A",
    "neutral": "\U0001F610",
    "sad": "\U0001F614",
    "excited": "\U0001F929",
    "angry": "\U0001F620",
    "party": "\U0001F389",
    "soccer": "⚽",
    "palette": "\U0001F3A8",
    "pen": "✍️",
    "card": "\U0001F48C",
    "camera": "\U0001F4F7",
    "bell": "\U0001F514",
    "floppy": "\U0001F4BE",
    "trash": "\U0001F5D1️",
    "eraser": "\U0001F9FD",
    "download": "\U0001F4E5",
    "warn": "⚠️",
    "dot": "·",
}


# ===============================================================
# UI LANGUAGE CONFIGURATION
# ===============================================================

UI_LANGUAGES = {
    "Português": "pt",
    "English": "en",
}

DEFAULT_LANG = "pt"
FALLBACK_LANG = "pt"


# ===============================================================
# UI STRINGS: flat key structure with dot notation
# ===============================================================

_STRINGS = {
    # ── PORTUGUESE (default / fallback) ──────────────────────
    "pt": {
        # Connection / Loading
        "conn.loading": "Preparando a festa...",

        # Header / Footer
        "app.title": "Dr. Emanuel's Wonderland",
        "app.user_id": "ID do Usuário: {uid}",
        "app.local_mode": "Modo local: nada será salvo na nuvem.",
        "app.language": "Idioma",
        "app.connecting": "Conectando...",
        "app.footer": "© {year} Dr. Emanuel's Wonderland. Todos os direitos reservados. Feito com carinho e paixão pelo Galo!",

        # Navigation
        "nav.home": "Início",
        "nav.studio": "Estúdio Criativo",
        "nav.mood": "Humor",
        "nav.days": "Contador de Dias",
        "nav.schedule": "Agenda de Jogos",
        "nav.gallery": "Galeria de Fotos",

        # Dialogs
        "dialog.close": "Fechar",
        "msg.wait_init": "Por favor, aguarde a inicialização para salvar.",
        "msg.config_missing": "Erro: Configuração do Firebase ausente. O aplicativo pode não funcionar corretamente.",
        "msg.config_incomplete": "Erro: Configuração do Firebase incompleta. O aplicativo pode não funcionar corretamente.",
        "msg.auth_failed": "Não foi possível autenticar. Seus dados ficarão apenas nesta aba.",
        "msg.unexpected": "Erro ao inicializar o aplicativo. Por favor, tente novamente.",

        # Home
        "home.title": "Uma Celebração Alvinegra!",
        "home.welcome": (
            "Bem-vindo ao Dr. Emanuel's Wonderland! Preparamos um lugar especial para celebrar você, "
            "suas conquistas e tudo o que você representa para nós. Que este dia seja tão especial "
            "quanto você, cheio de alegria e emoções alvinegras! Aqui, a paixão pelo Galo se encontra "
            "com a celebração da sua vida."
        ),
        "home.click_hint": "Clique para mensagem",

        # Studio: drawing
        "studio.title": "Estúdio Criativo: Seu Santuário Pessoal",
        "studio.drawing_title": "Galeria de Desenhos da Massa",
        "studio.color": "Cor:",
        "studio.size": "Tamanho:",
        "studio.eraser": "Borracha",
        "studio.save_drawing": "Salvar Desenho",
        "studio.clear": "Limpar",
        "studio.saved_drawings": "Seus Desenhos Salvos:",
        "studio.no_drawings": "Nenhum desenho salvo ainda.",
        "studio.drawing_saved": "Desenho salvo com sucesso!",
        "studio.drawing_error": "Erro ao salvar o desenho. Tente novamente.",
        "studio.no_surface": "A área de desenho ainda não está pronta.",

        # Studio: letters
        "studio.letter_title": "Carta ao Galo / Dr. Emanuel",
        "studio.letter_placeholder": "Escreva sua mensagem especial aqui...",
        "studio.letter_counter": "{count}/{limit} caracteres",
        "studio.save_letter": "Salvar Carta",
        "studio.saved_letters": "Suas Cartas Salvas:",
        "studio.no_letters": "Nenhuma carta salva ainda.",
        "studio.letter_saved": "Carta salva com sucesso!",
        "studio.letter_empty": "A carta não pode estar vazia.",
        "studio.letter_too_long": "A carta não pode ter mais de {limit} caracteres.",
        "studio.letter_error": "Erro ao salvar a carta. Tente novamente.",
        "studio.saved_at": "Salvo em: {when}",

        # Studio: cards
        "studio.card_title": "Crie seu Cartão Alvinegro",
        "studio.card_message": "Mensagem do Cartão:",
        "studio.card_placeholder": "Escreva a mensagem do seu cartão aqui...",
        "studio.card_bg": "Cor de Fundo:",
        "studio.templates": "Modelos:",
        "studio.save_card": "Salvar Cartão",
        "studio.saved_cards": "Seus Cartões Salvos:",
        "studio.no_cards": "Nenhum cartão salvo ainda.",
        "studio.card_saved": "Cartão salvo com sucesso!",
        "studio.card_empty": "O cartão não pode estar vazio.",
        "studio.card_bad_color": "Cor de fundo inválida: {color}",
        "studio.card_error": "Erro ao salvar o cartão. Tente novamente.",

        # Studio: keepsake export
        "studio.export": "Baixar Lembranças (PDF)",
        "studio.export_empty": "Ainda não há cartas ou cartões para exportar.",
        "export.title": "Dr. Emanuel's Wonderland",
        "export.subtitle": "Cartas e cartões guardados com carinho",
        "export.exported_at": "Exportado em {timestamp}",
        "export.letters": "Cartas",
        "export.cards": "Cartões",
        "export.card_color": "Cor de fundo: {color}",
        "export.footer": "Lembranças de Dr. Emanuel's Wonderland",

        # Mood
        "mood.title": "Meu Termômetro de Humor Alvinegro",
        "mood.question": "Como você está se sentindo hoje, torcedor?",
        "mood.current": "Seu humor atual: {mood}",
        "mood.history": "Histórico de Humor:",
        "mood.none": "Nenhum humor registrado ainda.",
        "mood.recorded": "Humor registrado: {mood}",
        "mood.unknown": "Humor desconhecido: {mood}",
        "mood.error": "Erro ao registrar o humor. Tente novamente.",
        "mood.wait_init": "Por favor, aguarde a inicialização para registrar o humor.",

        # Days counter
        "days.title": "Contagem Regressiva dos Nossos Dias",
        "days.question": "Quantos dias se passaram desde que nos conhecemos?",
        "days.label": "Selecione a data que nos conhecemos:",
        "days.save": "Salvar Data",
        "days.elapsed": "Já se passaram {days} dias! {party}",
        "days.count": "{days} dias",
        "days.unset": "Data ainda não definida.",
        "days.pick_past": "Selecione uma data no passado para ver a contagem.",
        "days.no_date": "Por favor, selecione uma data.",
        "days.saved": "Data inicial salva com sucesso!",
        "days.error": "Erro ao salvar a data inicial. Tente novamente.",
        "days.wait_init": "Por favor, aguarde a inicialização para salvar a data.",

        # Schedule
        "schedule.title": "Agenda de Jogos do Atlético-MG",
        "schedule.subtitle": "Fique por dentro dos próximos jogos do Galo!",
        "schedule.versus": "{opponent} vs Atlético-MG",
        "schedule.notify": "Notificar-me",
        "schedule.reminder": "Lembrete: Jogo do Galo contra {opponent} em {date}!",
        "schedule.none": "Nenhum jogo agendado no momento. Volte em breve!",

        # Gallery
        "gallery.title": "Galeria de Fotos: Nosso Memorial",
        "gallery.subtitle": "Anexe suas fotos especiais e crie um memorial de momentos inesquecíveis!",
        "gallery.add": "Adicionar nova foto:",
        "gallery.saved": "Foto adicionada à galeria!",
        "gallery.error": "Erro ao adicionar a foto. Tente novamente.",
        "gallery.empty_file": "O arquivo enviado está vazio.",
        "gallery.none": "Nenhuma foto na galeria ainda.",
        "gallery.wait_init": "Por favor, aguarde a inicialização para fazer upload de fotos.",
    },

    # ── ENGLISH ──────────────────────────────────────────────
    "en": {
        "conn.loading": "Getting the party ready...",

        "app.title": "Dr. Emanuel's Wonderland",
        "app.user_id": "User ID: {uid}",
        "app.local_mode": "Local mode: nothing will be saved to the cloud.",
        "app.language": "Language",
        "app.connecting": "Connecting...",
        "app.footer": "© {year} Dr. Emanuel's Wonderland. All rights reserved. Made with love and passion for Galo!",

        "nav.home": "Home",
        "nav.studio": "Creative Studio",
        "nav.mood": "Mood",
        "nav.days": "Day Counter",
        "nav.schedule": "Game Schedule",
        "nav.gallery": "Photo Gallery",

        "dialog.close": "Close",
        "msg.wait_init": "Please wait for the app to finish starting before saving.",
        "msg.config_missing": "Error: Firebase configuration missing. The app may not work correctly.",
        "msg.config_incomplete": "Error: Firebase configuration incomplete. The app may not work correctly.",
        "msg.auth_failed": "Sign-in failed. Your data will only live in this tab.",
        "msg.unexpected": "Something went wrong. Please try again.",

        "home.title": "A Black-and-White Celebration!",
        "home.welcome": (
            "Welcome to Dr. Emanuel's Wonderland! We built a special place to celebrate you, "
            "your achievements and everything you mean to us. May this day be as special as you, "
            "full of joy and black-and-white emotions! Here, the passion for Galo meets the "
            "celebration of your life."
        ),
        "home.click_hint": "Click for a message",

        "studio.title": "Creative Studio: Your Personal Sanctuary",
        "studio.drawing_title": "The Crowd's Drawing Gallery",
        "studio.color": "Color:",
        "studio.size": "Size:",
        "studio.eraser": "Eraser",
        "studio.save_drawing": "Save Drawing",
        "studio.clear": "Clear",
        "studio.saved_drawings": "Your Saved Drawings:",
        "studio.no_drawings": "No drawings saved yet.",
        "studio.drawing_saved": "Drawing saved!",
        "studio.drawing_error": "Could not save the drawing. Please try again.",
        "studio.no_surface": "The drawing area is not ready yet.",

        "studio.letter_title": "Letter to Galo / Dr. Emanuel",
        "studio.letter_placeholder": "Write your special message here...",
        "studio.letter_counter": "{count}/{limit} characters",
        "studio.save_letter": "Save Letter",
        "studio.saved_letters": "Your Saved Letters:",
        "studio.no_letters": "No letters saved yet.",
        "studio.letter_saved": "Letter saved!",
        "studio.letter_empty": "The letter cannot be empty.",
        "studio.letter_too_long": "The letter cannot be longer than {limit} characters.",
        "studio.letter_error": "Could not save the letter. Please try again.",
        "studio.saved_at": "Saved on: {when}",

        "studio.card_title": "Create your Black-and-White Card",
        "studio.card_message": "Card message:",
        "studio.card_placeholder": "Write your card message here...",
        "studio.card_bg": "Background color:",
        "studio.templates": "Templates:",
        "studio.save_card": "Save Card",
        "studio.saved_cards": "Your Saved Cards:",
        "studio.no_cards": "No cards saved yet.",
        "studio.card_saved": "Card saved!",
        "studio.card_empty": "The card cannot be empty.",
        "studio.card_bad_color": "Invalid background color: {color}",
        "studio.card_error": "Could not save the card. Please try again.",

        "studio.export": "Download Keepsakes (PDF)",
        "studio.export_empty": "There are no letters or cards to export yet.",
        "export.title": "Dr. Emanuel's Wonderland",
        "export.subtitle": "Letters and cards kept with love",
        "export.exported_at": "Exported on {timestamp}",
        "export.letters": "Letters",
        "export.cards": "Cards",
        "export.card_color": "Background color: {color}",
        "export.footer": "Keepsakes from Dr. Emanuel's Wonderland",

        "mood.title": "My Black-and-White Mood Meter",
        "mood.question": "How are you feeling today, fan?",
        "mood.current": "Your current mood: {mood}",
        "mood.history": "Mood History:",
        "mood.none": "No mood recorded yet.",
        "mood.recorded": "Mood recorded: {mood}",
        "mood.unknown": "Unknown mood: {mood}",
        "mood.error": "Could not record the mood. Please try again.",
        "mood.wait_init": "Please wait for the app to finish starting before recording a mood.",

        "days.title": "Counting Our Days",
        "days.question": "How many days have passed since we met?",
        "days.label": "Pick the day we met:",
        "days.save": "Save Date",
        "days.elapsed": "{days} days have passed! {party}",
        "days.count": "{days} days",
        "days.unset": "Date not set yet.",
        "days.pick_past": "Pick a date in the past to see the count.",
        "days.no_date": "Please pick a date.",
        "days.saved": "Start date saved!",
        "days.error": "Could not save the start date. Please try again.",
        "days.wait_init": "Please wait for the app to finish starting before saving the date.",

        "schedule.title": "Atlético-MG Game Schedule",
        "schedule.subtitle": "Keep up with Galo's next games!",
        "schedule.versus": "{opponent} vs Atlético-MG",
        "schedule.notify": "Notify me",
        "schedule.reminder": "Reminder: Galo plays {opponent} on {date}!",
        "schedule.none": "No games scheduled right now. Check back soon!",

        "gallery.title": "Photo Gallery: Our Memorial",
        "gallery.subtitle": "Attach your special photos and build a memorial of unforgettable moments!",
        "gallery.add": "Add a new photo:",
        "gallery.saved": "Photo added to the gallery!",
        "gallery.error": "Could not add the photo. Please try again.",
        "gallery.empty_file": "The uploaded file is empty.",
        "gallery.none": "No photos in the gallery yet.",
        "gallery.wait_init": "Please wait for the app to finish starting before uploading photos.",
    },
}


# ===============================================================
# STRING LOOKUP
# ===============================================================

def t(key: str, lang: str = DEFAULT_LANG, **kwargs) -> str:
    """Look up a translated string. Falls back to Portuguese if key missing in target language."""
    text = _STRINGS.get(lang, {}).get(key)
    if text is None:
        text = _STRINGS.get(FALLBACK_LANG, {}).get(key, f"[{key}]")
    if kwargs:
        try:
            text = text.format(**kwargs)
        except (KeyError, IndexError):
            pass
    return text


# ===============================================================
# LABEL DICTS: language-dependent display labels
# ===============================================================

# Page codes → nav string keys (order = header order)
_PAGE_KEYS = {
    "home": "nav.home",
    "studio": "nav.studio",
    "mood": "nav.mood",
    "days": "nav.days",
    "schedule": "nav.schedule",
    "gallery": "nav.gallery",
}

# Stored mood labels are the Portuguese words; only the display changes
_MOOD_LABELS = {
    "pt": {"Feliz": "Feliz", "Neutro": "Neutro", "Triste": "Triste",
           "Animado": "Animado", "Bravo": "Bravo"},
    "en": {"Feliz": "Happy", "Neutro": "Neutral", "Triste": "Sad",
           "Animado": "Excited", "Bravo": "Angry"},
}

_TEMPLATE_LABELS = {
    "pt": {"default": "Padrão", "galo_doido": "Galo Doido",
           "manto_sagrado": "Manto Sagrado", "campo": "Campo"},
    "en": {"default": "Plain", "galo_doido": "Crazy Rooster",
           "manto_sagrado": "Sacred Jersey", "campo": "Pitch"},
}

_DATE_FORMATS = {
    "pt": "%d/%m/%Y",
    "en": "%m/%d/%Y",
}

_DATETIME_FORMATS = {
    "pt": "%d/%m/%Y %H:%M:%S",
    "en": "%m/%d/%Y %I:%M:%S %p",
}


def get_page_labels(lang: str = DEFAULT_LANG) -> dict:
    return {code: t(key, lang) for code, key in _PAGE_KEYS.items()}

def get_mood_labels(lang: str = DEFAULT_LANG) -> dict:
    return _MOOD_LABELS.get(lang, _MOOD_LABELS[FALLBACK_LANG])

def get_template_labels(lang: str = DEFAULT_LANG) -> dict:
    return _TEMPLATE_LABELS.get(lang, _TEMPLATE_LABELS[FALLBACK_LANG])

def get_date_format(lang: str = DEFAULT_LANG) -> str:
    return _DATE_FORMATS.get(lang, _DATE_FORMATS[FALLBACK_LANG])

def get_datetime_format(lang: str = DEFAULT_LANG) -> str:
    return _DATETIME_FORMATS.get(lang, _DATETIME_FORMATS[FALLBACK_LANG])


def mood_label(mood: str, lang: str = DEFAULT_LANG) -> str:
    """Display label for a stored mood; unknown values pass through unchanged."""
    return get_mood_labels(lang).get(mood, mood)


def resolve_ui_lang(label_or_code: str) -> str:
    """Accept either a display label ('Português') or a code ('pt')."""
    if label_or_code in UI_LANGUAGES.values():
        return label_or_code
    return UI_LANGUAGES.get(label_or_code, DEFAULT_LANG)
