from datetime import datetime, timezone

import pytest

from engine import Card, Letter, ValidationError, export_keepsake_pdf, format_saved_at


def test_pdf_with_letters_and_cards():
    letters = [Letter("l1", "Parabéns <doutor> & família\nbeijos",
                      datetime(2025, 1, 2, 15, 30, tzinfo=timezone.utc))]
    cards = [Card("c1", "Galo!", "#fcd34d"), Card("c2", "Preto", "#000")]
    pdf = export_keepsake_pdf(letters, cards, "pt")
    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 1000


def test_pdf_with_only_cards_in_english():
    assert export_keepsake_pdf([], [Card("c1", "Hi", "#ffffff")], "en").startswith(b"%PDF")


def test_nothing_to_export():
    with pytest.raises(ValidationError) as exc:
        export_keepsake_pdf([], [])
    assert exc.value.key == "studio.export_empty"


def test_saved_at_label():
    assert format_saved_at(None, "pt") == ""
    label = format_saved_at(datetime(2025, 1, 2, 12, 0, tzinfo=timezone.utc), "pt")
    assert label.startswith("Salvo em: ")
