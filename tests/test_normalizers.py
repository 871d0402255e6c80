"""Tests for text normalization."""

from oahu_transit.matching.normalizers import (
    get_meaningful_tokens,
    normalize_text,
    parse_cross_street,
    remove_diacritics,
)


class TestRemoveDiacritics:
    def test_kahako_and_okina(self):
        assert remove_diacritics("Waiʻanae Kōkua") == "Waianae Kokua"

    def test_apostrophe_as_okina(self):
        assert remove_diacritics("Hale'iwa") == "Haleiwa"

    def test_plain_text_unchanged(self):
        assert remove_diacritics("Ala Moana") == "Ala Moana"


class TestNormalizeText:
    def test_expands_abbreviations(self):
        assert normalize_text("KAPIʻOLANI BLVD + ATKINSON DR") == "kapiolani boulevard + atkinson drive"

    def test_collapses_whitespace(self):
        assert normalize_text("  King   St  ") == "king street"

    def test_transit_center(self):
        assert normalize_text("Kalihi TC") == "kalihi transit center"

    def test_airport_code(self):
        assert normalize_text("HNL") == "airport"


class TestParseCrossStreet:
    def test_plus(self):
        assert parse_cross_street("King St + Alakea St") == ("king street", "alakea street")

    def test_slash_and_at(self):
        assert parse_cross_street("Kapahulu Ave / Kalakaua Ave") == (
            "kapahulu avenue",
            "kalakaua avenue",
        )
        assert parse_cross_street("Beretania at Punchbowl") == ("beretania", "punchbowl")

    def test_not_a_cross_street(self):
        assert parse_cross_street("Ala Moana Center") is None


def test_meaningful_tokens():
    assert get_meaningful_tokens("Ala Moana Center (Kona St)") == {"ala", "moana", "center", "kona"}
