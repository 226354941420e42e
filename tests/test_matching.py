import pytest

from spincoach.memory.cooldowns import CooldownRegistry
from spincoach.tools.battlecards import DEFAULT_LIBRARY, Battlecard, CardLibrary
from spincoach.tools.matcher import category_priority, pick_top_matches, score_card
from spincoach.tools.normalize import normalize_for_match


def _card(key, triggers, category="objection"):
    return Battlecard(key=key, category=category, title=key, triggers=tuple(triggers),
                      primary=f"{key} primary", follow_up="")


@pytest.mark.parametrize("raw, expected", [
    ("Rozpočet, teď NE!", "rozpocet ted ne"),
    ("  Ahoj   světe  ", "ahoj svete"),
    ("Žluťoučký kůň", "zlutoucky kun"),
    ("Cena: 10 000 Kč", "cena 10 000 kc"),
    ("", ""),
    (None, ""),
])
def test_normalize_for_match(raw, expected):
    assert normalize_for_match(raw) == expected


def test_price_objection_scores_single_word_hit():
    lines = ["No, máme na to rozpočet problém"]
    price = DEFAULT_LIBRARY.get("price")

    assert score_card(price, lines, DEFAULT_LIBRARY) == 3

    matches = pick_top_matches(lines, DEFAULT_LIBRARY, CooldownRegistry(), now=0)
    assert matches.best.key == "price"
    assert matches.best.score == 3
    assert matches.alt is None
    assert matches.persona.key == "persona_ceo_numbers"


def test_score_is_deterministic():
    lines = ["Je to drahé a teď ne", "pošlete to mailem"]
    first = pick_top_matches(lines, DEFAULT_LIBRARY, CooldownRegistry(), now=0)
    second = pick_top_matches(lines, DEFAULT_LIBRARY, CooldownRegistry(), now=0)
    assert first == second
    for card in DEFAULT_LIBRARY:
        assert score_card(card, lines, DEFAULT_LIBRARY) == score_card(card, lines, DEFAULT_LIBRARY)


def test_cooled_card_is_never_selected():
    now = 1000.0
    cooldowns = CooldownRegistry()
    cooldowns.suppress("price", 90, now - 30)

    matches = pick_top_matches(["No, máme na to rozpočet problém"], DEFAULT_LIBRARY, cooldowns, now)
    for slot in (matches.best, matches.alt, matches.persona):
        assert slot is None or slot.key != "price"


def test_cooled_persona_card_is_never_selected():
    now = 1000.0
    cooldowns = CooldownRegistry()
    cooldowns.suppress("persona_ceo_numbers", 60, now - 10)

    matches = pick_top_matches(["No, máme na to rozpočet problém"], DEFAULT_LIBRARY, cooldowns, now)
    assert matches.best.key == "price"
    assert matches.persona is None or matches.persona.key != "persona_ceo_numbers"


def test_expired_cooldown_is_ignored():
    now = 1000.0
    cooldowns = CooldownRegistry()
    cooldowns.suppress("price", 90, now - 120)

    matches = pick_top_matches(["No, máme na to rozpočet problém"], DEFAULT_LIBRARY, cooldowns, now)
    assert matches.best.key == "price"


def test_co_occurrence_bonus_on_one_line():
    card = _card("budget_timing", ["rozpočet", "teď ne"])
    library = CardLibrary([card], aliases={})
    assert score_card(card, ["Rozpočet teď ne řešíme"], library) == 3 + 5 + 2


def test_scores_sum_across_lines_without_cross_line_bonus():
    card = _card("budget_timing", ["rozpočet", "teď ne"])
    library = CardLibrary([card], aliases={})
    assert score_card(card, ["rozpočet", "teď ne"], library) == 3 + 5


def test_aliases_count_as_triggers():
    card = _card("mailer", ["pošlete podklady"])
    library = CardLibrary([card], aliases={"prezentace": "mailer"})
    assert score_card(card, ["hoďte mi prezentaci... prezentace"], library) == 3


def test_higher_category_priority_wins_over_score():
    sec = _card("sec", ["gdpr"], category="security")
    obj = _card("obj", ["gdpr data", "gdpr"])
    library = CardLibrary([obj, sec], aliases={})

    matches = pick_top_matches(["gdpr data"], library)
    assert matches.best.key == "sec"
    assert matches.alt.key == "obj"
    assert category_priority("security") > category_priority("next-step") > \
        category_priority("objection") > category_priority("persona")


def test_alt_requires_close_score():
    strong = _card("a_strong", ["cena", "sleva"])
    weak = _card("b_weak", ["sleva"])
    library = CardLibrary([strong, weak], aliases={})

    matches = pick_top_matches(["cena a sleva"], library)
    assert matches.best.key == "a_strong"
    assert matches.best.score == 8
    assert matches.alt is None


def test_ties_break_by_key():
    library = CardLibrary([_card("zeta", ["cena"]), _card("alpha", ["cena"])], aliases={})
    matches = pick_top_matches(["cena"], library)
    assert matches.best.key == "alpha"
    assert matches.alt.key == "zeta"


def test_persona_cards_are_never_best():
    library = CardLibrary([_card("persona_x", ["kultura", "lidi"], category="persona")], aliases={})
    matches = pick_top_matches(["kultura a lidi"], library)
    assert matches.best is None
    assert matches.persona.key == "persona_x"


def test_no_lines_no_matches():
    matches = pick_top_matches([], DEFAULT_LIBRARY)
    assert matches.best is None and matches.alt is None and matches.persona is None


def test_cooldown_registry():
    cd = CooldownRegistry()
    assert cd.suppress("price", 90, 100) == 190
    assert cd.is_active("price", 189.9)
    assert not cd.is_active("price", 190)
    assert not cd.is_active("roi", 100)

    cd.suppress("price", 10, 100)
    assert cd.until("price") == 110
    assert cd.as_dict(now=120) == {}
    assert cd.as_dict() == {"price": 110}

    cd.clear()
    assert len(cd) == 0
