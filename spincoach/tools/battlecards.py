"""
Battlecard library.

Static, data-driven table of pre-authored rebuttals. Each card is keyed by a
unique `key` and carries the trigger phrases the matcher scans for.
The table is immutable; runtime augmentation builds a new merged library
where later sources win on key collisions.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from spincoach.tools.normalize import normalize_for_match

CATEGORIES = ("objection", "persona", "security", "next-step")


@dataclass(frozen=True)
class Battlecard:
    key: str
    category: str
    title: str
    triggers: Tuple[str, ...]
    primary: str
    follow_up: str
    when_to_use: str = ""
    alternates: Tuple[str, ...] = ()
    proof_hooks: Tuple[str, ...] = ()
    dont_say: Tuple[str, ...] = ()
    tone: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "category": self.category,
            "title": self.title,
            "whenToUse": self.when_to_use,
            "triggers": list(self.triggers),
            "primaryResponse": self.primary,
            "alternateResponses": list(self.alternates),
            "followUpPrompt": self.follow_up,
            "proofHooks": list(self.proof_hooks),
            "dontSay": list(self.dont_say),
            "toneHint": self.tone,
        }


# ── Static library (CZ) ──

BATTLECARDS: Tuple[Battlecard, ...] = (
    Battlecard(
        key="price",
        category="objection",
        title="Cena / rozpočet",
        when_to_use="Když CEO zpochybní cenu nebo řekne, že na to není rozpočet.",
        triggers=(
            "drahé", "předražené", "cena", "rozpočet", "budget", "nemáme budget",
            "na to nemáme", "je to moc peněz", "kolik to stojí", "rozpočtově nejde",
            "šetříme", "stop náklady",
        ),
        primary=(
            "Chápu, u takové věci je fér chtít jasně vědět, co za to reálně dostanete. "
            "Pojďme to rychle přepnout na dopad: co je dnes nejdražší problém ve výkonu, "
            "přetížení nebo fluktuaci, který chcete mít pod kontrolou?"
        ),
        alternates=(
            "Jasně, cena sama o sobě nic neříká, dokud nevíme, proti čemu ji porovnáváme. "
            "Kdyby to mělo ušetřit čas manažerů nebo předejít odchodům, jak byste si to chtěl měřit?",
            "Rozumím, nechci vás tlačit do ničeho naslepo. Pokud dává smysl, můžeme to ověřit "
            "malým pilotem na jednom týmu, ať máte tvrdá data pro rozhodnutí.",
        ),
        follow_up="Co by pro vás bylo nejpřesvědčivější měřítko, že se to vyplatí?",
        proof_hooks=(
            "Neprodáváme „nástroj“, ale signály pro včasné řízení rizik v týmech.",
            "Nejrychleji to obhájíte přes konkrétní dopad: čas lídrů, stabilita týmů, výkon.",
        ),
        dont_say=("To se vám vrátí určitě.", "To je vlastně levné, když si to spočítáte."),
        tone="klidně, věcně, s jistotou",
    ),
    Battlecard(
        key="roi",
        category="objection",
        title="ROI / dopad na byznys",
        when_to_use="Když CEO chce důkaz dopadu, ne „HR aktivitu“.",
        triggers=(
            "roi", "návratnost", "jaký dopad", "byznys dopad", "business case",
            "k čemu mi to bude", "co z toho", "jak to pomůže výkonu",
            "jak to pomůže firmě", "jak to změřím",
        ),
        primary=(
            "Dává smysl, bez dopadu to je jen další aktivita. Když se podíváte na poslední "
            "3 měsíce, kde vás nejvíc bolel výkon nebo stabilita týmu?"
        ),
        alternates=(
            "ROI u tohohle typicky stojí na tom, že problémy vidíte dřív a řešíte je levněji. "
            "Který typ signálu je pro vás nejcennější: přetížení, tichá rezignace, nebo výkyvy výkonu?",
            "Můžeme to vzít pragmaticky: pilot na jednom týmu a dopředu si dáme 2–3 metriky, "
            "které chcete sledovat. Co by tam pro vás mělo být?",
        ),
        follow_up="Kde dnes platíte největší „skrytou daň“ za to, že tyhle věci nejsou vidět včas?",
        proof_hooks=(
            "Včasné signály = menší zásahy a méně eskalací.",
            "CEO obvykle chce vidět trend a riziková místa, ne stovky komentářů.",
        ),
        dont_say=("ROI vám garantuju.", "Všichni naši klienti mají skvělé ROI."),
        tone="stručně, analyticky, bez tlaku",
    ),
    Battlecard(
        key="not_now",
        category="objection",
        title="Teď to neřešíme / není priorita",
        when_to_use="Když CEO odkládá téma na neurčito.",
        triggers=(
            "teď ne", "neřešíme", "není priorita", "až později", "teď na to nemám",
            "teď to nechci", "momentálně ne", "teď máme jiné", "později",
            "v příštím kvartálu", "teď hoří jiné věci",
        ),
        primary=(
            "Rozumím, nechci vám přidávat další projekt. Jen abych pochopil: odkládáte to, "
            "protože je to v pohodě, nebo protože je teď moc jiných věcí?"
        ),
        alternates=(
            "Jasně, timing je všechno. Co by se muselo stát, aby tohle téma pro vás vyskočilo "
            "do top 3 priorit?",
            "Když to necháme být, co je nejhorší scénář, který se vám může v týmech tiše "
            "rozjet bez signálů?",
        ),
        follow_up=(
            "Kdybychom to chtěli jen „ověřit“, jaký je nejbližší realistický termín pro "
            "krátký pilot nebo follow-up?"
        ),
        proof_hooks=(
            "Odklad často znamená jen chybějící jasný další krok, ne nezájem.",
            "Nejnižší tření je domluvit malý ověřovací krok.",
        ),
        dont_say=("To je chyba, to musíte řešit hned.", "Když to neuděláte teď, dopadnete špatně."),
        tone="respektující, klidně, partnersky",
    ),
    Battlecard(
        key="send_email",
        category="objection",
        title="Pošlete to mailem",
        when_to_use="Když CEO chce ukončit call nebo odsunout rozhodnutí bez závazku.",
        triggers=(
            "pošlete to mailem", "pošli mi to mailem", "poslete to emailem", "email",
            "pošlete podklady", "něco mi pošlete", "hoďte mi to do mailu",
            "napište mi to", "dej mi to do zprávy", "poslete prezentaci",
        ),
        primary=(
            "Jasně, pošlu shrnutí. Jen aby to nebyl mail do šuplíku: co přesně v tom chcete "
            "mít, aby vám to pomohlo rozhodnout?"
        ),
        alternates=(
            "Pošlu to, ale největší hodnotu to má, když je to napojené na váš konkrétní "
            "problém. Co je ta jedna věc, kterou si z toho máte odnést vy jako CEO?",
            "Můžu poslat i bezpečnostní a anonymizační podklady, pokud je to pro vás blok. "
            "Co je u vás nejcitlivější oblast?",
        ),
        follow_up="Domluvíme si rovnou 15 minut v kalendáři na projití toho mailu, ať to má výstup?",
        proof_hooks=(
            "„Pošlete to mailem“ je často signál, že chybí jasný další krok.",
            "Lepší je připojit krátký follow-up než poslat další PDF.",
        ),
        dont_say=("Jasně, pošlu a ozvěte se.", "Tak já vám to pošlu a pak si zavoláme."),
        tone="lehce, konkrétně, bez dotlačování",
    ),
    Battlecard(
        key="already_solution",
        category="objection",
        title="Už máme něco / už to řešíme",
        when_to_use="Když CEO říká, že mají interní řešení, HR systém nebo průzkumy.",
        triggers=(
            "už máme", "už používáme", "máme nástroj", "máme systém", "máme průzkum",
            "děláme engagement", "řešíme to", "máme HR", "máme People", "už měříme",
            "máme dotazník",
        ),
        primary=(
            "To je super, aspoň nemusíme přesvědčovat, že to má smysl. Co vám na tom "
            "současném řešení nejvíc chybí, když jde o včasné signály v týmech?"
        ),
        alternates=(
            "Jasně, nástroj mít je jedna věc, ale signály, které z toho dostanete, druhá. "
            "Kde dnes nejčastěji zjistíte problém až pozdě?",
            "Pokud jste s tím spokojení, nemusí to být pro vás. V čem by se to muselo "
            "prokázat jako lepší, aby to stálo za změnu nebo doplnění?",
        ),
        follow_up="Který typ signálu chcete mít dřív, než se z toho stane průšvih?",
        proof_hooks=(
            "Neútočit na jejich nástroj, ale na „mezery v signálech“.",
            "Cíl je doplnit slepá místa, ne dělat revoluci.",
        ),
        dont_say=("To vaše řešení je špatně.", "My jsme lepší než všichni ostatní."),
        tone="respektující, zvědavě, věcně",
    ),
    Battlecard(
        key="gdpr",
        category="security",
        title="GDPR / právní riziko",
        when_to_use="Když CEO nebo IT vytáhne GDPR, compliance, smlouvy.",
        triggers=(
            "gdpr", "compliance", "dpo", "právník", "právní", "smlouva", "zpracovatel",
            "správce", "osobní údaje", "citlivá data", "audit",
        ),
        primary=(
            "Rozumím, tady je lepší být přísný než pozdě litovat. Co je u vás největší blok: "
            "zpracování dat, smluvní stránka, nebo bezpečnostní kontrola?"
        ),
        alternates=(
            "Můžeme to vzít standardně: role správce/zpracovatel, účel, doby uchování a "
            "přístupy. Kdo u vás tohle schvaluje, ať to řešíme rovnou s ním?",
            "Nechci to řešit na pocit, pošlu vám stručný bezpečnostní a GDPR přehled. "
            "Chcete to spíš pro právníka, nebo pro IT?",
        ),
        follow_up="Kdo je u vás DPO/právník, aby se to nezaseklo na přeposílání?",
        proof_hooks=(
            "GDPR blok se řeší rychleji s ownerem než přes přeposlané útržky.",
            "Cíl: jasně vymezit data, účel, přístupy.",
        ),
        dont_say=("GDPR je v pohodě, to se řešit nemusí.", "Tohle podepisují všichni."),
        tone="klidně, precizně, bez zlehčování",
    ),
    Battlecard(
        key="anonymity",
        category="security",
        title="Anonymita – jde to dohledat na člověka?",
        when_to_use="Když CEO řeší identifikovatelnost odpovědí.",
        triggers=(
            "anonym", "anonymní", "dohledat", "identifikovat", "kdo to napsal",
            "poznáte člověka", "sledování", "tracking", "ip adresa", "mail", "jméno",
        ),
        primary=(
            "Anonymita je klíčová, jinak to celé nemá cenu. Jak přísně to u vás potřebujete "
            "nastavit – jde vám hlavně o to, aby to nešlo použít proti jednotlivci?"
        ),
        alternates=(
            "Dává smysl to nastavit tak, aby výstupy byly týmové a ne „na jména“. Kde je u "
            "vás hranice, pod kterou už by to bylo rizikové?",
            "Nechci vás přesvědčovat slovy, radši vám pošlu přesný popis, co se ukládá a co "
            "ne. Kdo z vašeho IT nebo právníka to má posoudit?",
        ),
        follow_up="Kdo je u vás owner tématu anonymita/GDPR, aby to mělo zelenou?",
        proof_hooks=(
            "Bez důvěry v anonymitu klesá upřímnost i návratnost.",
            "Nejrychlejší je dát k tomu jasná pravidla a bezpečnostní popis.",
        ),
        dont_say=("Je to anonymní, věřte mi.", "Tohle se nemusí řešit."),
        tone="věcně, bezpečnostně, bez mlžení",
    ),
    Battlecard(
        key="decision_process",
        category="objection",
        title="Musím to probrat s… (HR/CFO/COO)",
        when_to_use="Když CEO signalizuje stakeholdery a blok schválení.",
        triggers=(
            "musím probrat", "musím se poradit", "s HR", "s CFO", "s COO", "board",
            "schválení", "interně",
        ),
        primary=(
            "Jasně, je to rozumné. Kdo z nich bude nejvíc řešit co: byznys dopad, "
            "data/GDPR, nebo provozní zátěž?"
        ),
        alternates=(
            "Ať se to netočí dokola, pojďme si říct, co každý z nich potřebuje slyšet, aby "
            "dal zelenou. Kdo je největší skeptic?",
            "Můžeme udělat krátký společný call, kde vyřešíme jejich otázky rovnou. Koho má "
            "smysl přizvat, aby to bylo rozhodnutelné?",
        ),
        follow_up="Jaký je váš ideální další krok, aby to vedlo k rozhodnutí, ne jen k dalšímu kolečku?",
        proof_hooks=(
            "Mapuj role: CFO=ROI, HR=proces a přijetí, IT=bezpečnost.",
            "Nejrychlejší je společný 20min slot se správnými lidmi.",
        ),
        dont_say=("Tak jim to prostě přepošlete.", "Tohle je jen formalita."),
        tone="organizovaně, věcně",
    ),
    Battlecard(
        key="pilot",
        category="next-step",
        title="Návrh pilotu (malý, bezpečný krok)",
        when_to_use="Když je základní fit, ale CEO nechce závazek bez ověření.",
        triggers=(
            "pilot", "zkusit", "ověřit", "test", "trial", "zkušebně", "ověření",
            "bez rizika", "proof",
        ),
        primary=(
            "Dává smysl to nebrat na víru. Navrhuju krátký pilot na jednom týmu, a dopředu "
            "si řekneme, co přesně má pro vás prokázat."
        ),
        alternates=(
            "Pilot vám dá realitu: návratnost, reakci lidí i to, jestli z toho vznikají akce. "
            "Který tým je nejlepší kandidát, aby to bylo reprezentativní?",
            "Ať je to fér, nastavíme jasná kritéria „pokračujeme / končíme“. Jaké dvě věci "
            "musí pilot splnit, aby to mělo cenu rozšířit?",
        ),
        follow_up="Který tým a jaké dvě metriky chcete v pilotu sledovat?",
        proof_hooks=(
            "Pilot snižuje vendor risk a dává interní argumenty.",
            "Kritéria dopředu = žádná nekonečná diskuze.",
        ),
        dont_say=("Když nedáte pilot, přijdete o šanci.", "Pilot je jen formalita."),
        tone="partnersky, klidně, orientace na jistotu",
    ),
    Battlecard(
        key="persona_ceo_numbers",
        category="persona",
        title="Persona: CEO na čísla (ROI, výkon, efektivita)",
        when_to_use="Když CEO mluví v metrikách, nákladech, výkonu a prioritách.",
        triggers=(
            "roi", "náklady", "efektivita", "produktivita", "výkon", "metriky", "kpi",
            "čísla", "rozpočet", "dopad",
        ),
        primary=(
            "Pojďme to držet v číslech a dopadu, ne v pocitech. Kde dnes ztrácíte nejvíc "
            "peněz nebo času kvůli tomu, že signály z týmů přijdou pozdě?"
        ),
        alternates=(
            "Nechci vám přidat náklad bez argumentu pro CFO. Jaké dvě metriky by pro vás "
            "byly „deal-breaker“, kdyby se nezlepšily?",
            "Nejdřív si ujasněme, co má být výstup: rychlé varování, nebo dlouhodobý trend. "
            "Co je pro vás teď důležitější?",
        ),
        follow_up="Jaká je vaše top metrika, kterou chcete tímhle chránit nebo zlepšit?",
        proof_hooks=(
            "Řeč CEO: riziko, náklady, výkon, čas lídrů.",
            "Vždy přepnout na „co měříme v pilotu“.",
        ),
        dont_say=("Je to hlavně o pocitech lidí.", "Tohle je moderní HR trend."),
        tone="stručně, analyticky, rozhodně",
    ),
    Battlecard(
        key="persona_ceo_people",
        category="persona",
        title="Persona: CEO people-first (kultura, stabilita, leadership)",
        when_to_use="Když CEO řeší atmosféru, lídry, důvěru, hodnoty.",
        triggers=(
            "kultura", "atmosféra", "lidi", "důvěra", "leadership", "manažeři",
            "stabilita", "hodnoty",
        ),
        primary=(
            "Chápu, že pro vás je důležitá stabilita a zdravé týmy, ne jen čísla. Kde dnes "
            "cítíte, že se vám to může začít lámat, ale nemáte jistotu?"
        ),
        alternates=(
            "Signály mají smysl jen tehdy, když z nich vznikne bezpečná akce, ne hon na "
            "viníka. Jaký styl práce s feedbackem je u vás nepřekročitelný?",
            "Můžeme začít tam, kde je leadership silný, aby to lidé zažili jako pomoc. Který "
            "tým by byl nejlepší první příklad?",
        ),
        follow_up="Co chcete, aby si z toho odnesli manažeři jako praktickou pomoc?",
        proof_hooks=(
            "People-first CEO chce „bezpečí + akci“, ne kontrolu.",
            "Začít v týmu s dobrým leadershipem.",
        ),
        dont_say=("Tohle je hlavně nástroj na kontrolu.", "Když se bojí, ať si zvyknou."),
        tone="empaticky, klidně, lidsky",
    ),
    Battlecard(
        key="persona_ceo_skeptic",
        category="persona",
        title="Persona: CEO skeptik (nechci hype, chci důkaz)",
        when_to_use="Když CEO zpochybňuje smysl, má alergii na HR/AI buzz.",
        triggers=(
            "nevěřím", "skeptický", "to zní hezky", "hype", "buzzwordy",
            "už jsem to slyšel", "marketing",
        ),
        primary=(
            "Respektuju to, hype nikomu nepomáhá. Pojďme to vzít na jednu konkrétní situaci "
            "z vašich týmů, kde by včasný signál ušetřil problém."
        ),
        alternates=(
            "Jestli to nedá jasnou odpověď „co řešit a kde“, tak to nemá cenu. Kde dnes "
            "nejčastěji přijdete na problém až ve chvíli, kdy už stojí čas a nervy?",
            "Nechci vás přesvědčovat řečmi, radši pilot s jasnými kritérii. Co by muselo být "
            "vidět, abyste řekl: dává to smysl?",
        ),
        follow_up="Jaký je váš největší důvod, proč tohle typicky nefunguje, ať to rovnou otestujeme?",
        proof_hooks=(
            "Skeptik chce konkrétní příklad a jasná kritéria.",
            "Pilot bez tlaku je nejrychlejší důkaz.",
        ),
        dont_say=("Musíte mi věřit.", "Tohle je budoucnost, kdo to nemá, prohraje."),
        tone="věcně, bez hype, klidně",
    ),
)

# Number keys 1-9 pick a card directly during a call.
HOTKEYS: Dict[str, str] = {
    "1": "price",
    "2": "send_email",
    "3": "not_now",
    "4": "already_solution",
    "5": "gdpr",
    "6": "anonymity",
    "7": "decision_process",
    "8": "persona_ceo_numbers",
    "9": "pilot",
}

# Search aliases -> card key. Also counted as extra triggers by the matcher.
SEARCH_ALIASES: Dict[str, str] = {
    "cena": "price",
    "drahe": "price",
    "drahé": "price",
    "rozpočet": "price",
    "rozpocet": "price",
    "budget": "price",
    "náklady": "persona_ceo_numbers",
    "naklady": "persona_ceo_numbers",
    "roi": "roi",
    "návratnost": "roi",
    "navratnost": "roi",
    "výkon": "roi",
    "vykon": "roi",
    "teď ne": "not_now",
    "ted ne": "not_now",
    "priorita": "not_now",
    "později": "not_now",
    "pozdeji": "not_now",
    "mail": "send_email",
    "email": "send_email",
    "podklady": "send_email",
    "prezentace": "send_email",
    "už máme": "already_solution",
    "uz mame": "already_solution",
    "gdpr": "gdpr",
    "anonymita": "anonymity",
    "anonym": "anonymity",
    "pilot": "pilot",
}


class CardLibrary:
    """Immutable, ordered card table with a later-source-wins merge policy."""

    def __init__(self, cards: Iterable[Battlecard] = (), aliases: Optional[Dict[str, str]] = None):
        ordered: Dict[str, Battlecard] = {}
        for card in cards:
            # a replaced key keeps its original position
            ordered[card.key] = card
        self._cards = ordered
        self._aliases = dict(aliases if aliases is not None else SEARCH_ALIASES)

        by_key: Dict[str, List[str]] = {}
        for alias, key in self._aliases.items():
            by_key.setdefault(key, []).append(alias)
        self._alias_triggers = {k: tuple(v) for k, v in by_key.items()}

    def merged(self, *sources: Iterable[Battlecard]) -> "CardLibrary":
        cards = list(self._cards.values())
        for source in sources:
            cards.extend(source)
        return CardLibrary(cards, self._aliases)

    def get(self, key: str) -> Optional[Battlecard]:
        return self._cards.get(key)

    def keys(self) -> List[str]:
        return list(self._cards.keys())

    def triggers_for(self, card: Battlecard) -> Tuple[str, ...]:
        return tuple(card.triggers) + self._alias_triggers.get(card.key, ())

    def __iter__(self) -> Iterator[Battlecard]:
        return iter(self._cards.values())

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, key: object) -> bool:
        return key in self._cards


DEFAULT_LIBRARY = CardLibrary(BATTLECARDS)


def search_cards(query: str, library: CardLibrary = DEFAULT_LIBRARY, limit: int = 6) -> List[Battlecard]:
    """
    Operator "panic search" over titles and triggers.

    Title hits weigh 5, trigger hits 3. Ties keep library order.
    """
    q = normalize_for_match(query)
    if not q:
        return []

    scored = []
    for card in library:
        score = 0
        if q in normalize_for_match(card.title):
            score += 5
        if q in " ".join(normalize_for_match(t) for t in card.triggers):
            score += 3
        if score > 0:
            scored.append((score, card))

    scored.sort(key=lambda item: item[0], reverse=True)
    return [card for _, card in scored[:limit]]


# ── Dynamic cards ──

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_TOKEN_SPLIT_RE = re.compile(r"[\s,.;:!?/()]+")

DYNAMIC_FOLLOW_UP = "Co by pro vás bylo nejdůležitější ověřit, aby to dávalo smysl?"
DYNAMIC_TONE = "věcně, klidně, bez tlaku"
MAX_DYNAMIC_CARDS = 6


def _slug(value: str) -> str:
    return _SLUG_RE.sub("-", value.lower()).strip("-")[:48] or "dyn"


def _triggers_from_phrase(phrase: str) -> Tuple[str, ...]:
    base = (phrase or "").strip()
    if not base:
        return ()
    tokens = [t.strip() for t in _TOKEN_SPLIT_RE.split(base)]
    tokens = [t for t in tokens if len(t) >= 3][:8]
    # dict keeps first-seen order while dropping duplicates
    return tuple(dict.fromkeys([base, *tokens]))


def cards_from_sector_response(payload: dict) -> List[Battlecard]:
    """
    Map a generated sector battlecard payload into objection cards.

    Expected shape:
    {"detected_sector": str, "sector_emoji": str, "strategy_insight": str,
     "objections": [{"trigger": str, "rebuttal": str}, ...]}
    """
    payload = payload if isinstance(payload, dict) else {}
    sector = str(payload.get("detected_sector") or "Sektor").strip()
    emoji = str(payload.get("sector_emoji") or "💡").strip()
    insight = str(payload.get("strategy_insight") or "").strip()
    objections = payload.get("objections")
    if not isinstance(objections, list):
        objections = []

    out: List[Battlecard] = []
    for i, item in enumerate(objections):
        if not isinstance(item, dict):
            continue
        trigger = str(item.get("trigger") or "").strip()
        rebuttal = str(item.get("rebuttal") or "").strip()
        if not trigger or not rebuttal:
            continue
        out.append(Battlecard(
            key=f"dyn_{_slug(sector)}_{i + 1}",
            category="objection",
            title=f"{emoji} {sector}",
            when_to_use=f"Když zazní: „{trigger}“",
            triggers=_triggers_from_phrase(trigger),
            primary=rebuttal,
            follow_up=DYNAMIC_FOLLOW_UP,
            proof_hooks=(insight,) if insight else (),
            tone=DYNAMIC_TONE,
        ))
    return out[:MAX_DYNAMIC_CARDS]


def _str_tuple(value) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError("expected a list of strings")
    return tuple(str(v).strip() for v in value if str(v).strip())


def card_from_dict(data: dict) -> Battlecard:
    """Build a card from inbound JSON. Raises ValueError on invalid input."""
    if not isinstance(data, dict):
        raise ValueError("card must be an object")

    key = str(data.get("key") or "").strip()
    if not key:
        raise ValueError("card key is required")

    category = str(data.get("category") or "objection").strip()
    if category not in CATEGORIES:
        raise ValueError(f"unknown category '{category}' for card '{key}'")

    triggers = _str_tuple(data.get("triggers", data.get("triggerPhrases")))
    if not triggers:
        raise ValueError(f"card '{key}' has no triggers")

    primary = str(data.get("primary") or data.get("primaryResponse") or "").strip()
    if not primary:
        raise ValueError(f"card '{key}' has no primary response")

    tone = data.get("tone", data.get("toneHint"))
    return Battlecard(
        key=key,
        category=category,
        title=str(data.get("title") or key).strip(),
        when_to_use=str(data.get("when_to_use") or data.get("whenToUse") or "").strip(),
        triggers=triggers,
        primary=primary,
        alternates=_str_tuple(data.get("alternates", data.get("alternateResponses"))),
        follow_up=str(data.get("follow_up") or data.get("followUpPrompt") or "").strip(),
        proof_hooks=_str_tuple(data.get("proof_hooks", data.get("proofHooks"))),
        dont_say=_str_tuple(data.get("dont_say", data.get("dontSay"))),
        tone=str(tone).strip() if tone else None,
    )
