"""
Cheap lexical checks run before paying for an inference call.

These are guards, not classifiers: when in doubt they let the text through and
leave the final decision to the model.
"""

import re
from dataclasses import dataclass

MIN_DESCRIPTION_LENGTH = 3
MAX_CONSONANT_RUN = 4

USAGE_EXAMPLE = 'Example: "2 scrambled eggs with toast and a glass of orange juice"'

_WORD_RE = re.compile(r"[^\W\d_]+")
_LATIN_WORD_RE = re.compile(r"[a-zà-ÿ\u0100-\u017f]+")
_VOWELS = set("aeiouyáéíóúü")

FOOD_TOKENS = {
    # English
    "apple", "avocado", "bacon", "bagel", "banana", "bar", "bean", "beef",
    "beer", "berry", "bread", "breakfast", "broccoli", "brownie", "burger",
    "burrito", "butter", "cake", "candy", "carrot", "cereal", "cheese",
    "chicken", "chip", "chocolate", "coffee", "cookie", "corn", "cracker",
    "cream", "croissant", "curry", "dinner", "donut", "drink", "egg",
    "fish", "fries", "fruit", "granola", "grape", "ham", "hummus", "juice",
    "lentil", "lettuce", "lunch", "meal", "meat", "milk", "muffin",
    "noodle", "nut", "oat", "oatmeal", "oil", "omelette", "onion", "orange",
    "pancake", "pasta", "peanut", "pear", "pepper", "pie", "pizza", "pork",
    "porridge", "potato", "protein", "quinoa", "ramen", "rice", "salad",
    "salmon", "sandwich", "sauce", "sausage", "shake", "shrimp", "smoothie",
    "snack", "soda", "soup", "spinach", "steak", "stew", "sushi", "taco",
    "tea", "toast", "tofu", "tomato", "tortilla", "tuna", "turkey",
    "vegetable", "waffle", "wine", "wrap", "yogurt",
    # Spanish
    "aceite", "aguacate", "almuerzo", "arepa", "arroz", "atun", "atún",
    "avena", "azucar", "azúcar", "batido", "bocadillo", "cafe", "café",
    "carne", "cena", "cerdo", "cerveza", "chocolate", "comida", "desayuno",
    "empanada", "ensalada", "fruta", "galleta", "galletas", "hamburguesa",
    "helado", "huevo", "jamon", "jamón", "jugo", "leche", "lechuga",
    "legumbre", "lentejas", "manzana", "mantequilla", "merienda", "naranja",
    "pan", "papa", "papas", "pasta", "patata", "pescado", "pizza", "platano",
    "plátano", "pollo", "postre", "queso", "salchicha", "sopa", "taco",
    "tomate", "tortilla", "tostada", "verdura", "verduras", "vino", "yogur",
    "zumo",
}

NON_FOOD_TOKENS = {
    "asdf", "hello", "hey", "hi", "hola", "lol", "nada", "no", "nothing",
    "ok", "okay", "qwerty", "si", "sí", "test", "testing", "thanks", "yes",
}

NON_FOOD_NAMES = {
    "background", "bowl", "cup", "cutlery", "fork", "glass", "hand", "knife",
    "mesa", "napkin", "person", "persona", "plate", "plato", "servilleta",
    "spoon", "table", "tenedor", "tray", "unknown", "vaso",
}


@dataclass(frozen=True)
class HeuristicResult:
    ok: bool
    reason: str = ""


def _singular(word: str) -> str:
    if word.endswith("es") and len(word) > 4:
        return word[:-2]
    if word.endswith("s") and len(word) > 3:
        return word[:-1]
    return word


def _is_food_token(word: str) -> bool:
    candidates = {word, _singular(word), word.rstrip("s")}
    return not candidates.isdisjoint(FOOD_TOKENS)


def _is_latin(word: str) -> bool:
    return _LATIN_WORD_RE.fullmatch(word) is not None


def _looks_like_gibberish(word: str) -> bool:
    """Keyboard mashing: no vowels, long consonant runs, or one repeated letter."""
    if len(word) < 3:
        return False

    vowels = sum(1 for ch in word if ch in _VOWELS)
    if vowels == 0:
        return True
    if len(word) >= 6 and vowels / len(word) < 0.2:
        return True

    run = 0
    for ch in word:
        run = 0 if ch in _VOWELS else run + 1
        if run > MAX_CONSONANT_RUN:
            return True

    return len(set(word)) == 1


def is_likely_meal(description: str) -> HeuristicResult:
    """
    Decide whether free text plausibly describes something eaten.

    Returns:
        HeuristicResult with ok=False and a human-readable reason on rejection
    """
    text = (description or "").strip().lower()

    if not text:
        return HeuristicResult(False, "The description is empty")
    words = _WORD_RE.findall(text)
    # Two CJK characters can already name a dish
    if len(text) < MIN_DESCRIPTION_LENGTH and all(_is_latin(w) for w in words):
        return HeuristicResult(False, "The description is too short")

    if not words:
        return HeuristicResult(False, "The description contains no words")

    if any(_is_food_token(w) for w in words):
        return HeuristicResult(True)

    if all(w in NON_FOOD_TOKENS for w in words):
        return HeuristicResult(False, "The description does not mention any food")

    # Vowel and consonant-run checks only mean something for Latin script
    if all(_is_latin(w) and _looks_like_gibberish(w) for w in words):
        return HeuristicResult(False, "The description looks like random characters")

    # Unknown but word-like text goes to the model
    return HeuristicResult(True)


def is_clearly_non_food_name(name: str) -> bool:
    """True for inference items that name tableware, people or placeholders."""
    normalized = (name or "").strip().lower()
    if not normalized:
        return True
    candidates = {normalized, _singular(normalized), normalized.rstrip("s")}
    return not candidates.isdisjoint(NON_FOOD_NAMES)
