"""
Calculs monétaires purs (pas de DB, pas de Stripe).
- Tous les montants circulent en centimes (int); Decimal uniquement aux frontières.
- split_proportionally: répartition au centime près (méthode du plus fort reste).
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, List, Sequence

CENT = Decimal("0.01")
HUNDRED = Decimal(100)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value if value is not None else 0))
    except (InvalidOperation, ValueError):
        return Decimal(0)


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_cents(value: Any) -> int:
    """
    Convertit un montant décimal (str|float|int|Decimal) en centimes.
    - Arrondi half-up au centime; valeur illisible => 0.
    """
    return round_half_up(_to_decimal(value) * HUNDRED)


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / HUNDRED).quantize(CENT)


def format_cents(cents: int) -> str:
    return f"{from_cents(cents):.2f}"


def clamp_percent(percent: Any) -> Decimal:
    p = _to_decimal(percent)
    if p < 0:
        return Decimal(0)
    if p > HUNDRED:
        return HUNDRED
    return p


def percent_of(amount_cents: int, percent: Any) -> int:
    """Montant (centimes) représentant `percent`% de amount_cents, arrondi half-up."""
    if amount_cents <= 0:
        return 0
    return round_half_up(Decimal(amount_cents) * clamp_percent(percent) / HUNDRED)


def apply_percent_discount(amount_cents: int, percent: Any) -> int:
    """amount * (1 - percent/100), percent borné à [0, 100], résultat >= 0."""
    if amount_cents <= 0:
        return 0
    return max(0, round_half_up(Decimal(amount_cents) * (HUNDRED - clamp_percent(percent)) / HUNDRED))


def split_proportionally(total_cents: int, weights: Sequence[Any]) -> List[int]:
    """
    Répartit total_cents entre len(weights) seaux, proportionnellement aux poids.
    Garanties:
      - sum(result) == total_cents (total > 0), chaque seau >= 0
      - chaque seau est à moins d'un centime de sa part exacte
    Méthode du plus fort reste: partie entière d'abord, puis les centimes restants
    vont aux plus grands restes; à reste égal, le seau le plus tardif est servi
    en premier (le dernier seau absorbe l'arrondi).
    Cas limites:
      - total <= 0 => que des zéros
      - poids tous nuls => tout le total dans le dernier seau
      - poids négatifs traités comme nuls
    """
    n = len(weights)
    if n == 0:
        return []
    if total_cents <= 0:
        return [0] * n

    ws = [max(Decimal(0), _to_decimal(w)) for w in weights]
    weight_sum = sum(ws, Decimal(0))
    if weight_sum <= 0:
        return [0] * (n - 1) + [int(total_cents)]

    total = Decimal(int(total_cents))
    result: List[int] = []
    remainders = []
    for i, w in enumerate(ws):
        exact = total * w / weight_sum
        floor = int(exact)  # exact >= 0: int() tronque vers le bas
        result.append(floor)
        remainders.append((exact - floor, i))

    leftover = int(total_cents) - sum(result)
    # plus grand reste d'abord, puis index le plus grand
    for _, i in sorted(remainders, key=lambda r: (r[0], r[1]), reverse=True)[:leftover]:
        result[i] += 1
    return result
