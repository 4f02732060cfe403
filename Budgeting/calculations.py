"""
Aritmética del presupuesto: reparto del ingreso por categoría, gasto por
categoría, progreso de metas y métricas de flujo de caja del período.

Los montos se manejan como ``Decimal`` para no acumular error de punto flotante;
el redondeo queda para el formateo.
"""
from collections import OrderedDict
from decimal import Decimal, InvalidOperation

from Budgeting.constants import (
    PERCENT_TOLERANCE, RECOMMENDED_RANGES, BudgetCategory,
)
from Budgeting.errors import InvalidInputError
from Budgeting.pay_period import to_date

ZERO = Decimal('0')
HUNDRED = Decimal('100')


def parse_amount(value, allow_negative=True, field='monto'):
    """
    Convierte un monto (número o cadena decimal) a ``Decimal``.
    Rechaza cadenas mal formadas, NaN e infinitos.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"El {field} es obligatorio y debe ser numérico.")
    try:
        # str() evita arrastrar la representación binaria de los float
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInputError(f"Formato de {field} inválido: '{value}'.") from None
    if not amount.is_finite():
        raise InvalidInputError(f"El {field} debe ser un número finito.")
    if not allow_negative and amount < 0:
        raise InvalidInputError(f"El {field} no puede ser negativo.")
    return amount


def _field(record, name):
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def _empty_totals():
    return OrderedDict((category.field, ZERO) for category in BudgetCategory)


def _normalize_percentages(percentages):
    """
    Acepta claves ``BudgetCategory``, 'fixed-costs', 'fixed_costs' o
    'fixed_costs_percent' y retorna un dict indexado por ``BudgetCategory``.
    """
    normalized = {}
    for key, value in percentages.items():
        if isinstance(key, BudgetCategory):
            category = key
        else:
            name = str(key)
            if name.endswith('_percent'):
                name = name[:-len('_percent')]
            category = BudgetCategory.parse(name.replace('_', '-'))
        normalized[category] = parse_amount(value, allow_negative=False, field='porcentaje')

    missing = [c.value for c in BudgetCategory if c not in normalized]
    if missing:
        raise InvalidInputError(f"Faltan porcentajes para: {', '.join(missing)}.")
    return normalized


def percentage_total(percentages):
    return sum(_normalize_percentages(percentages).values(), ZERO)


def validate_budget_percentages(percentages):
    """True si los cuatro porcentajes suman 100 con tolerancia de 0.01."""
    normalized = _normalize_percentages(percentages)
    if any(value > HUNDRED for value in normalized.values()):
        return False
    return abs(sum(normalized.values(), ZERO) - HUNDRED) < PERCENT_TOLERANCE


def allocate_budget(income, percentages):
    """
    Reparte el ingreso del período en las cuatro categorías:
    ``income * porcentaje / 100`` sin redondear. No valida que la suma sea 100.
    """
    income = parse_amount(income, allow_negative=False, field='ingreso')
    normalized = _normalize_percentages(percentages)
    allocations = _empty_totals()
    for category in BudgetCategory:
        allocations[category.field] = income * normalized[category] / HUNDRED
    return allocations


def _in_period(record, period):
    if period is None:
        return True
    return period.contains(to_date(_field(record, 'date')))


def aggregate_spending(transactions, period=None):
    """
    Suma ``abs(amount)`` de los gastos (monto negativo) por categoría.
    Los ingresos y las categorías desconocidas no cuentan.
    """
    totals = _empty_totals()
    for transaction in transactions:
        if not _in_period(transaction, period):
            continue
        amount = parse_amount(_field(transaction, 'amount'))
        if amount >= 0:
            continue
        try:
            category = BudgetCategory.parse(_field(transaction, 'category'))
        except InvalidInputError:
            continue
        totals[category.field] += abs(amount)
    return totals


def total_expenses(transactions, period=None):
    return sum(
        (abs(amount) for amount in _amounts(transactions, period) if amount < 0), ZERO
    )


def total_income(transactions, period=None):
    return sum((amount for amount in _amounts(transactions, period) if amount > 0), ZERO)


def _amounts(transactions, period):
    for transaction in transactions:
        if _in_period(transaction, period):
            yield parse_amount(_field(transaction, 'amount'))


def net_cash_flow(income, expenses):
    return parse_amount(income) - parse_amount(expenses)


def average_daily_spending(expenses, period):
    return parse_amount(expenses) / Decimal(period.days)


def daily_spending(transactions, period=None):
    """Lista ordenada de ``(fecha, gasto)`` con los gastos agrupados por día."""
    by_day = {}
    for transaction in transactions:
        if not _in_period(transaction, period):
            continue
        amount = parse_amount(_field(transaction, 'amount'))
        if amount < 0:
            day = to_date(_field(transaction, 'date'))
            by_day[day] = by_day.get(day, ZERO) + abs(amount)
    return sorted(by_day.items())


def share_of_income(amount, income):
    """Porcentaje que representa ``amount`` del ingreso; 0 si no hay ingreso."""
    income = parse_amount(income)
    if income == 0:
        return 0.0
    return float(parse_amount(amount) / income * HUNDRED)


def is_in_recommended_range(category, percent):
    low, high = RECOMMENDED_RANGES[BudgetCategory.parse(category)]
    return low <= parse_amount(percent) <= high


def budget_breakdown(income, percentages, transactions, period=None):
    """Asignado vs. gastado por categoría, como lo muestra la página de presupuesto."""
    normalized = _normalize_percentages(percentages)
    allocations = allocate_budget(income, normalized)
    spending = aggregate_spending(transactions, period)

    breakdown = []
    for category in BudgetCategory:
        allocated = allocations[category.field]
        spent = spending[category.field]
        remaining = allocated - spent
        progress = float(spent / allocated * HUNDRED) if allocated > 0 else 0.0
        breakdown.append({
            'category': category.value,
            'label': category.label,
            'percent': normalized[category],
            'allocated': allocated,
            'spent': spent,
            'remaining': remaining,
            'progress_percent': round(progress, 2),
            'over_budget': remaining < 0,
            'in_recommended_range': is_in_recommended_range(category, normalized[category]),
        })
    return breakdown


def goal_progress(current, target):
    """
    Porcentaje de avance de una meta, acotado a [0, 100].
    Una meta con objetivo 0 tiene progreso 0.
    """
    current = parse_amount(current, field='monto actual')
    target = parse_amount(target, allow_negative=False, field='monto objetivo')
    if target == 0:
        return 0.0
    progress = float(current / target * HUNDRED)
    return min(max(progress, 0.0), 100.0)


def is_goal_completed(current, target):
    return goal_progress(current, target) >= 100


def summarize_goals(goals):
    """Totales de las metas activas y cantidad de metas completadas."""
    active = [goal for goal in goals if _field(goal, 'is_active') in (True, None)]
    total_target = sum(
        (parse_amount(_field(g, 'target_amount')) for g in active), ZERO
    )
    total_saved = sum(
        (parse_amount(_field(g, 'current_amount') or 0) for g in active), ZERO
    )
    completed = [
        g for g in active
        if is_goal_completed(_field(g, 'current_amount') or 0, _field(g, 'target_amount'))
    ]
    return {
        'active_goals': len(active),
        'completed_goals': len(completed),
        'total_target': total_target,
        'total_saved': total_saved,
        'overall_progress': goal_progress(total_saved, total_target),
    }
