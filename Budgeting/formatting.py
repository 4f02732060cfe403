"""Textos para mostrar montos, porcentajes y rangos de fechas (estilo en-US)."""
from decimal import ROUND_HALF_UP

from Budgeting.calculations import parse_amount
from Budgeting.pay_period import to_date

MONTH_ABBR = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
              'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')


def format_currency(amount, symbol='$'):
    """
    Monto en dólares enteros: ``1234.5`` -> ``'$1,235'``, ``'-50'`` -> ``'-$50'``.
    Acepta números o cadenas decimales.
    """
    # to_integral_value y copy_abs son exactos: no dependen de la precisión del contexto
    value = parse_amount(amount).to_integral_value(rounding=ROUND_HALF_UP)
    sign = '-' if value < 0 else ''
    return f"{sign}{symbol}{value.copy_abs():,}"


def format_percentage(value):
    rounded = parse_amount(value, field='porcentaje').to_integral_value(rounding=ROUND_HALF_UP)
    # Evita '-0%'
    return f"{rounded if rounded != 0 else 0}%"


def format_short_date(day, with_year=False):
    day = to_date(day)
    text = f"{MONTH_ABBR[day.month - 1]} {day.day}"
    if with_year:
        text += f", {day.year}"
    return text


def format_date_range(start, end):
    """``'Jan 1 - Jan 14'``; con el año en ambos extremos si los años difieren."""
    start, end = to_date(start), to_date(end)
    with_year = start.year != end.year
    return f"{format_short_date(start, with_year)} - {format_short_date(end, with_year)}"
