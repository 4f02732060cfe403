"""
Cálculo de los períodos de pago.

Un período de pago es el rango de fechas (inclusivo) entre dos pagos de nómina y
es la ventana contable de todo el presupuesto. Hay dos modos:

* Anclado: el usuario dio su día de pago y la fecha de su último pago, y los
  límites se proyectan desde ese ancla.
* Calendario: sin ancla, se usan el mes calendario (mensual y quincenal) o
  períodos contados desde ``PAY_PERIOD_EPOCH`` (semanal y bisemanal).

Todas las funciones son puras; solo ``local_today`` consulta el reloj.
"""
import calendar
from collections import namedtuple
from datetime import MAXYEAR, MINYEAR, date, datetime, timedelta

import pytz

from Budgeting.constants import MAX_PERIOD_OFFSET, PAY_PERIOD_EPOCH, PaySchedule
from Budgeting.errors import AmbiguousPayDayError, InvalidInputError

ONE_DAY = timedelta(days=1)
OUT_OF_RANGE = "La fecha queda fuera del rango soportado (años 1 a 9999)."


class PayPeriod(namedtuple('PayPeriod', ['period_start', 'period_end'])):
    """Rango inclusivo ``period_start``..``period_end``."""
    __slots__ = ()

    @property
    def days(self):
        return (self.period_end - self.period_start).days + 1

    def contains(self, day):
        return self.period_start <= to_date(day) <= self.period_end

    def to_dict(self):
        return {
            'period_start': self.period_start.isoformat(),
            'period_end': self.period_end.isoformat(),
        }


def local_today(tz_name='UTC'):
    """Fecha actual en la zona horaria indicada."""
    return datetime.now(pytz.timezone(tz_name)).date()


def to_date(value):
    """Convierte ``date``, ``datetime`` o una cadena ISO 8601 a ``date``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            # Acepta '2025-01-03' y también '2025-01-03T00:00:00Z'
            return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
        except ValueError:
            raise InvalidInputError(f"Fecha inválida: '{value}'. Usa el formato AAAA-MM-DD.") from None
    raise InvalidInputError(f"Fecha inválida: {value!r}.")


def validate_pay_day(pay_schedule, pay_day):
    """
    Verifica el rango del día de pago según el tipo de calendario:
    día del mes (1-31) para mensual/quincenal o día de la semana (0-6) para
    semanal/bisemanal. Retorna el día como entero (o None).
    """
    if pay_day is None:
        return None
    schedule = PaySchedule.parse(pay_schedule)
    if isinstance(pay_day, bool):
        raise InvalidInputError("El día de pago debe ser un número entero.")
    try:
        pay_day = int(pay_day)
    except (TypeError, ValueError):
        raise InvalidInputError("El día de pago debe ser un número entero.") from None

    low, high = (0, 6) if schedule.uses_weekday else (1, 31)
    if not low <= pay_day <= high:
        raise InvalidInputError(
            f"El día de pago para '{schedule.value}' debe estar entre {low} y {high}."
        )
    return pay_day


def _pay_date(year, month, pay_day):
    """Fecha de pago del mes indicado; ``month`` puede salirse de 1..12."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    if not MINYEAR <= year <= MAXYEAR:
        raise InvalidInputError(OUT_OF_RANGE)
    if pay_day > calendar.monthrange(year, month)[1]:
        raise AmbiguousPayDayError(pay_day, year, month)
    return date(year, month, pay_day)


def _last_day_of_month(day):
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def _semi_monthly_period(day):
    # Corte fijo el día 15: [1, 15] y [16, fin de mes]
    if day.day <= 15:
        return PayPeriod(day.replace(day=1), day.replace(day=15))
    return PayPeriod(day.replace(day=16), _last_day_of_month(day))


def _rolling_period(day, anchor, length):
    periods_elapsed = (day - anchor).days // length
    try:
        start = anchor + timedelta(days=periods_elapsed * length)
        return PayPeriod(start, start + timedelta(days=length - 1))
    except OverflowError:
        raise InvalidInputError(OUT_OF_RANGE) from None


def _anchored_monthly_period(day, pay_day):
    current_pay_date = _pay_date(day.year, day.month, pay_day)
    # El día de pago cierra el período que termina en él
    if day <= current_pay_date:
        previous_pay_date = _pay_date(day.year, day.month - 1, pay_day)
        return PayPeriod(previous_pay_date + ONE_DAY, current_pay_date)
    next_pay_date_ = _pay_date(day.year, day.month + 1, pay_day)
    return PayPeriod(current_pay_date + ONE_DAY, next_pay_date_)


def compute_pay_period(pay_schedule, reference_date=None, pay_day=None, last_pay_date=None,
                       epoch=PAY_PERIOD_EPOCH):
    """
    Retorna el ``PayPeriod`` que contiene ``reference_date`` (hoy si no se indica).

    El modo anclado se usa solo cuando llegan ``pay_day`` y ``last_pay_date``;
    si falta alguno se usa el modo calendario.
    """
    schedule = PaySchedule.parse(pay_schedule)
    day = to_date(reference_date) if reference_date is not None else local_today()
    pay_day = validate_pay_day(schedule, pay_day)
    anchored = pay_day is not None and last_pay_date is not None

    if schedule is PaySchedule.MONTHLY:
        if anchored:
            return _anchored_monthly_period(day, pay_day)
        return PayPeriod(day.replace(day=1), _last_day_of_month(day))
    elif schedule is PaySchedule.SEMI_MONTHLY:
        return _semi_monthly_period(day)
    elif schedule in (PaySchedule.WEEKLY, PaySchedule.BI_WEEKLY):
        anchor = to_date(last_pay_date) if anchored else to_date(epoch)
        return _rolling_period(day, anchor, schedule.days_in_period)
    raise InvalidInputError(f"Calendario de pago no soportado: {schedule!r}")


def shift_pay_period(pay_schedule, period, offset, pay_day=None, last_pay_date=None,
                     epoch=PAY_PERIOD_EPOCH):
    """
    Avanza (``offset`` > 0) o retrocede (``offset`` < 0) ``offset`` períodos.
    ``abs(offset)`` no puede superar ``MAX_PERIOD_OFFSET``.
    """
    if isinstance(offset, bool) or not isinstance(offset, int):
        raise InvalidInputError("El desplazamiento de períodos debe ser un entero.")
    if abs(offset) > MAX_PERIOD_OFFSET:
        raise InvalidInputError(
            f"El desplazamiento debe estar entre -{MAX_PERIOD_OFFSET} y {MAX_PERIOD_OFFSET} períodos."
        )
    for _ in range(abs(offset)):
        try:
            if offset < 0:
                step_day = period.period_start - ONE_DAY
            else:
                step_day = period.period_end + ONE_DAY
        except OverflowError:
            raise InvalidInputError(OUT_OF_RANGE) from None
        period = compute_pay_period(pay_schedule, step_day, pay_day, last_pay_date, epoch)
    return period


def next_pay_date(period):
    """El siguiente pago cae el día posterior al fin del período."""
    return period.period_end + ONE_DAY


def days_remaining(period, today):
    return max((period.period_end - to_date(today)).days, 0)


def period_progress(period, today):
    """Porcentaje del período ya transcurrido, acotado a [0, 100]."""
    total_days = (period.period_end - period.period_start).days
    if total_days <= 0:
        return 100.0
    elapsed = (to_date(today) - period.period_start).days
    return min(max(elapsed / total_days * 100, 0.0), 100.0)
