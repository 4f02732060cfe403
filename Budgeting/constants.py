from datetime import date
from decimal import Decimal
from enum import Enum

from Budgeting.errors import InvalidInputError


class _Choice(Enum):
    """Enum cerrado cuyos valores son las cadenas que viajan por la API."""

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ', '.join(member.value for member in cls)
            raise InvalidInputError(f"Valor inválido '{value}'. Opciones: {allowed}.") from None

    @classmethod
    def values(cls):
        return [member.value for member in cls]


class PaySchedule(_Choice):
    WEEKLY = 'weekly'
    BI_WEEKLY = 'bi-weekly'
    MONTHLY = 'monthly'
    SEMI_MONTHLY = 'semi-monthly'

    @property
    def days_in_period(self):
        """Largo nominal del período; para los mensuales solo es referencia."""
        return _PERIOD_DAYS[self]

    @property
    def uses_weekday(self):
        return self in (PaySchedule.WEEKLY, PaySchedule.BI_WEEKLY)


_PERIOD_DAYS = {
    PaySchedule.WEEKLY: 7,
    PaySchedule.BI_WEEKLY: 14,
    PaySchedule.MONTHLY: 30,
    PaySchedule.SEMI_MONTHLY: 15,
}


class BudgetCategory(_Choice):
    FIXED_COSTS = 'fixed-costs'
    INVESTMENTS = 'investments'
    SAVINGS = 'savings'
    GUILT_FREE_SPENDING = 'guilt-free-spending'

    @property
    def field(self):
        # 'fixed-costs' -> 'fixed_costs'
        return self.value.replace('-', '_')

    @property
    def percent_field(self):
        return f'{self.field}_percent'

    @property
    def label(self):
        return _CATEGORY_LABELS[self]


_CATEGORY_LABELS = {
    BudgetCategory.FIXED_COSTS: 'Fixed Costs',
    BudgetCategory.INVESTMENTS: 'Investments',
    BudgetCategory.SAVINGS: 'Savings',
    BudgetCategory.GUILT_FREE_SPENDING: 'Guilt-Free Spending',
}


class GoalCategory(_Choice):
    EMERGENCY = 'emergency'
    VACATION = 'vacation'
    HOUSE = 'house'
    OTHER = 'other'


class AutomationFrequency(_Choice):
    WEEKLY = 'weekly'
    BI_WEEKLY = 'bi-weekly'
    MONTHLY = 'monthly'


class InsightAuthor(_Choice):
    MORGAN_HOUSEL = 'morgan-housel'
    RAMIT_SETHI = 'ramit-sethi'


# Inicio del "período 0" para semanal/quincenal cuando no hay fecha de último pago
PAY_PERIOD_EPOCH = date(2024, 1, 1)

# Máximo de períodos que se puede avanzar o retroceder desde el actual (unos 10 años semanales)
MAX_PERIOD_OFFSET = 520

# Tolerancia al validar que los porcentajes sumen 100
PERCENT_TOLERANCE = Decimal('0.01')

# Presupuesto recomendado mientras el usuario no configura el suyo
DEFAULT_BUDGET = {
    BudgetCategory.FIXED_COSTS: Decimal('50'),
    BudgetCategory.INVESTMENTS: Decimal('10'),
    BudgetCategory.SAVINGS: Decimal('5'),
    BudgetCategory.GUILT_FREE_SPENDING: Decimal('35'),
}

# Rangos (mínimo, máximo) recomendados por categoría, en porcentaje del ingreso
RECOMMENDED_RANGES = {
    BudgetCategory.FIXED_COSTS: (Decimal('50'), Decimal('60')),
    BudgetCategory.INVESTMENTS: (Decimal('10'), Decimal('20')),
    BudgetCategory.SAVINGS: (Decimal('5'), Decimal('10')),
    BudgetCategory.GUILT_FREE_SPENDING: (Decimal('20'), Decimal('35')),
}

DEFAULT_INSIGHTS = [
    {
        'title': 'The Psychology of Money',
        'content': (
            'The hardest financial skill is getting the goalpost to stop moving. '
            'Your automated investments are building wealth without requiring daily decisions.'
        ),
        'author': InsightAuthor.MORGAN_HOUSEL.value,
        'category': 'psychology',
    },
    {
        'title': 'Automation First',
        'content': (
            "Don't rely on willpower to save money. "
            'Set up automatic transfers and let your system work for you.'
        ),
        'author': InsightAuthor.RAMIT_SETHI.value,
        'category': 'automation',
    },
    {
        'title': 'Rich Life Framework',
        'content': (
            'Money is a tool to live your Rich Life. Spend extravagantly on the things you love, '
            "and cut costs mercilessly on the things you don't."
        ),
        'author': InsightAuthor.RAMIT_SETHI.value,
        'category': 'mindset',
    },
]
