class BudgetingError(ValueError):
    """Error base para entradas que los cálculos de presupuesto no pueden aceptar."""


class InvalidInputError(BudgetingError):
    """Monto mal formado, no finito, negativo donde no se permite o valor fuera del catálogo."""


class AmbiguousPayDayError(BudgetingError):
    """El día de pago no existe en el mes que hace falta (ej. día 31 en febrero)."""

    def __init__(self, pay_day, year, month):
        self.pay_day = pay_day
        self.year = year
        self.month = month
        super().__init__(
            f"El día de pago {pay_day} no existe en {year}-{month:02d}. "
            "Actualiza el día de pago o la fecha del último pago."
        )
