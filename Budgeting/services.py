import logging
from decimal import Decimal

from Budgeting.calculations import (
    aggregate_spending, allocate_budget, average_daily_spending, budget_breakdown,
    daily_spending, goal_progress, is_goal_completed, net_cash_flow, parse_amount,
    percentage_total, share_of_income, summarize_goals, total_expenses,
    validate_budget_percentages,
)
from Budgeting.constants import (
    DEFAULT_BUDGET, AutomationFrequency, BudgetCategory, GoalCategory, InsightAuthor,
    PaySchedule,
)
from Budgeting.errors import AmbiguousPayDayError, BudgetingError, InvalidInputError
from Budgeting.formatting import format_currency, format_date_range, format_percentage
from Budgeting.pay_period import (
    compute_pay_period, days_remaining, local_today, next_pay_date, period_progress,
    shift_pay_period, to_date, validate_pay_day,
)
from Budgeting.storage import DuplicateRecordError, StorageError

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def _cents(value):
    return value.quantize(CENT)


def _text(data, field, label):
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"El campo {label} es obligatorio.")
    return value.strip()


def _flag(value, label):
    if not isinstance(value, bool):
        raise InvalidInputError(f"El campo {label} debe ser verdadero o falso.")
    return value


def _status_for(error):
    return 422 if isinstance(error, AmbiguousPayDayError) else 400


class FinanceService:
    """
    Servicio con la lógica de negocio del presupuesto personal.

    Recibe el almacenamiento por inyección. Las operaciones de escritura retornan
    una tupla ``(resultado, status_code)``: el registro si todo sale bien o un
    mensaje de error con el código HTTP que corresponde.
    """

    def __init__(self, storage, timezone='UTC', today=None):
        self.storage = storage
        self.timezone = timezone
        self._today = today

    def today(self):
        """Fecha de referencia: la fija (pruebas) o la de hoy en la zona configurada."""
        return self._today if self._today is not None else local_today(self.timezone)

    # --- Usuarios ---

    def _clean_user(self, data, current=None):
        """Valida el payload de usuario; con ``current`` la validación es parcial."""
        partial = current is not None
        clean = {}

        for field, label in (('first_name', 'nombre'), ('last_name', 'apellido')):
            if not partial or field in data:
                clean[field] = _text(data, field, label)

        if not partial or 'email' in data:
            email = _text(data, 'email', 'email').lower()
            if '@' not in email:
                raise InvalidInputError("El email no es válido.")
            clean['email'] = email

        if not partial or 'pay_schedule' in data:
            clean['pay_schedule'] = PaySchedule.parse(data.get('pay_schedule')).value
        schedule = clean.get('pay_schedule', current.pay_schedule if partial else None)

        if 'pay_day' in data:
            clean['pay_day'] = validate_pay_day(schedule, data.get('pay_day'))
        elif partial and 'pay_schedule' in clean:
            # El día vigente tiene que seguir siendo válido para el nuevo calendario
            validate_pay_day(schedule, current.pay_day)

        if 'last_pay_date' in data:
            value = data.get('last_pay_date')
            clean['last_pay_date'] = to_date(value) if value else None

        if not partial or 'after_tax_income' in data:
            clean['after_tax_income'] = parse_amount(
                data.get('after_tax_income'), allow_negative=False, field='ingreso neto')

        if 'is_onboarded' in data:
            clean['is_onboarded'] = _flag(data.get('is_onboarded'), 'is_onboarded')
        return clean

    def create_user(self, data):
        """Registra al usuario del onboarding (paso 1)."""
        try:
            clean = self._clean_user(data)
            user = self.storage.create_user(clean)
            logger.info("Usuario %s creado (%s)", user.id, user.pay_schedule)
            return user, 201
        except BudgetingError as e:
            return str(e), 400
        except DuplicateRecordError:
            return "Ya existe una cuenta con este email.", 409
        except StorageError as e:
            logger.error("ERROR al crear usuario: %s", e)
            return "Error de servidor.", 500

    def get_user(self, user_id):
        return self.storage.get_user(user_id)

    def update_user(self, user_id, data):
        user = self.storage.get_user(user_id)
        if not user:
            return "Usuario no encontrado.", 404
        try:
            clean = self._clean_user(data, current=user)
            return self.storage.update_user(user_id, clean), 200
        except BudgetingError as e:
            return str(e), 400
        except DuplicateRecordError:
            return "Ya existe una cuenta con este email.", 409
        except StorageError as e:
            logger.error("ERROR al actualizar usuario %s: %s", user_id, e)
            return "Error de servidor.", 500

    # --- Presupuestos ---

    def _clean_percentages(self, data, current=None):
        clean = {}
        for category in BudgetCategory:
            field = category.percent_field
            if field in data:
                value = parse_amount(data.get(field), allow_negative=False, field='porcentaje')
            elif current is not None:
                value = getattr(current, field)
            else:
                raise InvalidInputError(f"Falta el porcentaje de {category.label}.")
            clean[field] = value

        if not validate_budget_percentages(clean):
            total = percentage_total(clean)
            raise InvalidInputError(
                f"Los porcentajes deben sumar 100%. Total actual: {total.normalize():f}%."
            )
        return clean

    def get_budget_for_user(self, user_id):
        return self.storage.get_budget_by_user_id(user_id)

    def create_budget(self, data):
        user_id = data.get('user_id')
        if user_id is None or not self.storage.get_user(user_id):
            return "Usuario no encontrado.", 404
        try:
            clean = self._clean_percentages(data)
            clean['user_id'] = user_id
            budget = self.storage.create_budget(clean)
            logger.info("Presupuesto %s creado para el usuario %s", budget.id, user_id)
            return budget, 201
        except BudgetingError as e:
            return str(e), 400
        except StorageError as e:
            logger.error("ERROR al crear presupuesto: %s", e)
            return "Error de servidor.", 500

    def update_budget(self, budget_id, data):
        budget = self.storage.get_budget(budget_id)
        if not budget:
            return "Presupuesto no encontrado.", 404
        try:
            clean = self._clean_percentages(data, current=budget)
            return self.storage.update_budget(budget_id, clean), 200
        except BudgetingError as e:
            return str(e), 400
        except StorageError as e:
            logger.error("ERROR al actualizar presupuesto %s: %s", budget_id, e)
            return "Error de servidor.", 500

    def complete_onboarding(self, user_id, data):
        """Paso 2 del onboarding: guarda el presupuesto y marca al usuario como listo."""
        budget, status_code = self.create_budget(dict(data, user_id=user_id))
        if status_code != 201:
            return budget, status_code
        try:
            self.storage.update_user(user_id, {'is_onboarded': True})
        except StorageError as e:
            logger.error("ERROR al completar onboarding de %s: %s", user_id, e)
            return "Error de servidor.", 500
        return budget, 201

    # --- Transacciones ---

    def _period_for(self, user, day):
        return compute_pay_period(user.pay_schedule, day, user.pay_day, user.last_pay_date)

    def record_transaction(self, data):
        """
        Registra un gasto (monto negativo) o ingreso (monto positivo) y guarda
        los límites del período de pago en el que cae, según el calendario del usuario.
        """
        user_id = data.get('user_id')
        user = self.storage.get_user(user_id) if user_id is not None else None
        if not user:
            return "Usuario no encontrado.", 404
        try:
            day = to_date(data['date']) if data.get('date') else self.today()
            period = self._period_for(user, day)
            clean = {
                'user_id': user.id,
                'description': _text(data, 'description', 'descripción'),
                'amount': parse_amount(data.get('amount')),
                'category': BudgetCategory.parse(data.get('category')).value,
                'date': day,
                'pay_period_start': period.period_start,
                'pay_period_end': period.period_end,
            }
            return self.storage.create_transaction(clean), 201
        except BudgetingError as e:
            return str(e), _status_for(e)
        except StorageError as e:
            logger.error("ERROR al registrar transacción: %s", e)
            return "Error de servidor.", 500

    def list_transactions(self, user_id):
        return self.storage.get_transactions_by_user_id(user_id)

    def list_transactions_for_period(self, user_id, start, end):
        if not start or not end:
            return "Se requieren las fechas de inicio y fin del período.", 400
        try:
            start, end = to_date(start), to_date(end)
        except BudgetingError as e:
            return str(e), 400
        return self.storage.get_transactions_by_pay_period(user_id, start, end), 200

    def update_transaction(self, transaction_id, data):
        """Corrige una transacción; si cambia la fecha se recalcula su período."""
        transaction = self.storage.get_transaction(transaction_id)
        if not transaction:
            return "Transacción no encontrada.", 404
        try:
            clean = {}
            if 'description' in data:
                clean['description'] = _text(data, 'description', 'descripción')
            if 'amount' in data:
                clean['amount'] = parse_amount(data.get('amount'))
            if 'category' in data:
                clean['category'] = BudgetCategory.parse(data.get('category')).value
            if data.get('date'):
                day = to_date(data['date'])
                period = self._period_for(self.storage.get_user(transaction.user_id), day)
                clean.update(date=day, pay_period_start=period.period_start,
                             pay_period_end=period.period_end)
            return self.storage.update_transaction(transaction_id, clean), 200
        except BudgetingError as e:
            return str(e), _status_for(e)
        except StorageError as e:
            logger.error("ERROR al actualizar transacción %s: %s", transaction_id, e)
            return "Error de servidor.", 500

    def delete_transaction(self, transaction_id):
        try:
            if not self.storage.delete_transaction(transaction_id):
                return "Transacción no encontrada.", 404
        except StorageError as e:
            logger.error("ERROR al eliminar transacción %s: %s", transaction_id, e)
            return "Error de servidor.", 500
        logger.info("Transacción %s eliminada", transaction_id)
        return None, 204

    # --- Metas Financieras ---

    def create_goal(self, data):
        """Crea una meta de ahorro; el monto actual inicia en cero si no se indica."""
        user_id = data.get('user_id')
        if user_id is None or not self.storage.get_user(user_id):
            return "Usuario no encontrado.", 404
        try:
            target = parse_amount(data.get('target_amount'), allow_negative=False,
                                  field='monto objetivo')
            if target <= 0:
                return "El monto objetivo debe ser positivo.", 400
            clean = {
                'user_id': user_id,
                'name': _text(data, 'name', 'nombre'),
                'target_amount': target,
                'current_amount': parse_amount(data.get('current_amount', 0),
                                               allow_negative=False, field='monto actual'),
                'category': GoalCategory.parse(data.get('category', GoalCategory.OTHER.value)).value,
                'is_active': _flag(data.get('is_active', True), 'is_active'),
            }
            goal = self.storage.create_goal(clean)
            logger.info("Meta %s creada para el usuario %s", goal.id, user_id)
            return goal, 201
        except BudgetingError as e:
            return str(e), 400
        except StorageError as e:
            logger.error("ERROR al crear meta: %s", e)
            return "Error de servidor.", 500

    @staticmethod
    def goal_to_dict(goal):
        result = goal.to_dict()
        result['progress_percent'] = round(goal_progress(goal.current_amount, goal.target_amount), 2)
        result['is_completed'] = is_goal_completed(goal.current_amount, goal.target_amount)
        return result

    def list_goals(self, user_id, include_inactive=False):
        """Metas del usuario con el progreso calculado."""
        goals = self.storage.get_goals_by_user_id(user_id, include_inactive=include_inactive)
        return [self.goal_to_dict(goal) for goal in goals]

    def update_goal(self, goal_id, data):
        goal = self.storage.get_goal(goal_id)
        if not goal:
            return "Meta no encontrada.", 404
        try:
            clean = {}
            if 'name' in data:
                clean['name'] = _text(data, 'name', 'nombre')
            if 'target_amount' in data:
                clean['target_amount'] = parse_amount(data.get('target_amount'),
                                                      allow_negative=False, field='monto objetivo')
            if 'current_amount' in data:
                clean['current_amount'] = parse_amount(data.get('current_amount'),
                                                       allow_negative=False, field='monto actual')
            if 'category' in data:
                clean['category'] = GoalCategory.parse(data.get('category')).value
            if 'is_active' in data:
                clean['is_active'] = _flag(data.get('is_active'), 'is_active')
            return self.storage.update_goal(goal_id, clean), 200
        except BudgetingError as e:
            return str(e), 400
        except StorageError as e:
            logger.error("ERROR al actualizar meta %s: %s", goal_id, e)
            return "Error al actualizar la meta.", 500

    def contribute_to_goal(self, goal_id, amount):
        """Añade una contribución a una meta existente."""
        goal = self.storage.get_goal(goal_id)
        if not goal:
            return "Meta no encontrada.", 404
        try:
            contribution = parse_amount(amount, field='contribución')
            if contribution <= 0:
                return "La contribución debe ser positiva.", 400
            current = parse_amount(goal.current_amount or 0)
            return self.storage.update_goal(goal_id, {'current_amount': current + contribution}), 200
        except BudgetingError as e:
            return str(e), 400
        except StorageError as e:
            logger.error("ERROR al contribuir a meta %s: %s", goal_id, e)
            return "Error al actualizar la meta.", 500

    def deactivate_goal(self, goal_id):
        return self.update_goal(goal_id, {'is_active': False})

    def delete_goal(self, goal_id):
        try:
            if not self.storage.delete_goal(goal_id):
                return "Meta no encontrada.", 404
        except StorageError as e:
            logger.error("ERROR al eliminar meta %s: %s", goal_id, e)
            return "Error de servidor.", 500
        logger.info("Meta %s eliminada", goal_id)
        return None, 204

    def goal_summary(self, user_id):
        summary = summarize_goals(self.storage.get_goals_by_user_id(user_id))
        summary['total_target'] = _cents(summary['total_target'])
        summary['total_saved'] = _cents(summary['total_saved'])
        summary['overall_progress'] = round(summary['overall_progress'], 2)
        return summary

    # --- Automatizaciones ---

    def _clean_automation(self, data, partial=False):
        clean = {}
        if not partial or 'name' in data:
            clean['name'] = _text(data, 'name', 'nombre')
        if not partial or 'amount' in data:
            clean['amount'] = parse_amount(data.get('amount'), allow_negative=False)
        if not partial or 'category' in data:
            clean['category'] = BudgetCategory.parse(data.get('category')).value
        if not partial or 'frequency' in data:
            clean['frequency'] = AutomationFrequency.parse(data.get('frequency')).value
        if 'is_active' in data:
            clean['is_active'] = _flag(data.get('is_active'), 'is_active')
        return clean

    def create_automation(self, data):
        user_id = data.get('user_id')
        if user_id is None or not self.storage.get_user(user_id):
            return "Usuario no encontrado.", 404
        try:
            clean = self._clean_automation(data)
            clean['user_id'] = user_id
            return self.storage.create_automation(clean), 201
        except BudgetingError as e:
            return str(e), 400
        except StorageError as e:
            logger.error("ERROR al crear automatización: %s", e)
            return "Error de servidor.", 500

    def list_automations(self, user_id):
        return self.storage.get_automations_by_user_id(user_id)

    def update_automation(self, automation_id, data):
        if not self.storage.get_automation(automation_id):
            return "Automatización no encontrada.", 404
        try:
            clean = self._clean_automation(data, partial=True)
            return self.storage.update_automation(automation_id, clean), 200
        except BudgetingError as e:
            return str(e), 400
        except StorageError as e:
            logger.error("ERROR al actualizar automatización %s: %s", automation_id, e)
            return "Error de servidor.", 500

    def delete_automation(self, automation_id):
        try:
            if not self.storage.delete_automation(automation_id):
                return "Automatización no encontrada.", 404
        except StorageError as e:
            logger.error("ERROR al eliminar automatización %s: %s", automation_id, e)
            return "Error de servidor.", 500
        return None, 204

    # --- Consejos ---

    def list_insights(self, author=None):
        if author is None:
            return self.storage.get_active_insights(), 200
        try:
            author = InsightAuthor.parse(author)
        except BudgetingError as e:
            return str(e), 400
        return self.storage.get_insights_by_author(author.value), 200

    # --- Vistas calculadas ---

    def _pay_period(self, user, offset):
        period = self._period_for(user, self.today())
        if offset:
            period = shift_pay_period(user.pay_schedule, period, offset,
                                      user.pay_day, user.last_pay_date)
        return period

    def _period_payload(self, user, period):
        today = self.today()
        return {
            'pay_schedule': user.pay_schedule,
            'period_start': period.period_start.isoformat(),
            'period_end': period.period_end.isoformat(),
            'label': format_date_range(period.period_start, period.period_end),
            'days': period.days,
            'next_pay_date': next_pay_date(period).isoformat(),
            'days_remaining': days_remaining(period, today),
            'progress_percent': round(period_progress(period, today), 2),
            'is_current': period.contains(today),
        }

    def pay_period_view(self, user_id, offset=0):
        """Período actual (``offset`` 0), anteriores (negativo) o siguientes (positivo)."""
        user = self.storage.get_user(user_id)
        if not user:
            return "Usuario no encontrado.", 404
        try:
            period = self._pay_period(user, offset)
        except BudgetingError as e:
            return str(e), _status_for(e)
        return self._period_payload(user, period), 200

    def dashboard(self, user_id, offset=0):
        """
        Datos derivados del tablero: período, reparto del ingreso, gasto real por
        categoría, flujo de caja y resumen de metas. Si el usuario aún no tiene
        presupuesto se usa el recomendado.
        """
        user = self.storage.get_user(user_id)
        if not user:
            return "Usuario no encontrado.", 404
        try:
            period = self._pay_period(user, offset)
        except BudgetingError as e:
            return str(e), _status_for(e)

        budget = self.storage.get_budget_by_user_id(user_id)
        percentages = budget.percentages() if budget else DEFAULT_BUDGET
        income = parse_amount(user.after_tax_income)
        transactions = [t for t in self.storage.get_transactions_by_user_id(user_id)
                        if period.contains(t.date)]

        allocations = allocate_budget(income, percentages)
        spending = aggregate_spending(transactions)
        expenses = total_expenses(transactions)
        net = net_cash_flow(income, expenses)

        breakdown = []
        for row in budget_breakdown(income, percentages, transactions):
            for key in ('allocated', 'spent', 'remaining'):
                row[key] = _cents(row[key])
            row['percent_label'] = format_percentage(row['percent'])
            breakdown.append(row)

        return {
            'user': user.to_dict(),
            'using_default_budget': budget is None,
            'pay_period': self._period_payload(user, period),
            'income': _cents(income),
            'allocations': {k: _cents(v) for k, v in allocations.items()},
            'spending': {k: _cents(v) for k, v in spending.items()},
            'share_of_income': {
                k: round(share_of_income(v, income), 2) for k, v in spending.items()
            },
            'budget': breakdown,
            'cash_flow': {
                'total_income': _cents(income),
                'total_expenses': _cents(expenses),
                'net_cash_flow': _cents(net),
                'projected_balance': _cents(net),
                'average_daily_spending': _cents(average_daily_spending(expenses, period)),
                'daily_spending': [
                    {'date': day.isoformat(), 'amount': _cents(amount)}
                    for day, amount in daily_spending(transactions)
                ],
            },
            'formatted': {
                'income': format_currency(income),
                'total_expenses': format_currency(expenses),
                'net_cash_flow': format_currency(net),
                'period': format_date_range(period.period_start, period.period_end),
            },
            'goals': self.goal_summary(user_id),
            'recent_transactions': [t.to_dict() for t in transactions[:5]],
        }, 200
