"""
Persistencia detrás de una interfaz única.

``FinanceService`` solo conoce ``Storage``; la aplicación usa
``SQLAlchemyStorage`` y las pruebas pueden usar ``MemoryStorage``.
Las actualizaciones son parciales y gana la última escritura.
"""
import itertools
from abc import ABC, abstractmethod

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from Budgeting.constants import DEFAULT_INSIGHTS
from Budgeting.models import (
    db, utc_now, User, Budget, Transaction, Goal, Automation, Insight,
)


class StorageError(RuntimeError):
    """Falló una escritura en el almacenamiento."""


class DuplicateRecordError(StorageError):
    """Se violó una restricción de unicidad (ej. email repetido)."""


class Storage(ABC):
    # --- Usuarios ---
    @abstractmethod
    def get_user(self, user_id): ...

    @abstractmethod
    def get_user_by_email(self, email): ...

    @abstractmethod
    def create_user(self, data): ...

    @abstractmethod
    def update_user(self, user_id, data): ...

    # --- Presupuestos ---
    @abstractmethod
    def get_budget(self, budget_id): ...

    @abstractmethod
    def get_budget_by_user_id(self, user_id): ...

    @abstractmethod
    def create_budget(self, data): ...

    @abstractmethod
    def update_budget(self, budget_id, data): ...

    # --- Transacciones ---
    @abstractmethod
    def get_transaction(self, transaction_id): ...

    @abstractmethod
    def get_transactions_by_user_id(self, user_id): ...

    @abstractmethod
    def get_transactions_by_pay_period(self, user_id, period_start, period_end): ...

    @abstractmethod
    def create_transaction(self, data): ...

    @abstractmethod
    def update_transaction(self, transaction_id, data): ...

    @abstractmethod
    def delete_transaction(self, transaction_id): ...

    # --- Metas ---
    @abstractmethod
    def get_goal(self, goal_id): ...

    @abstractmethod
    def get_goals_by_user_id(self, user_id, include_inactive=False): ...

    @abstractmethod
    def create_goal(self, data): ...

    @abstractmethod
    def update_goal(self, goal_id, data): ...

    @abstractmethod
    def delete_goal(self, goal_id): ...

    # --- Automatizaciones ---
    @abstractmethod
    def get_automation(self, automation_id): ...

    @abstractmethod
    def get_automations_by_user_id(self, user_id): ...

    @abstractmethod
    def create_automation(self, data): ...

    @abstractmethod
    def update_automation(self, automation_id, data): ...

    @abstractmethod
    def delete_automation(self, automation_id): ...

    # --- Consejos ---
    @abstractmethod
    def get_active_insights(self): ...

    @abstractmethod
    def get_insights_by_author(self, author): ...

    @abstractmethod
    def create_insight(self, data): ...


class SQLAlchemyStorage(Storage):
    """Implementación sobre los modelos de Flask-SQLAlchemy."""

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def _commit(self):
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateRecordError(str(e.orig)) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageError(str(e)) from e

    def _create(self, model, data):
        record = model(**data)
        self.session.add(record)
        self._commit()
        return record

    def _update(self, model, record_id, data):
        record = self.session.get(model, record_id)
        if record is None:
            return None
        for key, value in data.items():
            setattr(record, key, value)
        self._commit()
        return record

    def _delete(self, model, record_id):
        record = self.session.get(model, record_id)
        if record is None:
            return False
        self.session.delete(record)
        self._commit()
        return True

    def get_user(self, user_id):
        return self.session.get(User, user_id)

    def get_user_by_email(self, email):
        return User.query.filter_by(email=email).first()

    def create_user(self, data):
        return self._create(User, data)

    def update_user(self, user_id, data):
        return self._update(User, user_id, data)

    def get_budget(self, budget_id):
        return self.session.get(Budget, budget_id)

    def get_budget_by_user_id(self, user_id):
        return Budget.query.filter_by(user_id=user_id).order_by(Budget.id.desc()).first()

    def create_budget(self, data):
        return self._create(Budget, data)

    def update_budget(self, budget_id, data):
        return self._update(Budget, budget_id, data)

    def get_transaction(self, transaction_id):
        return self.session.get(Transaction, transaction_id)

    def get_transactions_by_user_id(self, user_id):
        return (Transaction.query.filter_by(user_id=user_id)
                .order_by(Transaction.date.desc(), Transaction.id.desc()).all())

    def get_transactions_by_pay_period(self, user_id, period_start, period_end):
        return (Transaction.query
                .filter_by(user_id=user_id, pay_period_start=period_start, pay_period_end=period_end)
                .order_by(Transaction.date.desc(), Transaction.id.desc()).all())

    def create_transaction(self, data):
        return self._create(Transaction, data)

    def update_transaction(self, transaction_id, data):
        return self._update(Transaction, transaction_id, data)

    def delete_transaction(self, transaction_id):
        return self._delete(Transaction, transaction_id)

    def get_goal(self, goal_id):
        return self.session.get(Goal, goal_id)

    def get_goals_by_user_id(self, user_id, include_inactive=False):
        query = Goal.query.filter_by(user_id=user_id)
        if not include_inactive:
            query = query.filter_by(is_active=True)
        return query.order_by(Goal.created_at.desc(), Goal.id.desc()).all()

    def create_goal(self, data):
        return self._create(Goal, data)

    def update_goal(self, goal_id, data):
        return self._update(Goal, goal_id, data)

    def delete_goal(self, goal_id):
        return self._delete(Goal, goal_id)

    def get_automation(self, automation_id):
        return self.session.get(Automation, automation_id)

    def get_automations_by_user_id(self, user_id):
        return Automation.query.filter_by(user_id=user_id).order_by(Automation.id).all()

    def create_automation(self, data):
        return self._create(Automation, data)

    def update_automation(self, automation_id, data):
        return self._update(Automation, automation_id, data)

    def delete_automation(self, automation_id):
        return self._delete(Automation, automation_id)

    def get_active_insights(self):
        return Insight.query.filter_by(is_active=True).order_by(Insight.id).all()

    def get_insights_by_author(self, author):
        return Insight.query.filter_by(author=author, is_active=True).order_by(Insight.id).all()

    def create_insight(self, data):
        return self._create(Insight, data)


class MemoryStorage(Storage):
    """
    Implementación en memoria. Cada instancia tiene sus propias tablas y
    contadores; los registros son instancias transitorias de los modelos.
    """

    _defaults = {
        User: {'is_onboarded': False},
        Goal: {'current_amount': 0, 'is_active': True},
        Automation: {'is_active': True},
        Insight: {'is_active': True},
    }

    def __init__(self):
        self._tables = {}
        self._counters = {}

    def _table(self, model):
        return self._tables.setdefault(model, {})

    def _create(self, model, data):
        if model is User and self.get_user_by_email(data.get('email')) is not None:
            raise DuplicateRecordError(f"email duplicado: {data.get('email')}")
        counter = self._counters.setdefault(model, itertools.count(1))
        values = dict(self._defaults.get(model, {}))
        values.update(data)
        record = model(**values)
        record.id = next(counter)
        if hasattr(model, 'created_at'):
            record.created_at = utc_now()
        self._table(model)[record.id] = record
        return record

    def _update(self, model, record_id, data):
        record = self._table(model).get(record_id)
        if record is None:
            return None
        for key, value in data.items():
            setattr(record, key, value)
        return record

    def _delete(self, model, record_id):
        return self._table(model).pop(record_id, None) is not None

    def _filter(self, model, **criteria):
        return [r for r in self._table(model).values()
                if all(getattr(r, k) == v for k, v in criteria.items())]

    def get_user(self, user_id):
        return self._table(User).get(user_id)

    def get_user_by_email(self, email):
        found = self._filter(User, email=email)
        return found[0] if found else None

    def create_user(self, data):
        return self._create(User, data)

    def update_user(self, user_id, data):
        return self._update(User, user_id, data)

    def get_budget(self, budget_id):
        return self._table(Budget).get(budget_id)

    def get_budget_by_user_id(self, user_id):
        found = self._filter(Budget, user_id=user_id)
        return max(found, key=lambda b: b.id) if found else None

    def create_budget(self, data):
        return self._create(Budget, data)

    def update_budget(self, budget_id, data):
        return self._update(Budget, budget_id, data)

    def get_transaction(self, transaction_id):
        return self._table(Transaction).get(transaction_id)

    def get_transactions_by_user_id(self, user_id):
        return sorted(self._filter(Transaction, user_id=user_id),
                      key=lambda t: (t.date, t.id), reverse=True)

    def get_transactions_by_pay_period(self, user_id, period_start, period_end):
        found = self._filter(Transaction, user_id=user_id,
                             pay_period_start=period_start, pay_period_end=period_end)
        return sorted(found, key=lambda t: (t.date, t.id), reverse=True)

    def create_transaction(self, data):
        return self._create(Transaction, data)

    def update_transaction(self, transaction_id, data):
        return self._update(Transaction, transaction_id, data)

    def delete_transaction(self, transaction_id):
        return self._delete(Transaction, transaction_id)

    def get_goal(self, goal_id):
        return self._table(Goal).get(goal_id)

    def get_goals_by_user_id(self, user_id, include_inactive=False):
        found = self._filter(Goal, user_id=user_id)
        if not include_inactive:
            found = [g for g in found if g.is_active]
        return sorted(found, key=lambda g: (g.created_at, g.id), reverse=True)

    def create_goal(self, data):
        return self._create(Goal, data)

    def update_goal(self, goal_id, data):
        return self._update(Goal, goal_id, data)

    def delete_goal(self, goal_id):
        return self._delete(Goal, goal_id)

    def get_automation(self, automation_id):
        return self._table(Automation).get(automation_id)

    def get_automations_by_user_id(self, user_id):
        return sorted(self._filter(Automation, user_id=user_id), key=lambda a: a.id)

    def create_automation(self, data):
        return self._create(Automation, data)

    def update_automation(self, automation_id, data):
        return self._update(Automation, automation_id, data)

    def delete_automation(self, automation_id):
        return self._delete(Automation, automation_id)

    def get_active_insights(self):
        return sorted(self._filter(Insight, is_active=True), key=lambda i: i.id)

    def get_insights_by_author(self, author):
        return sorted(self._filter(Insight, author=author, is_active=True), key=lambda i: i.id)

    def create_insight(self, data):
        return self._create(Insight, data)


def seed_insights(storage):
    """Carga los consejos por defecto solo si todavía no hay ninguno."""
    if storage.get_active_insights():
        return 0
    for insight in DEFAULT_INSIGHTS:
        storage.create_insight(dict(insight, is_active=True))
    return len(DEFAULT_INSIGHTS)
