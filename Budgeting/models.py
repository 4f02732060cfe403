from flask_sqlalchemy import SQLAlchemy
from datetime import datetime
import pytz

# Inicializa SQLAlchemy. Se inicializará con la app en Main.py
db = SQLAlchemy()


def utc_now():
    return datetime.now(pytz.utc)


def _decimal(value):
    return str(value) if value is not None else None


def _iso(value):
    return value.isoformat() if value is not None else None


class User(db.Model):
    """Usuario con su configuración de pago (calendario, día y último pago)."""
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    pay_schedule = db.Column(db.String(20), nullable=False) # 'weekly', 'bi-weekly', 'monthly', 'semi-monthly'
    pay_day = db.Column(db.Integer, nullable=True) # Día del mes (1-31) o de la semana (0-6)
    last_pay_date = db.Column(db.Date, nullable=True) # Ancla para calcular períodos exactos
    after_tax_income = db.Column(db.Numeric(10, 2), nullable=False) # Ingreso neto por período
    is_onboarded = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'pay_schedule': self.pay_schedule,
            'pay_day': self.pay_day,
            'last_pay_date': _iso(self.last_pay_date),
            'after_tax_income': _decimal(self.after_tax_income),
            'is_onboarded': bool(self.is_onboarded),
            'created_at': _iso(self.created_at),
        }


class Budget(db.Model):
    """Porcentajes del ingreso asignados a cada categoría (deben sumar 100)."""
    __tablename__ = 'budgets'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    fixed_costs_percent = db.Column(db.Numeric(5, 2), nullable=False)
    investments_percent = db.Column(db.Numeric(5, 2), nullable=False)
    savings_percent = db.Column(db.Numeric(5, 2), nullable=False)
    guilt_free_spending_percent = db.Column(db.Numeric(5, 2), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    def percentages(self):
        return {
            'fixed_costs': self.fixed_costs_percent,
            'investments': self.investments_percent,
            'savings': self.savings_percent,
            'guilt_free_spending': self.guilt_free_spending_percent,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'fixed_costs_percent': _decimal(self.fixed_costs_percent),
            'investments_percent': _decimal(self.investments_percent),
            'savings_percent': _decimal(self.savings_percent),
            'guilt_free_spending_percent': _decimal(self.guilt_free_spending_percent),
            'created_at': _iso(self.created_at),
        }


class Transaction(db.Model):
    """Gasto (monto negativo) o ingreso (monto positivo) con su período de pago."""
    __tablename__ = 'transactions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    category = db.Column(db.String(30), nullable=False) # 'fixed-costs', 'investments', 'savings', 'guilt-free-spending'
    date = db.Column(db.Date, nullable=False)
    pay_period_start = db.Column(db.Date, nullable=False)
    pay_period_end = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'description': self.description,
            'amount': _decimal(self.amount),
            'category': self.category,
            'date': _iso(self.date),
            'pay_period_start': _iso(self.pay_period_start),
            'pay_period_end': _iso(self.pay_period_end),
            'created_at': _iso(self.created_at),
        }


class Goal(db.Model):
    """Meta de ahorro."""
    __tablename__ = 'goals'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    target_amount = db.Column(db.Numeric(10, 2), nullable=False)
    current_amount = db.Column(db.Numeric(10, 2), default=0, nullable=False)
    category = db.Column(db.String(20), nullable=False) # 'emergency', 'vacation', 'house', 'other'
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'target_amount': _decimal(self.target_amount),
            'current_amount': _decimal(self.current_amount),
            'category': self.category,
            'is_active': bool(self.is_active),
            'created_at': _iso(self.created_at),
        }


class Automation(db.Model):
    """Transferencia recurrente (solo informativa)."""
    __tablename__ = 'automations'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    category = db.Column(db.String(30), nullable=False)
    frequency = db.Column(db.String(20), nullable=False) # 'weekly', 'bi-weekly', 'monthly'
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'amount': _decimal(self.amount),
            'category': self.category,
            'frequency': self.frequency,
            'is_active': bool(self.is_active),
            'created_at': _iso(self.created_at),
        }


class Insight(db.Model):
    """Consejo de psicología del dinero (contenido global)."""
    __tablename__ = 'insights'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(150), nullable=False)
    content = db.Column(db.Text, nullable=False)
    author = db.Column(db.String(30), nullable=False) # 'morgan-housel', 'ramit-sethi'
    category = db.Column(db.String(30), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'content': self.content,
            'author': self.author,
            'category': self.category,
            'is_active': bool(self.is_active),
        }
