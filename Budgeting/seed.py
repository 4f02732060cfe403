"""Datos de demostración: un usuario con presupuesto, metas, automatizaciones y gastos."""
import logging
from datetime import date, timedelta

from Budgeting.storage import seed_insights

logger = logging.getLogger(__name__)

DEMO_USER = {
    'first_name': 'John',
    'last_name': 'Smith',
    'email': 'john@example.com',
    'pay_schedule': 'bi-weekly',
    'pay_day': 5, # Viernes
    'last_pay_date': '2025-01-03',
    'after_tax_income': '3200.00',
}

DEMO_BUDGET = {
    'fixed_costs_percent': '55.00',
    'investments_percent': '15.00',
    'savings_percent': '10.00',
    'guilt_free_spending_percent': '20.00',
}

DEMO_GOALS = [
    {'name': 'Emergency Fund', 'target_amount': '10000.00', 'current_amount': '2500.00', 'category': 'emergency'},
    {'name': 'Hawaii Vacation', 'target_amount': '5000.00', 'current_amount': '1200.00', 'category': 'vacation'},
    {'name': 'House Down Payment', 'target_amount': '50000.00', 'current_amount': '15000.00', 'category': 'house'},
]

DEMO_AUTOMATIONS = [
    {'name': '401k Contribution', 'amount': '480.00', 'category': 'investments', 'frequency': 'bi-weekly'},
    {'name': 'Emergency Fund', 'amount': '200.00', 'category': 'savings', 'frequency': 'bi-weekly'},
    {'name': 'Vacation Savings', 'amount': '120.00', 'category': 'savings', 'frequency': 'bi-weekly'},
]

DEMO_TRANSACTIONS = [
    ('Rent Payment', '-1200.00', 'fixed-costs'),
    ('Electric Bill', '-89.50', 'fixed-costs'),
    ('Internet Bill', '-79.99', 'fixed-costs'),
    ('Car Insurance', '-145.00', 'fixed-costs'),
    ('Phone Bill', '-85.00', 'fixed-costs'),
    ('Grocery Shopping', '-125.50', 'fixed-costs'),
    ('Gas Station', '-45.00', 'fixed-costs'),
    ('401k Contribution', '-480.00', 'investments'),
    ('Roth IRA', '-250.00', 'investments'),
    ('Emergency Fund Transfer', '-200.00', 'savings'),
    ('Vacation Savings', '-120.00', 'savings'),
    ('Restaurant Dinner', '-67.50', 'guilt-free-spending'),
    ('Coffee Shop', '-12.50', 'guilt-free-spending'),
    ('Movie Theater', '-28.00', 'guilt-free-spending'),
    ('Amazon Purchase', '-89.99', 'guilt-free-spending'),
    ('Gym Membership', '-39.99', 'guilt-free-spending'),
    ('Streaming Services', '-45.97', 'guilt-free-spending'),
    ('Book Store', '-24.99', 'guilt-free-spending'),
]


def seed_demo(service, today=None):
    """
    Crea el usuario demo y sus datos a través del servicio, de modo que las
    transacciones guardan el período de pago calculado. Retorna el usuario o
    un mensaje de error si el email ya existe.
    """
    today = today or service.today()
    seed_insights(service.storage)

    user, status_code = service.create_user(DEMO_USER)
    if status_code != 201:
        return user, status_code

    budget, status_code = service.complete_onboarding(user.id, DEMO_BUDGET)
    if status_code != 201:
        return budget, status_code

    for goal in DEMO_GOALS:
        service.create_goal(dict(goal, user_id=user.id))
    for automation in DEMO_AUTOMATIONS:
        service.create_automation(dict(automation, user_id=user.id))

    # Tres rondas de gastos repartidas en los últimos 30 días
    count = 0
    for round_ in range(3):
        for index, (description, amount, category) in enumerate(DEMO_TRANSACTIONS):
            day = today - timedelta(days=(index * 5 + round_ * 11) % 30)
            service.record_transaction({
                'user_id': user.id,
                'description': description,
                'amount': amount,
                'category': category,
                'date': day.isoformat(),
            })
            count += 1

    logger.info("Usuario demo %s creado con %s transacciones", user.id, count)
    return user, 201
