import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
import json
import allure
from datetime import date
from Main import create_app
from config import TestingConfig
from Budgeting.models import db, Insight, Transaction
from Budgeting.services import FinanceService
from Budgeting.storage import SQLAlchemyStorage, seed_insights

TODAY = date(2025, 1, 20)


@pytest.fixture
def app():
    """Configura la app para pruebas con la DB en memoria y un 'hoy' fijo."""
    app = create_app(TestingConfig)
    app.extensions['finance_service'] = FinanceService(SQLAlchemyStorage(), today=TODAY)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Crea un cliente de prueba para hacer solicitudes HTTP."""
    return app.test_client()


def post_json(client, url, payload):
    return client.post(url, data=json.dumps(payload), content_type='application/json')


@pytest.fixture
def test_user_id(client):
    """Usuario bisemanal con presupuesto 55/15/10/20 y gastos en dos períodos."""
    user_id = post_json(client, '/api/users', dict(
        first_name='John', last_name='Smith', email='john@example.com',
        pay_schedule='bi-weekly', pay_day=5, last_pay_date='2025-01-03',
        after_tax_income='3200.00',
    )).get_json()['id']
    post_json(client, f'/api/users/{user_id}/onboarding', dict(
        fixed_costs_percent=55, investments_percent=15,
        savings_percent=10, guilt_free_spending_percent=20,
    ))
    for description, amount, category, day in (
        ('Renta', '-1200.00', 'fixed-costs', '2025-01-17'),
        ('Inversión automática', '-480.00', 'investments', '2025-01-17'),
        ('Cena', '-45.00', 'guilt-free-spending', '2025-01-10'),
    ):
        post_json(client, '/api/transactions', dict(
            user_id=user_id, description=description, amount=amount, category=category, date=day,
        ))
    return user_id


# --------------------------
# PRUEBAS CON ALLURE
# --------------------------

@allure.feature("Período de pago")
@allure.story("Período actual del usuario")
@allure.severity(allure.severity_level.CRITICAL)
@allure.description("El período bisemanal se ancla a la fecha del último pago del usuario.")
def test_current_pay_period(client, test_user_id):
    response = client.get(f'/api/pay-period/{test_user_id}')
    allure.attach(json.dumps(response.get_json(), indent=2), name="Período",
                  attachment_type=allure.attachment_type.JSON)
    assert response.status_code == 200

    data = response.get_json()
    assert data['period_start'] == '2025-01-17'
    assert data['period_end'] == '2025-01-30'
    assert data['label'] == 'Jan 17 - Jan 30'
    assert data['days'] == 14
    assert data['next_pay_date'] == '2025-01-31'
    assert data['days_remaining'] == 10
    assert data['is_current'] is True
    assert 0 <= data['progress_percent'] <= 100


def test_previous_pay_period(client, test_user_id):
    data = client.get(f'/api/pay-period/{test_user_id}?offset=-1').get_json()
    assert data['period_start'] == '2025-01-03'
    assert data['period_end'] == '2025-01-16'
    assert data['is_current'] is False
    assert data['days_remaining'] == 0

    assert client.get(f'/api/pay-period/{test_user_id}?offset=uno').status_code == 400
    assert client.get('/api/pay-period/999').status_code == 404


@allure.feature("Período de pago")
@allure.story("Desplazamiento fuera de rango")
@allure.severity(allure.severity_level.NORMAL)
@allure.description("Un offset enorme se rechaza con 400 en lugar de recorrer millones de períodos.")
def test_offset_beyond_limit_is_rejected(client, test_user_id):
    response = client.get(f'/api/pay-period/{test_user_id}?offset=1000000')
    assert response.status_code == 400
    assert 'desplazamiento' in response.get_json()['message']

    assert client.get(f'/api/dashboard/{test_user_id}?offset=-1000000').status_code == 400
    assert client.get(f'/api/pay-period/{test_user_id}?offset=520').status_code == 200


@allure.feature("Tablero")
@allure.story("Reparto del ingreso y gasto del período")
@allure.severity(allure.severity_level.CRITICAL)
def test_dashboard(client, test_user_id):
    with allure.step("Pedir el tablero del usuario"):
        response = client.get(f'/api/dashboard/{test_user_id}')
        assert response.status_code == 200
        data = response.get_json()

    with allure.step("Verificar el reparto del ingreso"):
        assert data['using_default_budget'] is False
        assert float(data['income']) == 3200.00
        assert float(data['allocations']['fixed_costs']) == 1760.00
        assert float(data['allocations']['guilt_free_spending']) == 640.00

    with allure.step("Verificar que solo cuenta el período actual"):
        assert float(data['spending']['fixed_costs']) == 1200.00
        assert float(data['spending']['investments']) == 480.00
        assert float(data['spending']['guilt_free_spending']) == 0
        assert data['share_of_income']['fixed_costs'] == 37.5
        assert float(data['cash_flow']['total_expenses']) == 1680.00
        assert float(data['cash_flow']['net_cash_flow']) == 1520.00
        assert len(data['recent_transactions']) == 2

    with allure.step("Verificar los textos formateados"):
        assert data['formatted']['income'] == '$3,200'
        assert data['formatted']['total_expenses'] == '$1,680'
        assert data['formatted']['period'] == 'Jan 17 - Jan 30'

    with allure.step("Verificar las filas del presupuesto"):
        rows = {row['category']: row for row in data['budget']}
        assert rows['fixed-costs']['over_budget'] is False
        assert float(rows['fixed-costs']['remaining']) == 560.00
        assert rows['fixed-costs']['percent_label'] == '55%'


def test_dashboard_without_budget_uses_recommended_split(client):
    user_id = post_json(client, '/api/users', dict(
        first_name='Ana', last_name='Pérez', email='ana@example.com',
        pay_schedule='semi-monthly', pay_day=15, after_tax_income='2000',
    )).get_json()['id']

    data = client.get(f'/api/dashboard/{user_id}').get_json()
    assert data['using_default_budget'] is True
    assert float(data['allocations']['fixed_costs']) == 1000.00
    assert float(data['allocations']['guilt_free_spending']) == 700.00
    assert data['pay_period']['period_start'] == '2025-01-16'
    assert data['pay_period']['period_end'] == '2025-01-31'


def test_dashboard_previous_period(client, test_user_id):
    data = client.get(f'/api/dashboard/{test_user_id}?offset=-1').get_json()
    assert float(data['spending']['guilt_free_spending']) == 45.00
    assert float(data['cash_flow']['total_expenses']) == 45.00


def test_dashboard_defaults_to_demo_user(client, test_user_id):
    response = client.get('/api/dashboard')
    assert response.status_code == 200
    assert response.get_json()['user']['id'] == test_user_id


def test_dashboard_unknown_user(client):
    response = client.get('/api/dashboard/999')
    assert response.status_code == 404
    assert response.get_json()['message'] == 'Usuario no encontrado.'


@allure.feature("Período de pago")
@allure.story("Día de pago inexistente en el mes")
@allure.severity(allure.severity_level.NORMAL)
@allure.description("Un pago mensual el día 30 no existe en febrero; la API responde 422.")
def test_ambiguous_monthly_pay_day(app, client):
    user_id = post_json(client, '/api/users', dict(
        first_name='Ana', last_name='Pérez', email='ana@example.com',
        pay_schedule='monthly', pay_day=30, last_pay_date='2025-01-30', after_tax_income='2000',
    )).get_json()['id']
    app.extensions['finance_service'] = FinanceService(SQLAlchemyStorage(), today=date(2025, 2, 10))

    response = client.get(f'/api/pay-period/{user_id}')
    assert response.status_code == 422
    assert response.get_json()['message']
    assert client.get(f'/api/dashboard/{user_id}').status_code == 422


@allure.feature("Consejos")
@allure.story("Consejos por defecto")
@allure.severity(allure.severity_level.MINOR)
def test_insights(client):
    assert client.get('/api/insights').get_json() == []

    assert seed_insights(SQLAlchemyStorage()) == 3
    assert seed_insights(SQLAlchemyStorage()) == 0
    assert Insight.query.count() == 3

    assert len(client.get('/api/insights').get_json()) == 3
    by_author = client.get('/api/insights/author/ramit-sethi').get_json()
    assert [i['title'] for i in by_author] == ['Automation First', 'Rich Life Framework']
    assert client.get('/api/insights/author/nadie').status_code == 400


def test_automations(client, test_user_id):
    response = post_json(client, '/api/automations', dict(
        user_id=test_user_id, name='Inversión automática', amount='480.00',
        category='investments', frequency='bi-weekly',
    ))
    assert response.status_code == 201
    automation_id = response.get_json()['id']

    bad = post_json(client, '/api/automations', dict(
        user_id=test_user_id, name='X', amount='10', category='investments', frequency='daily',
    ))
    assert bad.status_code == 400

    response = client.patch(f'/api/automations/{automation_id}', data=json.dumps({'is_active': False}),
                            content_type='application/json')
    assert response.status_code == 200
    assert response.get_json()['is_active'] is False

    listed = client.get(f'/api/automations/user/{test_user_id}').get_json()
    assert [a['id'] for a in listed] == [automation_id]

    assert client.delete(f'/api/automations/{automation_id}').status_code == 204
    assert client.delete(f'/api/automations/{automation_id}').status_code == 404


def test_seed_demo_command(app):
    result = app.test_cli_runner().invoke(args=['seed-demo'])
    assert 'Usuario demo creado' in result.output
    assert Transaction.query.count() == 54

    again = app.test_cli_runner().invoke(args=['seed-demo'])
    assert 'No se creó el usuario demo' in again.output
