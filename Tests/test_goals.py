import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
import json
import allure
from Main import create_app
from config import TestingConfig
from Budgeting.models import db, Goal


@pytest.fixture
def app():
    """Configura la app para pruebas con la DB en memoria."""
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Crea un cliente de prueba para hacer solicitudes HTTP."""
    return app.test_client()


@pytest.fixture
def test_user_id(client):
    response = client.post('/api/users', data=json.dumps(dict(
        first_name='Ana', last_name='Pérez', email='ana@example.com',
        pay_schedule='monthly', pay_day=1, after_tax_income='4000.00',
    )), content_type='application/json')
    return response.get_json()['id']


def create_goal(client, user_id, **fields):
    payload = dict(user_id=user_id, name='Fondo de emergencia', target_amount='10000.00',
                   category='emergency')
    payload.update(fields)
    return client.post('/api/goals', data=json.dumps(payload), content_type='application/json')


# --------------------------
# PRUEBAS CON ALLURE
# --------------------------

@allure.feature("Metas Financieras")
@allure.story("Creación de una meta")
@allure.severity(allure.severity_level.CRITICAL)
@allure.description("Verifica que una meta nueva inicie sin ahorro y con progreso cero.")
def test_create_goal(client, test_user_id):
    with allure.step("Enviar solicitud POST para crear la meta"):
        response = create_goal(client, test_user_id)
        allure.attach(json.dumps(response.get_json(), indent=2), name="Meta creada",
                      attachment_type=allure.attachment_type.JSON)
        assert response.status_code == 201

    with allure.step("Verificar el progreso calculado"):
        data = response.get_json()
        assert float(data['current_amount']) == 0
        assert data['progress_percent'] == 0
        assert data['is_completed'] is False
        assert data['is_active'] is True

    with allure.step("Verificar en la base de datos"):
        assert Goal.query.count() == 1


@allure.feature("Metas Financieras")
@allure.story("Validación de la meta")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.parametrize('fields', [
    dict(target_amount='0'),
    dict(target_amount='-5'),
    dict(category='car'),
    dict(name='  '),
])
def test_create_goal_invalid(client, test_user_id, fields):
    response = create_goal(client, test_user_id, **fields)
    assert response.status_code == 400
    assert Goal.query.count() == 0


def test_create_goal_default_category(client, test_user_id):
    payload = dict(user_id=test_user_id, name='Viaje', target_amount='1500')
    response = client.post('/api/goals', data=json.dumps(payload), content_type='application/json')
    assert response.status_code == 201
    assert response.get_json()['category'] == 'other'


@allure.feature("Metas Financieras")
@allure.story("Contribuciones")
@allure.severity(allure.severity_level.CRITICAL)
def test_contribute_to_goal(client, test_user_id):
    goal_id = create_goal(client, test_user_id, current_amount='2000.00').get_json()['id']

    with allure.step("Añadir una contribución de 500"):
        response = client.post(f'/api/goals/{goal_id}/contribute', data=json.dumps({'amount': 500}),
                               content_type='application/json')
        assert response.status_code == 200
        data = response.get_json()
        assert float(data['current_amount']) == 2500.00
        assert data['progress_percent'] == 25.0

    with allure.step("Completar la meta"):
        response = client.post(f'/api/goals/{goal_id}/contribute', data=json.dumps({'amount': '7500'}),
                               content_type='application/json')
        assert response.get_json()['is_completed'] is True
        assert response.get_json()['progress_percent'] == 100


def test_contribute_requires_positive_amount(client, test_user_id):
    goal_id = create_goal(client, test_user_id).get_json()['id']
    url = f'/api/goals/{goal_id}/contribute'

    assert client.post(url, data=json.dumps({}), content_type='application/json').status_code == 400
    response = client.post(url, data=json.dumps({'amount': -20}), content_type='application/json')
    assert response.status_code == 400

    response = client.post('/api/goals/999/contribute', data=json.dumps({'amount': 20}),
                           content_type='application/json')
    assert response.status_code == 404


def test_list_goals_and_summary(client, test_user_id):
    create_goal(client, test_user_id, current_amount='2500.00')
    create_goal(client, test_user_id, name='Vacaciones', category='vacation',
                target_amount='5000.00', current_amount='5000.00')

    response = client.get(f'/api/goals/user/{test_user_id}')
    assert response.status_code == 200
    goals = response.get_json()
    assert sorted(g['progress_percent'] for g in goals) == [25.0, 100.0]

    summary = client.get(f'/api/goals/user/{test_user_id}/summary').get_json()
    assert summary['active_goals'] == 2
    assert summary['completed_goals'] == 1
    assert float(summary['total_target']) == 15000.00
    assert float(summary['total_saved']) == 7500.00
    assert summary['overall_progress'] == 50.0


@allure.feature("Metas Financieras")
@allure.story("Edición y borrado")
@allure.severity(allure.severity_level.NORMAL)
def test_patch_and_soft_delete_goal(client, test_user_id):
    goal_id = create_goal(client, test_user_id).get_json()['id']

    with allure.step("Cambiar el objetivo"):
        response = client.patch(f'/api/goals/{goal_id}', data=json.dumps({'target_amount': 8000}),
                                content_type='application/json')
        assert response.status_code == 200
        assert float(response.get_json()['target_amount']) == 8000.00

    with allure.step("Desactivar la meta con ?soft=1"):
        assert client.delete(f'/api/goals/{goal_id}?soft=1').status_code == 204
        assert client.get(f'/api/goals/user/{test_user_id}').get_json() == []
        inactive = client.get(f'/api/goals/user/{test_user_id}?include_inactive=1').get_json()
        assert inactive[0]['is_active'] is False

    with allure.step("Borrar la meta definitivamente"):
        assert client.delete(f'/api/goals/{goal_id}').status_code == 204
        assert Goal.query.count() == 0
        assert client.delete(f'/api/goals/{goal_id}').status_code == 404
