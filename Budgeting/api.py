from flask import Blueprint, current_app, jsonify, request

# Crea un Blueprint para organizar las rutas de la API
api_bp = Blueprint('api', __name__, url_prefix='/api')


def _service():
    """Servicio de finanzas registrado por la factoría de la app."""
    return current_app.extensions['finance_service']


def _payload():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _respond(result, status_code, serialize=lambda r: r.to_dict()):
    """Convierte la tupla (resultado, status) del servicio en una respuesta JSON."""
    if status_code == 204:
        return '', 204
    if status_code >= 400:
        return jsonify({"message": result}), status_code
    return jsonify(serialize(result)), status_code


def _bad_body():
    return jsonify({"message": "El cuerpo de la solicitud debe ser un objeto JSON."}), 400


def _offset():
    try:
        return int(request.args.get('offset', 0))
    except ValueError:
        return None


# --- Usuarios ---

@api_bp.route('/users/<int:user_id>', methods=['GET'])
def get_user(user_id):
    user = _service().get_user(user_id)
    if not user:
        return jsonify({"message": "Usuario no encontrado."}), 404
    return jsonify(user.to_dict()), 200

@api_bp.route('/users', methods=['POST'])
def create_user():
    """Paso 1 del onboarding: datos personales y calendario de pago."""
    data = _payload()
    if data is None:
        return _bad_body()
    current_app.logger.debug("Creando usuario con datos: %s", data)
    return _respond(*_service().create_user(data))

@api_bp.route('/users/<int:user_id>', methods=['PATCH'])
def update_user(user_id):
    data = _payload()
    if data is None:
        return _bad_body()
    return _respond(*_service().update_user(user_id, data))

@api_bp.route('/users/<int:user_id>/onboarding', methods=['POST'])
def complete_onboarding(user_id):
    """Paso 2 del onboarding: porcentajes del presupuesto."""
    data = _payload()
    if data is None:
        return _bad_body()
    return _respond(*_service().complete_onboarding(user_id, data))

# --- Presupuestos ---

@api_bp.route('/budgets/user/<int:user_id>', methods=['GET'])
def get_budget_for_user(user_id):
    budget = _service().get_budget_for_user(user_id)
    if not budget:
        return jsonify({"message": "Presupuesto no encontrado."}), 404
    return jsonify(budget.to_dict()), 200

@api_bp.route('/budgets', methods=['POST'])
def create_budget():
    data = _payload()
    if data is None:
        return _bad_body()
    return _respond(*_service().create_budget(data))

@api_bp.route('/budgets/<int:budget_id>', methods=['PATCH'])
def update_budget(budget_id):
    data = _payload()
    if data is None:
        return _bad_body()
    return _respond(*_service().update_budget(budget_id, data))

# --- Transacciones ---

@api_bp.route('/transactions/user/<int:user_id>', methods=['GET'])
def list_transactions(user_id):
    transactions = _service().list_transactions(user_id)
    return jsonify([t.to_dict() for t in transactions]), 200

@api_bp.route('/transactions/pay-period/<int:user_id>', methods=['GET'])
def list_transactions_for_period(user_id):
    """
    Transacciones guardadas con el período indicado.
    Ejemplo: /api/transactions/pay-period/1?start=2025-01-03&end=2025-01-16
    """
    result, status_code = _service().list_transactions_for_period(
        user_id, request.args.get('start'), request.args.get('end'))
    return _respond(result, status_code, lambda rows: [t.to_dict() for t in rows])

@api_bp.route('/transactions', methods=['POST'])
def add_transaction():
    """Registra un gasto (monto negativo) o un ingreso (monto positivo)."""
    data = _payload()
    if data is None:
        return _bad_body()
    return _respond(*_service().record_transaction(data))

@api_bp.route('/transactions/<int:transaction_id>', methods=['PATCH'])
def update_transaction(transaction_id):
    data = _payload()
    if data is None:
        return _bad_body()
    return _respond(*_service().update_transaction(transaction_id, data))

@api_bp.route('/transactions/<int:transaction_id>', methods=['DELETE'])
def delete_transaction(transaction_id):
    return _respond(*_service().delete_transaction(transaction_id))

# --- Metas Financieras ---

@api_bp.route('/goals/user/<int:user_id>', methods=['GET'])
def list_goals(user_id):
    include_inactive = request.args.get('include_inactive') in ('1', 'true')
    return jsonify(_service().list_goals(user_id, include_inactive=include_inactive)), 200

@api_bp.route('/goals/user/<int:user_id>/summary', methods=['GET'])
def goal_summary(user_id):
    return jsonify(_service().goal_summary(user_id)), 200

@api_bp.route('/goals', methods=['POST'])
def create_goal():
    data = _payload()
    if data is None:
        return _bad_body()
    return _respond(*_service().create_goal(data), serialize=_service().goal_to_dict)

@api_bp.route('/goals/<int:goal_id>', methods=['PATCH'])
def update_goal(goal_id):
    data = _payload()
    if data is None:
        return _bad_body()
    return _respond(*_service().update_goal(goal_id, data), serialize=_service().goal_to_dict)

@api_bp.route('/goals/<int:goal_id>/contribute', methods=['POST'])
def contribute_to_goal(goal_id):
    """Ruta para añadir una contribución a una meta específica."""
    data = _payload()
    if data is None or data.get('amount') is None:
        return jsonify({"message": "Falta el monto de la contribución (amount)."}), 400
    return _respond(*_service().contribute_to_goal(goal_id, data['amount']),
                    serialize=_service().goal_to_dict)

@api_bp.route('/goals/<int:goal_id>', methods=['DELETE'])
def delete_goal(goal_id):
    """Borra la meta; con ?soft=1 solo la desactiva."""
    if request.args.get('soft') in ('1', 'true'):
        result, status_code = _service().deactivate_goal(goal_id)
        if status_code == 200:
            return '', 204
        return _respond(result, status_code)
    return _respond(*_service().delete_goal(goal_id))

# --- Automatizaciones ---

@api_bp.route('/automations/user/<int:user_id>', methods=['GET'])
def list_automations(user_id):
    return jsonify([a.to_dict() for a in _service().list_automations(user_id)]), 200

@api_bp.route('/automations', methods=['POST'])
def create_automation():
    data = _payload()
    if data is None:
        return _bad_body()
    return _respond(*_service().create_automation(data))

@api_bp.route('/automations/<int:automation_id>', methods=['PATCH'])
def update_automation(automation_id):
    data = _payload()
    if data is None:
        return _bad_body()
    return _respond(*_service().update_automation(automation_id, data))

@api_bp.route('/automations/<int:automation_id>', methods=['DELETE'])
def delete_automation(automation_id):
    return _respond(*_service().delete_automation(automation_id))

# --- Consejos ---

@api_bp.route('/insights', methods=['GET'])
def list_insights():
    result, status_code = _service().list_insights()
    return _respond(result, status_code, lambda rows: [i.to_dict() for i in rows])

@api_bp.route('/insights/author/<author>', methods=['GET'])
def list_insights_by_author(author):
    result, status_code = _service().list_insights(author)
    return _respond(result, status_code, lambda rows: [i.to_dict() for i in rows])

# --- Vistas calculadas ---

@api_bp.route('/pay-period/<int:user_id>', methods=['GET'])
def pay_period(user_id):
    """Período de pago actual; ?offset=-1 para el anterior, 1 para el siguiente."""
    offset = _offset()
    if offset is None:
        return jsonify({"message": "El parámetro offset debe ser un entero."}), 400
    return _respond(*_service().pay_period_view(user_id, offset), serialize=lambda r: r)

@api_bp.route('/dashboard', methods=['GET'])
@api_bp.route('/dashboard/<int:user_id>', methods=['GET'])
def dashboard(user_id=None):
    """Tablero del usuario; sin id se usa el usuario demo."""
    if user_id is None:
        user_id = current_app.config['DEMO_USER_ID']
    offset = _offset()
    if offset is None:
        return jsonify({"message": "El parámetro offset debe ser un entero."}), 400
    return _respond(*_service().dashboard(user_id, offset), serialize=lambda r: r)
