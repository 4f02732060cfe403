import logging

import click
from flask import Flask, jsonify
from flask_cors import CORS
from Budgeting.models import db
from Budgeting.api import api_bp
from Budgeting.errors import AmbiguousPayDayError, BudgetingError
from Budgeting.seed import seed_demo
from Budgeting.services import FinanceService
from Budgeting.storage import SQLAlchemyStorage, StorageError, seed_insights
from config import DevelopmentConfig

def create_app(config_class=DevelopmentConfig, storage=None):
    """Función de factoría para crear y configurar la aplicación Flask."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Nivel de log para la app y para el paquete de negocio
    app.logger.setLevel(app.config['LOG_LEVEL'])
    logging.getLogger('Budgeting').setLevel(app.config['LOG_LEVEL'])

    # Inicialización de extensiones
    db.init_app(app)
    CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}})

    # El almacenamiento se inyecta; por defecto es la base de datos
    storage = storage if storage is not None else SQLAlchemyStorage()
    app.extensions['finance_service'] = FinanceService(storage, timezone=app.config['TIMEZONE'])

    # Registro de Blueprints (rutas)
    app.register_blueprint(api_bp)
    register_error_handlers(app)
    register_commands(app)

    # Crea las tablas de la DB si no existen
    with app.app_context():
        db.create_all()
        if app.config.get('SEED_INSIGHTS'):
            try:
                seed_insights(storage)
            except StorageError as e:
                app.logger.warning("No se pudieron cargar los consejos iniciales: %s", e)

    return app

def register_error_handlers(app):
    """Errores en formato JSON, igual que las respuestas de la API."""

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"message": "Recurso no encontrado."}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"message": "Método no permitido."}), 405

    @app.errorhandler(BudgetingError)
    def budgeting_error(error):
        status_code = 422 if isinstance(error, AmbiguousPayDayError) else 400
        return jsonify({"message": str(error)}), status_code

    @app.errorhandler(StorageError)
    def storage_error(error):
        app.logger.error("Error de almacenamiento: %s", error)
        return jsonify({"message": "Error de servidor."}), 500

def register_commands(app):
    @app.cli.command('seed-demo')
    def seed_demo_command():
        """Carga el usuario demo. Ejecuta: 'flask --app "Main:create_app()" seed-demo'"""
        result, status_code = seed_demo(app.extensions['finance_service'])
        if status_code != 201:
            click.echo(f"No se creó el usuario demo: {result}")
            return
        click.echo(f"Usuario demo creado con id {result.id}.")

if __name__ == '__main__':
    # Usar el ambiente de desarrollo por defecto
    app = create_app(DevelopmentConfig)
    app.run(host='0.0.0.0', port=5000)
