"""routes パッケージ: Blueprint の一括登録"""


def register_blueprints(app):
    from routes.employee import employee_bp
    from routes.payroll import payroll_bp
    from routes.resident_tax import resident_tax_bp
    from routes.standard_remuneration import standard_remuneration_bp
    from routes.tax import tax_bp
    from routes.trips import trips_bp

    app.register_blueprint(employee_bp)
    app.register_blueprint(payroll_bp)
    app.register_blueprint(tax_bp)
    app.register_blueprint(resident_tax_bp)
    app.register_blueprint(standard_remuneration_bp)
    app.register_blueprint(trips_bp)
