# backend/wsgi.py
# FLASK_APP entry point: `python -m flask --app wsgi run`
import sqlalchemy as sa

from smartpos import create_app
from smartpos.extensions import db
from smartpos.services.settings_service import ensure_defaults

app = create_app()

with app.app_context():
    # Settings row must exist before the first sale; tables come from `flask db upgrade`
    if sa.inspect(db.engine).has_table("shop_settings"):
        ensure_defaults()
