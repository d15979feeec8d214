from flask_sqlalchemy import SQLAlchemy # ORM for the Supabase Postgres tables.
from flask_migrate import Migrate # Alembic migrations for the billing tables.

# Initialize SQLAlchemy.
# Bound to the app in create_app() via db.init_app(app). The connection string points at the
# Supabase Postgres database, so every model here is a table the frontend can also read through Supabase.
db = SQLAlchemy()

# Initialize Flask-Migrate.
# Wired to the app and db in create_app(); `flask db upgrade` creates stripe_subscriptions,
# stripe_payments and stripe_events on a fresh Supabase project.
migrate = Migrate()
