import pytest
import stripe
from app import create_app
from config import Config
from extensions import db as _db # Alias to avoid fixture name conflict

class TestConfig(Config):
    TESTING = True
    APP_ENV = 'test'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:' # Use in-memory SQLite for tests
    WTF_CSRF_ENABLED = False # Disable CSRF for form testing convenience
    SECRET_KEY = 'test-secret-key-for-forms' # Flask-WTF and flash() need a SECRET_KEY
    # Fake Stripe credentials; every Stripe call in the tests is mocked.
    STRIPE_SECRET_KEY = 'sk_test_dummy'
    STRIPE_PUBLISHABLE_KEY = 'pk_test_dummy'
    STRIPE_WEBHOOK_SECRET = 'whsec_test_dummy'
    SUPABASE_URL = 'https://example.supabase.co'
    FRONTEND_URL = 'http://localhost:3000'
    CORS_ORIGINS = ['http://localhost:3000']

@pytest.fixture(scope='session')
def app():
    """
    Session-wide test Flask application.
    Ensures the app is created once per test session with TestConfig.
    """
    app_instance = create_app(config_class=TestConfig)
    return app_instance

@pytest.fixture(scope='function')
def app_context(app):
    """
    Function-scoped application context.
    Pushes an app context before each test that needs it and pops it afterwards.
    """
    with app.app_context():
        yield

@pytest.fixture(scope='function')
def db(app_context):
    """
    Function-scoped database fixture.
    Creates all database tables before each test and drops them afterwards.
    """
    _db.create_all() # Create tables based on models
    yield _db          # Provide the database session/object to the test
    _db.session.remove() # Ensure session is closed
    _db.drop_all()     # Drop all tables to clean up

@pytest.fixture(scope='function')
def client(app):
    """
    Test client fixture for making requests to the application.
    Function-scoped so the accessibility cookie doesn't leak between tests.
    """
    return app.test_client()

@pytest.fixture(scope='session')
def stripe_object():
    """
    Factory for real Stripe SDK objects, so mocked API calls return the same type the library does.
    Usage: stripe_object({'id': 'cus_1', ...}) or stripe_object(payload, stripe.Event).
    """
    def build(values, cls=stripe.StripeObject):
        return cls.construct_from(values, TestConfig.STRIPE_SECRET_KEY)
    return build
