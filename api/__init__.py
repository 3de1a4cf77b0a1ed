from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config, DEV_JWT_SECRET
from .errors import register_error_handlers
from models import DBStorage
from services.accounts import AccountRepository
from services.auth import AuthOrchestrator, AuthPolicy
from services.container import AuthServices
from services.csrf import CsrfGuard
from services.mailer import LoggingMailSender, MailSender, SmtpMailSender
from services.oauth import GoogleOAuthProvider, OAuthBridge
from services.session_store import SessionStore
from services.settings import SettingsProvider, MONTHLY_FREE_QUOTA
from services.sweeper import ExpirySweeper
from utils.security import CredentialHasher, TokenSigner

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "LectGen Auth API",
        "version": "1.0.0",
        "description": "Registration, login, refresh-session rotation, CSRF, Google sign-in and password reset.",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def build_services(
    config,
    *,
    mail_sender: MailSender | None = None,
    oauth_provider: GoogleOAuthProvider | None = None,
) -> AuthServices:
    """Construct every auth component once, from configuration only."""
    storage = DBStorage(config["DATABASE_URL"], echo=config.get("SQL_ECHO", False))
    storage.reload()

    accounts = AccountRepository(storage)
    sessions = SessionStore(storage, default_ttl=config["REFRESH_SESSION_TTL"])
    csrf = CsrfGuard()
    settings = SettingsProvider(storage, defaults={MONTHLY_FREE_QUOTA: config["DEFAULT_MONTHLY_QUOTA"]})
    oauth = OAuthBridge(storage, accounts, settings, state_ttl=config["OAUTH_STATE_TTL"])

    if oauth_provider is None:
        oauth_provider = GoogleOAuthProvider(
            config["GOOGLE_CLIENT_ID"],
            config["GOOGLE_CLIENT_SECRET"],
            config["GOOGLE_REDIRECT_URI"],
            max_attempts=config["OAUTH_HTTP_MAX_ATTEMPTS"],
        )
    if mail_sender is None:
        if config["SMTP_HOST"]:
            mail_sender = SmtpMailSender(
                config["SMTP_HOST"],
                config["SMTP_PORT"],
                username=config["SMTP_USER"] or None,
                password=config["SMTP_PASSWORD"] or None,
                use_tls=config["SMTP_USE_TLS"],
                from_email=config["MAIL_FROM"] or None,
            )
        else:
            mail_sender = LoggingMailSender()

    orchestrator = AuthOrchestrator(
        accounts=accounts,
        hasher=CredentialHasher(
            time_cost=config["ARGON2_TIME_COST"],
            memory_cost=config["ARGON2_MEMORY_COST"],
            parallelism=config["ARGON2_PARALLELISM"],
        ),
        signer=TokenSigner(config["JWT_SECRET"], config["JWT_ALGORITHM"], config["JWT_ISSUER"]),
        sessions=sessions,
        csrf=csrf,
        mailer=mail_sender,
        settings=settings,
        policy=AuthPolicy(
            access_token_ttl=config["ACCESS_TOKEN_EXPIRES"],
            refresh_session_ttl=config["REFRESH_SESSION_TTL"],
            password_min_length=config["PASSWORD_MIN_LENGTH"],
            frontend_url=config["FRONTEND_URL"],
            mail_max_attempts=config["MAIL_MAX_ATTEMPTS"],
            revoke_sessions_on_password_reset=config["REVOKE_SESSIONS_ON_PASSWORD_RESET"],
        ),
    )
    sweeper = ExpirySweeper(sessions, oauth, interval_seconds=config["SESSION_SWEEP_INTERVAL_SECONDS"])
    return AuthServices(
        storage=storage,
        accounts=accounts,
        sessions=sessions,
        csrf=csrf,
        settings=settings,
        oauth=oauth,
        oauth_provider=oauth_provider,
        orchestrator=orchestrator,
        sweeper=sweeper,
    )


def create_app(
    config_name: str | None = None,
    *,
    mail_sender: MailSender | None = None,
    oauth_provider: GoogleOAuthProvider | None = None,
) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Collaborators that talk to the outside world (mail, OAuth provider) can be
    injected; everything else is built from configuration.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    if app.config["APP_ENV"] in ("prod", "production") and app.config["JWT_SECRET"] == DEV_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set in production")

    # Cookies cross origins, so credentials need an explicit origin list
    origins = [o.strip() for o in app.config["CORS_ORIGINS"].split(",") if o.strip()]
    CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=True)

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    services = build_services(app.config, mail_sender=mail_sender, oauth_provider=oauth_provider)
    app.extensions["auth"] = services

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .oauth import bp as oauth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(oauth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp, url_prefix="/api/v1")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # scoped_session.remove(), preventing connection leaks
        services.storage.close()

    @app.cli.command("sweep-expired")
    def sweep_expired():
        """Delete expired refresh sessions and OAuth states."""
        counts = services.sweeper.run_once()
        print(f"Removed {counts['sessions']} sessions and {counts['oauth_states']} OAuth states")

    if app.config.get("START_SWEEPER"):
        services.sweeper.start()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to LectGen Auth API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
