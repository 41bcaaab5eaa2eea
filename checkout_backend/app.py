# module checkout_backend.app
from checkout_backend.app_setup.factory import create_app

# App globale
app = create_app()
