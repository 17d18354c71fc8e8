# module commerce.app
from commerce.app_setup.factory import create_app

# App globale
app = create_app()
