# backend/wsgi.py
from salondesk import create_app

app = create_app()
