# Overview: WSGI entrypoint (FLASK_APP=wsgi.py).

from tillshift import create_app

app = create_app()
