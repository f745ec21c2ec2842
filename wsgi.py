"""
Точка входа для WSGI-серверов и `flask --app wsgi run`.
"""

from main import create_app

app = create_app()
