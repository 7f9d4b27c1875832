from zipguard.cli import app

app()
