from pme.cli import app

app(prog_name="pme")
