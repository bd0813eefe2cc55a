from agent_display.cli import app

app()
