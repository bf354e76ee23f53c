from app.gigstm import create_app

app = create_app()
