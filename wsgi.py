from clubvote import create_app

app = create_app()
