from parlay_club import create_app, db
from parlay_club.models import Game, ParlaySeasonRecord, ParlayWeekScore, Pick, User
from parlay_club.services.result_reconciler import result_reconciler

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Game": Game,
        "Pick": Pick,
        "ParlayWeekScore": ParlayWeekScore,
        "ParlaySeasonRecord": ParlaySeasonRecord,
        "reconciler": result_reconciler,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=app.config.get("DEBUG", False))
