"""JSON read API"""


def test_season_record(client, graded_league):
    alice = graded_league.alice

    response = client.get(f"/api/parlay/2024/users/{alice.id}")

    assert response.status_code == 200
    data = response.get_json()
    assert data["total_points"] == 6
    assert data["weeks_scored"] == 2
    assert data["display_name"] == "Alice A."
    assert set(data["weeks"]) == {"1", "2"}
    assert data["weeks"]["1"]["buckets"] == {"Thursday": 3, "Friday": 0}
    assert data["pick_record"]["display"] == "5-1-0"


def test_missing_season_record(client, app):
    response = client.get("/api/parlay/2024/users/42")
    assert response.status_code == 404
    assert "error" in response.get_json()


def test_week_score(client, graded_league):
    alice = graded_league.alice

    response = client.get(f"/api/parlay/2024/users/{alice.id}/weeks/2")

    assert response.status_code == 200
    data = response.get_json()
    assert data["total_points"] == 3
    assert data["is_complete"] is True
    assert data["bucket_details"]["Thursday"]["wins"] == 2


def test_leaderboard(client, graded_league):
    response = client.get("/api/parlay/2024/leaderboard")

    standings = response.get_json()["leaderboard"]
    assert [entry["display_name"] for entry in standings] == ["Alice A.", "bob"]
    assert [entry["total_points"] for entry in standings] == [6, 0]
    assert [entry["rank"] for entry in standings] == [1, 2]


def test_leaderboard_through_week(client, graded_league):
    response = client.get("/api/parlay/2024/leaderboard?through_week=1")

    data = response.get_json()
    assert data["through_week"] == 1
    assert data["leaderboard"][0]["total_points"] == 3


def test_week_scores(client, graded_league):
    response = client.get("/api/parlay/2024/weeks/1/scores?limit=1")

    scores = response.get_json()["scores"]
    assert len(scores) == 1
    assert scores[0]["user_id"] == graded_league.alice.id
    assert scores[0]["display_name"] == "Alice A."


def test_scores_refresh_after_correction(client, graded_league):
    from parlay_club.services.result_reconciler import result_reconciler

    alice = graded_league.alice
    url = f"/api/parlay/2024/users/{alice.id}"
    assert client.get(url).get_json()["total_points"] == 6

    result_reconciler.handle_game_final(graded_league.thursday.id, 20, 20)

    assert client.get(url).get_json()["total_points"] == 3


def test_game_pick_summary(client, graded_league):
    response = client.get(f"/api/games/{graded_league.thursday.id}/picks/summary")

    data = response.get_json()
    assert data["game"]["grading_state"] == "graded"
    assert data["picks"]["total"] == 3
    assert data["picks"]["by_result"] == {"win": 2, "loss": 1}


def test_unknown_game_summary(client, app):
    response = client.get("/api/games/9999/picks/summary")
    assert response.status_code == 404


def test_scheduler_status(client, app):
    response = client.get("/api/scheduler/status")

    assert response.status_code == 200
    assert response.get_json()["is_running"] is False
    assert response.headers["X-Content-Type-Options"] == "nosniff"
