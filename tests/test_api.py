"""Tests de la API HTTP con TestClient (sin lifespan: controlador inyectado)."""

DAY = "2024-05-01"


class TestHealthAndState:

    def test_health(self, client) -> None:
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_state(self, client) -> None:
        body = client.get("/state").json()

        assert body["sublime_points"] == 50
        assert body["level"] == {"level": 1, "current_xp": 0, "xp_to_next_level": 100, "xp_progress": 0.0}
        assert body["active_quest_id"] is None


class TestHabitsApi:

    def test_create_toggle_and_delete(self, client) -> None:
        habit = client.post("/habits", json={"name": "Leer", "sp_value": 20}).json()

        toggled = client.post(f"/habits/{habit['id']}/toggle", params={"day": DAY}).json()

        assert toggled["changed"] is True
        assert toggled["sublime_points"] == 70
        assert client.get("/habits").json()[0]["completed_on"] == [DAY]
        assert client.delete(f"/habits/{habit['id']}").json() == []

    def test_unknown_habit_toggle_is_a_noop(self, client) -> None:
        response = client.post("/habits/h-404/toggle", params={"day": DAY})

        assert response.status_code == 200
        assert response.json()["changed"] is False
        assert response.json()["sublime_points"] == 50

    def test_bad_day_is_rejected(self, client) -> None:
        assert client.post("/habits/h-1/toggle", params={"day": "01/05/2024"}).status_code == 422

    def test_update_replaces_habit(self, client) -> None:
        habit = client.post("/habits", json={"name": "Leer"}).json()

        habits = client.put(f"/habits/{habit['id']}", json={"name": "Leer 30 min", "sp_value": 12}).json()

        assert habits[0]["name"] == "Leer 30 min"
        assert habits[0]["sp_value"] == 12

    def test_update_rejects_repeated_or_malformed_days(self, client) -> None:
        habit = client.post("/habits", json={"name": "Leer"}).json()

        repeated = client.put(f"/habits/{habit['id']}", json={
            "name": "Leer", "sp_value": 10, "completed_on": [DAY, DAY],
        })
        malformed = client.put(f"/habits/{habit['id']}", json={
            "name": "Leer", "sp_value": 10, "completed_on": [DAY, "ayer"],
        })

        assert repeated.status_code == 422
        assert malformed.status_code == 422
        assert client.get("/habits").json()[0]["completed_on"] == []

    def test_update_accepts_distinct_days(self, client) -> None:
        habit = client.post("/habits", json={"name": "Leer"}).json()

        habits = client.put(f"/habits/{habit['id']}", json={
            "name": "Leer", "sp_value": 10, "streak": 2, "completed_on": ["2024-04-30", DAY],
        }).json()

        assert habits[0]["completed_on"] == ["2024-04-30", DAY]


class TestGoalsApi:

    def test_milestone_toggle(self, client) -> None:
        goal = client.post("/goals/short_term", json={"name": "Trimestre"}).json()
        goals = client.post(f"/goals/short_term/{goal['id']}/milestones", json={"name": "Tareas"}).json()
        milestone_id = goals[0]["milestones"][0]["id"]

        result = client.patch(f"/goals/short_term/{goal['id']}/milestones/{milestone_id}").json()

        assert (result["point_delta"], result["xp_delta"]) == (30, 15)

    def test_unknown_kind(self, client) -> None:
        assert client.get("/goals/mid_term").status_code == 422


class TestScheduleApi:

    def test_blocks_are_returned_in_order(self, client) -> None:
        for start, end in (("10:00", "11:00"), ("08:00", "09:00"), ("09:00", "10:00")):
            client.post(f"/schedule/{DAY}", json={"title": start, "start_time": start, "end_time": end})

        blocks = client.get(f"/schedule/{DAY}").json()

        assert [b["start_time"] for b in blocks] == ["08:00", "09:00", "10:00"]

    def test_start_must_be_before_end(self, client) -> None:
        response = client.post(f"/schedule/{DAY}", json={
            "title": "Al revés", "start_time": "11:00", "end_time": "10:00",
        })

        assert response.status_code == 422
        assert client.get(f"/schedule/{DAY}").json() == []

    def test_toggle_block(self, client) -> None:
        block = client.post(f"/schedule/{DAY}", json={
            "title": "Foco", "start_time": "09:00", "end_time": "11:30", "sp_value": 25,
        }).json()

        result = client.patch(f"/schedule/{DAY}/{block['id']}/toggle").json()

        assert result["sublime_points"] == 75


class TestQuestsApi:

    def test_breathing_flow(self, client) -> None:
        quest = client.post("/quests", json={
            "title": "Respira", "description": "5 minutos", "reward": 25, "type": "breathing",
        }).json()

        started = client.post(f"/quests/{quest['id']}/start").json()
        active = client.get("/quests/active").json()
        completed = client.post("/quests/active/complete").json()

        assert started["changed"] is False
        assert active["phase"] == "active"
        assert active["quest"]["id"] == quest["id"]
        assert completed["point_delta"] == 25
        assert client.get("/quests").json()[0]["completed"] is True

    def test_cancel(self, client) -> None:
        quest = client.post("/quests", json={
            "title": "Respira", "description": "5 minutos", "type": "breathing",
        }).json()
        client.post(f"/quests/{quest['id']}/start")

        body = client.post("/quests/active/cancel").json()

        assert body["phase"] == "idle"
        assert body["quest"] is None

    def test_suggest_without_results(self, client) -> None:
        response = client.post("/quests/suggest")

        assert response.status_code == 200
        assert response.json() == []
