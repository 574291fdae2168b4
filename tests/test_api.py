import os
import sys
import datetime
import unittest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import GymAPI
from models import Role
from seed_sample_data import seed


class StubAdvice:
    def __init__(self, reply=None) -> None:
        self.reply = reply
        self.calls = 0

    def complete(self, prompt: str):
        self.calls += 1
        return self.reply


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_gym.db"
        self.yaml_path = "test_settings.yaml"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)
        self.advice = StubAdvice()
        self.api = GymAPI(
            db_path=self.db_path, yaml_path=self.yaml_path, advice_client=self.advice
        )
        self.client = TestClient(self.api.app)
        seed(self.db_path)
        self.bench = self.api.templates.fetch_by_name("Bench Press").id
        self.squat = self.api.templates.fetch_by_name("Squat").id
        self.api.auth.register("admin", "admin@example.com", "adminpass", [Role.ADMIN])
        self.admin = self._signin("admin", "adminpass")

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)

    def _signup(self, username: str, roles=None) -> dict:
        body = {
            "username": username,
            "email": f"{username}@example.com",
            "password": "password1",
        }
        if roles is not None:
            body["roles"] = roles
        response = self.client.post("/api/auth/signup", json=body)
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def _signin(self, username: str, password: str = "password1") -> dict:
        response = self.client.post(
            "/api/auth/signin", json={"username": username, "password": password}
        )
        self.assertEqual(response.status_code, 200, response.text)
        return {"Authorization": f"Bearer {response.json()['token']}"}

    def _member(self, username: str = "member"):
        user = self._signup(username)
        return user, self._signin(username)

    def _create_workout(self, headers, **fields) -> dict:
        body = {
            "name": "Push day",
            "scheduled_date": datetime.date.today().isoformat(),
            "sets": [
                {"exercise_id": self.bench, "reps": 8, "weight": 60.0},
                {"exercise_id": self.bench, "reps": 8, "weight": 62.5},
                {"exercise_id": self.squat, "reps": 5, "weight": 100.0},
            ],
        }
        body.update(fields)
        response = self.client.post("/api/workouts", json=body, headers=headers)
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_auth_flow(self) -> None:
        user, headers = self._member()
        self.assertEqual(user["roles"], ["MEMBER"])
        response = self.client.get("/api/users/me", headers=headers)
        self.assertEqual(response.json()["username"], "member")

        self.assertEqual(self.client.get("/api/users/me").status_code, 401)
        bad = {"Authorization": "Bearer nope"}
        self.assertEqual(self.client.get("/api/users/me", headers=bad).status_code, 401)
        response = self.client.post(
            "/api/auth/signin", json={"username": "member", "password": "wrong"}
        )
        self.assertEqual(response.status_code, 401)

        self.client.post("/api/auth/signout", headers=headers)
        self.assertEqual(self.client.get("/api/users/me", headers=headers).status_code, 401)

    def test_signup_validation(self) -> None:
        self._signup("member")
        response = self.client.post(
            "/api/auth/signup",
            json={"username": "member", "email": "x@example.com", "password": "password1"},
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/api/auth/signup",
            json={"username": "boss", "email": "b@example.com", "password": "password1", "roles": ["ADMIN"]},
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post("/api/auth/signup", json={"username": "x"})
        self.assertEqual(response.status_code, 422)

    def test_trainer_activation_and_assignment(self) -> None:
        trainer = self._signup("coach", ["TRAINER"])
        self.assertFalse(trainer["active"])
        response = self.client.post(
            "/api/auth/signin", json={"username": "coach", "password": "password1"}
        )
        self.assertEqual(response.status_code, 401)

        member, member_headers = self._member()
        response = self.client.put(
            f"/api/users/{trainer['id']}/activate", headers=member_headers
        )
        self.assertEqual(response.status_code, 403)
        response = self.client.put(f"/api/users/{trainer['id']}/activate", headers=self.admin)
        self.assertTrue(response.json()["active"])

        response = self.client.put(
            f"/api/users/member/{member['id']}/assign-trainer",
            params={"trainer_id": trainer["id"]},
            headers=self.admin,
        )
        self.assertEqual(response.json()["assigned_trainer_id"], trainer["id"])

        coach = self._signin("coach")
        response = self.client.get("/api/users/members", headers=coach)
        self.assertEqual([m["username"] for m in response.json()], ["member"])
        response = self.client.get("/api/users/trainers", headers=coach)
        self.assertEqual(response.status_code, 403)

        workout = self._create_workout(member_headers)
        response = self.client.get(f"/api/workouts/{workout['id']}", headers=coach)
        self.assertEqual(response.status_code, 200)

    def test_workout_lifecycle(self) -> None:
        _, headers = self._member()
        workout = self._create_workout(headers, target_muscle_group_ids=[])
        self.assertFalse(workout["completed"])
        self.assertEqual(len(workout["sets"]), 3)
        self.assertEqual(
            [(e["exercise_template"]["name"], e["total_volume"]) for e in workout["exercises"]],
            [("Bench Press", 980.0), ("Squat", 500.0)],
        )

        wid = workout["id"]
        for s in workout["sets"]:
            response = self.client.post(
                f"/api/workouts/{wid}/sets/{s['id']}/complete", headers=headers
            )
            self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data["completed"])
        self.assertIsNotNone(data["completed_date"])

        first = workout["sets"][0]["id"]
        data = self.client.post(
            f"/api/workouts/{wid}/sets/{first}/uncomplete", headers=headers
        ).json()
        self.assertFalse(data["completed"])
        self.assertIsNone(data["completed_date"])

        data = self.client.post(f"/api/workouts/{wid}/complete", headers=headers).json()
        self.assertTrue(all(s["completed"] for s in data["sets"]))

        response = self.client.post(
            f"/api/workouts/{wid}/sets/missing/complete", headers=headers
        )
        self.assertEqual(response.status_code, 404)

        response = self.client.get(
            "/api/workouts", params={"completed": "true"}, headers=headers
        )
        self.assertEqual(len(response.json()), 1)

    def test_workout_validation(self) -> None:
        _, headers = self._member()
        response = self.client.post(
            "/api/workouts",
            json={"name": "Bad", "sets": [{"exercise_id": self.bench, "reps": 0}]},
            headers=headers,
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/api/workouts",
            json={"name": "Bad", "sets": [{"exercise_id": "missing", "reps": 5}]},
            headers=headers,
        )
        self.assertEqual(response.status_code, 404)
        response = self.client.post(
            "/api/workouts",
            json={"name": "Bad", "scheduled_date": "someday"},
            headers=headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get("/api/workouts/missing", headers=headers).status_code, 404)

    def test_members_cannot_touch_each_other(self) -> None:
        _, alice = self._member("alice")
        _, bob = self._member("bob")
        workout = self._create_workout(alice)
        response = self.client.get(f"/api/workouts/{workout['id']}", headers=bob)
        self.assertEqual(response.status_code, 403)
        response = self.client.delete(f"/api/workouts/{workout['id']}", headers=bob)
        self.assertEqual(response.status_code, 403)
        response = self.client.get(f"/api/workouts/{workout['id']}", headers=self.admin)
        self.assertEqual(response.status_code, 200)

    def test_exercise_editing_copy_and_delete(self) -> None:
        _, headers = self._member()
        wid = self._create_workout(headers)["id"]
        response = self.client.put(
            f"/api/workouts/{wid}/exercises/{self.bench}",
            json={"sets": [{"reps": 5, "weight": 70.0}]},
            headers=headers,
        )
        self.assertEqual(response.json()["exercises"][0]["sets"], [{"reps": 5, "weight": 70.0}])

        response = self.client.post(
            f"/api/workouts/{wid}/copy", json={"new_date": "2030-01-07"}, headers=headers
        )
        copy = response.json()
        self.assertNotEqual(copy["id"], wid)
        self.assertEqual(copy["day_of_week"], "MONDAY")
        self.assertEqual(len(copy["sets"]), 2)

        response = self.client.delete(
            f"/api/workouts/{wid}/exercises/{self.squat}", headers=headers
        )
        self.assertEqual(len(response.json()["sets"]), 1)

        response = self.client.delete(f"/api/workouts/{wid}", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get(f"/api/workouts/{wid}", headers=headers).status_code, 404)

        response = self.client.get(
            "/api/workouts/by-date-range",
            params={"start": "2030-01-01", "end": "2030-01-31"},
            headers=headers,
        )
        self.assertEqual([w["id"] for w in response.json()], [copy["id"]])

    def test_suggestions(self) -> None:
        _, headers = self._member()
        response = self.client.get(f"/api/ai-workout/suggest/{self.bench}", headers=headers)
        self.assertEqual(
            response.json(),
            {
                "sets": [
                    {"reps": 10, "weight": 20.0},
                    {"reps": 9, "weight": 22.5},
                    {"reps": 8, "weight": 25.0},
                ]
            },
        )

        today = datetime.date.today()
        for days, reps, weight in ((1, 8, 50.0), (2, 9, 47.5), (3, 10, 45.0), (10, 12, 40.0)):
            self._create_workout(
                headers,
                scheduled_date=(today - datetime.timedelta(days=days)).isoformat(),
                sets=[{"exercise_id": self.squat, "reps": reps, "weight": weight}],
            )
        response = self.client.get(
            f"/api/ai-workout/progressive-overload/{self.squat}", headers=headers
        )
        self.assertEqual(
            response.json()["sets"],
            [
                {"reps": 10, "weight": 47.5},
                {"reps": 9, "weight": 48.75},
                {"reps": 8, "weight": 50.0},
            ],
        )
        response = self.client.get(
            f"/api/ai-workout/suggest/{self.squat}",
            params={"history_days": 0},
            headers=headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_weekly_suggestions(self) -> None:
        _, headers = self._member()
        response = self.client.get("/api/ai-workout/weekly-suggestions", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])

        _, other = self._member("other")
        self.advice.reply = "Day 1: Squat\n\nDay 2: Bench Press\n"
        response = self.client.get("/api/ai-workout/weekly-suggestions", headers=other)
        self.assertEqual(response.json(), ["Day 1: Squat", "Day 2: Bench Press"])
        self.client.get("/api/ai-workout/weekly-suggestions", headers=other)
        self.assertEqual(self.advice.calls, 2)

    def test_templates_and_muscle_groups(self) -> None:
        _, member = self._member()
        response = self.client.post(
            "/api/exercise-templates", json={"name": "Curl"}, headers=member
        )
        self.assertEqual(response.status_code, 403)

        groups = self.client.get("/api/muscle-groups", headers=member).json()
        chest = next(g for g in groups if g["name"] == "Chest")
        response = self.client.post(
            "/api/exercise-templates/bulk",
            json=[
                {"name": "Cable Fly", "primary_muscle_group_id": chest["id"]},
                {"name": "Pec Deck", "primary_muscle_group_id": chest["id"]},
            ],
            headers=self.admin,
        )
        self.assertEqual(len(response.json()), 2)
        response = self.client.post(
            "/api/exercise-templates", json={"name": "Cable Fly"}, headers=self.admin
        )
        self.assertEqual(response.status_code, 400)

        names = [
            t["name"]
            for t in self.client.get(
                f"/api/exercise-templates/by-muscle-group/{chest['id']}", headers=member
            ).json()
        ]
        self.assertIn("Bench Press", names)
        self.assertIn("Pec Deck", names)

        tid = self.api.templates.fetch_by_name("Pec Deck").id
        response = self.client.put(
            f"/api/exercise-templates/{tid}",
            json={"description": "Machine fly"},
            headers=self.admin,
        )
        self.assertEqual(response.json()["description"], "Machine fly")
        self.client.delete(f"/api/exercise-templates/{tid}", headers=self.admin)
        response = self.client.get(f"/api/exercise-templates/{tid}", headers=member)
        self.assertEqual(response.status_code, 404)

    def test_checkins(self) -> None:
        alice, alice_headers = self._member("alice")
        _, bob_headers = self._member("bob")
        self.client.post("/api/checkins", json={}, headers=alice_headers)
        self.client.post("/api/checkins", json={}, headers=bob_headers)
        response = self.client.post(
            "/api/checkins", json={"user_id": alice["id"]}, headers=bob_headers
        )
        self.assertEqual(response.status_code, 403)

        mine = self.client.get("/api/checkins/recent", headers=alice_headers).json()
        self.assertEqual([c["user_id"] for c in mine], [alice["id"]])
        everyone = self.client.get("/api/checkins/recent", headers=self.admin).json()
        self.assertEqual(len(everyone), 2)
        today = datetime.date.today().isoformat()
        response = self.client.get(
            "/api/checkins/between",
            params={"start": today, "end": today},
            headers=self.admin,
        )
        self.assertEqual(len(response.json()), 2)

    def test_suggestion_notifications(self) -> None:
        trainer = self._signup("coach", ["TRAINER"])
        self.client.put(f"/api/users/{trainer['id']}/activate", headers=self.admin)
        member, member_headers = self._member()
        coach = self._signin("coach")

        body = {"member_id": member["id"], "message": "Try heavier squats", "data": {"exercise": "Squat"}}
        response = self.client.post(
            "/api/notifications/workout-suggestions", json=body, headers=coach
        )
        self.assertEqual(response.status_code, 403)

        self.client.put(
            f"/api/users/member/{member['id']}/assign-trainer",
            params={"trainer_id": trainer["id"]},
            headers=self.admin,
        )
        nid = self.client.post(
            "/api/notifications/workout-suggestions", json=body, headers=coach
        ).json()["id"]
        pending = self.client.get(
            "/api/notifications/workout-suggestions", headers=member_headers
        ).json()
        self.assertEqual(pending[0]["message"], "Try heavier squats")
        self.assertEqual(pending[0]["exercise"], "Squat")
        self.assertEqual(pending[0]["type"], "WORKOUT_SUGGESTION")

        response = self.client.post(f"/api/notifications/suggestions/{nid}/seen", headers=coach)
        self.assertEqual(response.status_code, 403)
        self.client.post(f"/api/notifications/suggestions/{nid}/seen", headers=member_headers)
        pending = self.client.get(
            "/api/notifications/workout-suggestions", headers=member_headers
        ).json()
        self.assertEqual(pending, [])

    def test_suggestions_with_mixed_date_forms(self) -> None:
        _, headers = self._member()
        today = datetime.date.today()
        self._create_workout(
            headers,
            scheduled_date=(today - datetime.timedelta(days=2)).isoformat(),
            sets=[{"exercise_id": self.bench, "reps": 8, "weight": 50.0}],
        )
        self._create_workout(
            headers,
            scheduled_date=(today - datetime.timedelta(days=1)).isoformat() + "T10:00:00+00:00",
            sets=[{"exercise_id": self.bench, "reps": 8, "weight": 52.5}],
        )
        self._create_workout(
            headers,
            scheduled_date=(today - datetime.timedelta(days=1)).isoformat() + "T12:00:00Z",
            sets=[{"exercise_id": self.bench, "reps": 8, "weight": 55.0}],
        )
        response = self.client.get(
            f"/api/ai-workout/progressive-overload/{self.bench}", headers=headers
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(len(response.json()["sets"]), 3)
        self.advice.reply = "Day 1: Bench Press"
        response = self.client.get("/api/ai-workout/weekly-suggestions", headers=headers)
        self.assertEqual(response.json(), ["Day 1: Bench Press"])
        response = self.client.get(
            f"/api/ai-workout/suggest/{self.bench}",
            params={"history_days": 1000000},
            headers=headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(len(response.json()["sets"]), 3)

    def test_payment_dates_are_normalized(self) -> None:
        member, headers = self._member()
        for paid_at in ("2024-02-01T10:00:00", "2024-03-01"):
            self.client.post(
                "/api/payments",
                json={"user_id": member["id"], "months": 1, "amount": 30.0, "paid_at": paid_at},
                headers=self.admin,
            )
        payments = self.client.get("/api/payments", headers=headers).json()
        self.assertEqual(
            [p["paid_at"] for p in payments],
            ["2024-03-01T00:00:00", "2024-02-01T10:00:00"],
        )
        response = self.client.post(
            "/api/payments",
            json={"user_id": member["id"], "months": 1, "amount": 30.0, "paid_at": "last week"},
            headers=self.admin,
        )
        self.assertEqual(response.status_code, 400)

    def test_payments_feedback_and_diet_chat(self) -> None:
        member, headers = self._member()
        response = self.client.post(
            "/api/payments",
            json={"user_id": member["id"], "months": 3, "amount": 90.0},
            headers=headers,
        )
        self.assertEqual(response.status_code, 403)
        self.client.post(
            "/api/payments",
            json={"user_id": member["id"], "months": 3, "amount": 90.0},
            headers=self.admin,
        )
        payments = self.client.get("/api/payments", headers=headers).json()
        self.assertEqual(payments[0]["months"], 3)

        fid = self.client.post(
            "/api/feedback", json={"title": "Showers", "content": "Cold water"}, headers=headers
        ).json()["id"]
        response = self.client.post(
            f"/api/feedback/{fid}/responses", json={"content": "Fixed"}, headers=self.admin
        )
        self.assertEqual(response.json()["responses"][0]["content"], "Fixed")

        chat = self.client.post(
            "/api/diet-chats",
            json={"title": "Bulking", "initial_query": "How much protein?"},
            headers=headers,
        ).json()
        response = self.client.post(
            f"/api/diet-chats/{chat['id']}/messages",
            json={"content": "About 2g per kg"},
            headers=self.admin,
        )
        self.assertEqual(response.json()["messages"][0]["sender_role"], "ADMIN")
        chats = self.client.get("/api/diet-chats", headers=headers).json()
        self.assertEqual(len(chats), 1)


if __name__ == "__main__":
    unittest.main()
