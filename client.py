import requests
from typing import Optional


class GymClient:
    """Simple REST client for the gym API."""

    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token: Optional[str] = None

    def _headers(self) -> dict:
        if self.token is None:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _request(self, method: str, path: str, **kwargs):
        resp = requests.request(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(),
            timeout=self.timeout,
            **kwargs,
        )
        resp.raise_for_status()
        return resp.json()

    def signup(self, username: str, email: str, password: str, **fields) -> dict:
        body = {"username": username, "email": email, "password": password, **fields}
        return self._request("POST", "/api/auth/signup", json=body)

    def signin(self, username: str, password: str) -> str:
        data = self._request(
            "POST",
            "/api/auth/signin",
            json={"username": username, "password": password},
        )
        self.token = data["token"]
        return self.token

    def signout(self) -> None:
        self._request("POST", "/api/auth/signout")
        self.token = None

    def me(self) -> dict:
        return self._request("GET", "/api/users/me")

    def create_workout(self, name: str, **fields) -> dict:
        return self._request("POST", "/api/workouts", json={"name": name, **fields})

    def list_workouts(self, **params):
        return self._request("GET", "/api/workouts", params=params)

    def complete_set(self, workout_id: str, set_id: str) -> dict:
        return self._request(
            "POST", f"/api/workouts/{workout_id}/sets/{set_id}/complete"
        )

    def suggest(self, exercise_id: str, history_days: Optional[int] = None) -> dict:
        params = {"history_days": history_days} if history_days is not None else {}
        return self._request(
            "GET", f"/api/ai-workout/suggest/{exercise_id}", params=params
        )

    def progressive_overload(self, exercise_id: str) -> dict:
        return self._request(
            "GET", f"/api/ai-workout/progressive-overload/{exercise_id}"
        )

    def weekly_suggestions(self) -> list:
        return self._request("GET", "/api/ai-workout/weekly-suggestions")
