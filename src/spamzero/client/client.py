from typing import Any

import httpx


class SpamZeroAPIClient:
    """
    Lightweight client for the SpamZero API.

    Wraps the HTTP surface (`/predict`, `/history`, `/history/stats`) and the
    classify-then-record flow a front end performs on every submission.

    Examples
    --------
    >>> client = SpamZeroAPIClient("http://localhost:8000")
    >>> client.classify_and_record("Win a free iPhone!")
    {'ok': True, 'result': {'prediction': 'spam', 'confidence': 0.97}}
    >>> client.stats()
    {'spam': 1, 'ham': 0, 'spamPercent': 100.0, 'hamPercent': 0.0}
    """

    def __init__(self, url: str, _client: httpx.Client | None = None) -> None:
        """
        Initialize a new SpamZero API client.

        Parameters
        ----------
        url : str
            Base URL of the SpamZero API (no trailing slash).
        _client : httpx.Client | None
            Optional underlying httpx client used to make requests.
        """
        self._client: httpx.Client = _client or httpx.Client(timeout=None)
        self._url: str = url

    def predict(self, text: str) -> dict[str, Any]:
        """Classify `text`; returns `{"ok": true, "result": ...}` on success."""
        return self._request("POST", "/predict", json={"text": text}).json()

    def save_history(self, record: dict[str, Any]) -> dict[str, Any]:
        """Persist a history record; returns `{"message": ..., "id": ...}`."""
        return self._request("POST", "/history", json=record).json()

    def list_history(self) -> list[dict[str, Any]]:
        """Return every history record, most recent first."""
        return self._request("GET", "/history").json()

    def delete_history(self, record_id: str) -> dict[str, Any]:
        """Delete one history record by id."""
        return self._request("DELETE", "/history", json={"id": record_id}).json()

    def clear_history(self) -> dict[str, Any]:
        """Delete every history record."""
        return self._request("DELETE", "/history", params={"all": "true"}).json()

    def stats(self) -> dict[str, Any]:
        """Return spam/ham counts and percentages over the history."""
        return self._request("GET", "/history/stats").json()

    def classify_and_record(self, text: str) -> dict[str, Any]:
        """
        Classify `text` and, when that succeeds, save the outcome to history.

        Only a string `prediction` and a numeric `confidence` from the remote
        reply are recorded alongside the text; anything else is left out.
        Blank messages are refused before any request is sent.

        Returns
        -------
        dict[str, Any]
            The `/predict` response, whether or not it succeeded.

        Raises
        ------
        ValueError
            `text` is empty or only whitespace.
        """
        if not text.strip():
            raise ValueError("Please enter a message.")

        response = self._request("POST", "/predict", json={"text": text})
        data = response.json()

        if not response.is_success:
            return data

        result = data.get("result", data)
        record: dict[str, Any] = {"text": text}

        if isinstance(result, dict):
            prediction = result.get("prediction")
            confidence = result.get("confidence")

            if isinstance(prediction, str):
                record["prediction"] = prediction
            if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
                record["confidence"] = confidence

        self.save_history(record)
        return data

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request to the API.

        Error statuses are not raised: the API always answers with a JSON body
        (`{"error": ..., "code": ...}` on failure) that callers inspect.

        Raises
        ------
        httpx.HTTPError
            If the underlying HTTP request fails.
        """
        return self._client.request(method, f"{self._url}{path}", **kwargs)
