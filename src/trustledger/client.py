"""
trustledger.client — Python SDK for the trustledger HTTP API.

Usage:
    from trustledger.client import LedgerClient

    with LedgerClient("http://localhost:8420", account="verifier-1") as client:
        sid = client.submit_score("alice", score=90, ai_confidence=70, category="kyc")
        client.recompute("alice", [sid])
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx


class LedgerClientError(Exception):
    """Raised when the API returns an error."""
    def __init__(self, status: int, detail: str, code: Optional[str] = None):
        self.status = status
        self.detail = detail
        self.code = code
        super().__init__(f"[{status}] {code + ': ' if code else ''}{detail}")


@dataclass
class LedgerClient:
    """Lightweight client acting as ``account`` against a trustledger API."""

    base_url: str = "http://localhost:8420"
    account: Optional[str] = None
    admin_key: Optional[str] = None
    timeout: float = 10.0
    http: Optional[httpx.Client] = field(default=None, repr=False)

    def __post_init__(self):
        if self.http is None:
            self.http = httpx.Client(base_url=self.base_url, timeout=self.timeout)

    def close(self):
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # -- internal --

    def _headers(self) -> dict:
        headers = {}
        if self.account:
            headers["X-Account-ID"] = self.account
        if self.admin_key:
            headers["X-Admin-Key"] = self.admin_key
        return headers

    def _request(self, method: str, path: str, **kwargs):
        r = self.http.request(method, f"/api/v1{path}", headers=self._headers(), **kwargs)
        if r.status_code >= 400:
            if r.headers.get("content-type", "").startswith("application/json"):
                body = r.json()
                detail = body.get("detail", r.text)
                raise LedgerClientError(r.status_code, str(detail), body.get("code"))
            raise LedgerClientError(r.status_code, r.text)
        return r.json()

    # -- Ledger --

    def health(self) -> dict:
        return self._request("GET", "/health")

    def stats(self) -> dict:
        return self._request("GET", "/stats")

    def advance(self, blocks: int = 1) -> int:
        """Advance the logical clock (requires ``admin_key``). Returns the new height."""
        return self._request("POST", "/admin/clock/advance", json={"blocks": blocks})["height"]

    # -- Accounts --

    def initialize_account(self) -> bool:
        """Initialize the client's own account. True if created, False if it already existed."""
        return self._request("POST", "/accounts")["created"]

    def reputation(self, account_id: str) -> dict:
        return self._request("GET", f"/accounts/{account_id}")

    def submissions(self, account_id: str) -> list[dict]:
        return self._request("GET", f"/accounts/{account_id}/submissions")

    def recompute(self, account_id: str, submission_ids: list[int]) -> dict:
        return self._request("POST", f"/accounts/{account_id}/recompute",
                             json={"submission_ids": submission_ids})

    # -- Verifiers --

    def register_verifier(self, verifier_id: str, weight: int, stake: int) -> dict:
        return self._request("POST", "/verifiers", json={
            "verifier_id": verifier_id, "weight": weight, "stake": stake,
        })

    def deactivate_verifier(self, verifier_id: str) -> dict:
        return self._request("POST", f"/verifiers/{verifier_id}/deactivate")

    def reactivate_verifier(self, verifier_id: str) -> dict:
        return self._request("POST", f"/verifiers/{verifier_id}/reactivate")

    def verifier(self, verifier_id: str) -> dict:
        return self._request("GET", f"/verifiers/{verifier_id}")

    # -- Submissions & disputes --

    def submit_score(self, user: str, score: int, ai_confidence: int, category: str) -> int:
        """Submit an attestation as the client's account. Returns the submission id."""
        return self._request("POST", "/submissions", json={
            "user": user, "score": score, "ai_confidence": ai_confidence, "category": category,
        })["submission_id"]

    def submission(self, sequence: int) -> dict:
        return self._request("GET", f"/submissions/{sequence}")

    def raise_dispute(self, reason: str) -> int:
        return self._request("POST", "/disputes", json={"reason": reason})["dispute_id"]

    def dispute(self, account_id: str, sequence: int) -> dict:
        return self._request("GET", f"/accounts/{account_id}/disputes/{sequence}")


__all__ = ["LedgerClient", "LedgerClientError"]
